"""Load the translator configuration from config.yaml, .env files and the environment."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema
import yaml
from dotenv import load_dotenv
from openai import OpenAI

from src.change_detector import CONTENT_POLICY, EDIT_SCRIPT_POLICY
from src.glossary_lifecycle import DEFAULT_POLL_INTERVAL_SECONDS
from src.logging_config import setup_logger
from src.orchestrator import OrchestratorConfig

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "input_file": {"type": "string"},
        "previous_file": {"type": ["string", "null"]},
        "output_file_format": {"type": "string", "pattern": r"\{lang\}"},
        "cache_dir": {"type": "string"},
        "source_language": {"type": "string"},
        "supported_locales": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"code": {"type": "string"}, "name": {"type": "string"}},
                "required": ["code"],
            },
        },
        "glossary": {
            "type": "object",
            "properties": {
                "name_format": {"type": "string", "pattern": r"\{lang\}"},
                "store_dir": {"type": "string"},
                "source_file": {"type": "string"},
                "creation_timeout_minutes": {"type": "number", "exclusiveMinimum": 0},
                "poll_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
            },
        },
        "change_detection": {"enum": [CONTENT_POLICY, EDIT_SCRIPT_POLICY]},
        "validate_placeholders": {"type": "boolean"},
        "model_name": {"type": "string"},
        "max_concurrent_languages": {"type": "integer", "minimum": 1},
        "dry_run": {"type": "boolean"},
        "show_progress": {"type": "boolean"},
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": "string"},
                "log_to_console": {"type": "boolean"},
            },
        },
    },
}


@dataclass
class AppConfig:
    """Resolved settings for one CLI invocation."""
    # Core paths
    project_root: str
    input_file: str
    previous_file: Optional[str]
    output_file_format: str
    cache_dir: str

    # Language configuration
    source_language: str
    language_codes: Dict[str, str]

    # Glossary configuration
    glossary_name_format: str
    glossary_store_dir: str
    glossary_source_file: str
    glossary_creation_timeout_minutes: float
    glossary_poll_interval_seconds: float

    # Processing settings
    change_detection: str
    validate_placeholders: bool
    model_name: str
    max_concurrent_languages: int
    dry_run: bool
    show_progress: bool

    # OpenAI client
    openai_client: Optional[OpenAI]

    def output_path_for(self, target_language: str) -> str:
        return self.output_file_format.format(lang=target_language)

    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            source_language=self.source_language,
            change_detection=self.change_detection,
            validate_placeholders=self.validate_placeholders,
            show_progress=self.show_progress,
        )


def _project_root() -> str:
    """The directory above ``src/``."""
    return os.path.dirname(os.path.dirname(os.path.realpath(__file__)))


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load the first .env found in the project root or ``docker/``. Returns its path."""
    for candidate in (os.path.join(project_root, '.env'), os.path.join(project_root, 'docker', '.env')):
        if os.path.exists(candidate):
            load_dotenv(candidate)
            return candidate
    return None


def _config_file_path(project_root: str) -> str:
    config_file = os.environ.get('TRANSLATOR_CONFIG_FILE', os.path.join(project_root, 'config.yaml'))
    return os.path.abspath(config_file)


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """
    Read and validate ``config.yaml``.

    The logger is not configured yet at this point, so problems are reported
    on stderr. Any problem yields an empty dict and the defaults apply.
    """
    config_file = _config_file_path(project_root)

    if not os.path.exists(config_file):
        print(f"Warning: No configuration file at '{config_file}'. Using defaults.", file=sys.stderr)
        print("Tip: add config.yaml to the project root or point TRANSLATOR_CONFIG_FILE at one.", file=sys.stderr)
        return {}
    if not os.access(config_file, os.R_OK):
        print(f"Error: Configuration file '{config_file}' is not readable. Using defaults.", file=sys.stderr)
        return {}

    try:
        with open(config_file, 'r', encoding='utf-8') as stream:
            loaded = yaml.safe_load(stream)
        if loaded is None:
            print(f"Warning: Configuration file '{config_file}' is empty. Using defaults.", file=sys.stderr)
            return {}
        if not isinstance(loaded, dict):
            print(f"Error: '{config_file}' must hold a YAML mapping at the top level. Using defaults.",
                  file=sys.stderr)
            return {}
        jsonschema.validate(instance=loaded, schema=CONFIG_SCHEMA)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in '{config_file}': {e}. Using defaults.", file=sys.stderr)
        return {}
    except jsonschema.ValidationError as e:
        location = '.'.join(str(part) for part in e.absolute_path) or '<root>'
        print(f"Error: Invalid value at '{location}' in '{config_file}': {e.message}. Using defaults.",
              file=sys.stderr)
        return {}
    except OSError as e:
        print(f"Error: Could not read '{config_file}': {e}. Using defaults.", file=sys.stderr)
        return {}

    print(f"Loaded configuration from: {config_file}", file=sys.stderr)
    return loaded


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    log_config = config.get('logging', {})
    return setup_logger(
        log_config.get('log_level', 'INFO'),
        log_config.get('log_file_path', 'logs/translation_log.log'),
        log_config.get('log_to_console', True),
    )


def _build_language_codes(locales_list: List[Dict[str, str]]) -> Dict[str, str]:
    """Map locale codes to display names from supported_locales."""
    return {locale['code']: locale.get('name', locale['code']) for locale in locales_list if locale.get('code')}


def _create_openai_client(dry_run: bool, logger: logging.Logger) -> Optional[OpenAI]:
    """Build the OpenAI client, or None in dry-run mode. Exits when the API key is missing."""
    if dry_run:
        logger.info("Dry-run mode: source text is copied and no OpenAI client is created")
        return None

    api_key = os.environ.get('OPENAI_API_KEY')
    if not api_key:
        logger.critical("OPENAI_API_KEY is not set. Set it or run with --dry-run.")
        sys.exit(1)
    if not api_key.startswith('sk-'):
        logger.warning("OPENAI_API_KEY does not start with 'sk-' and may be invalid.")

    # Retries happen in OpenAITranslator only.
    client = OpenAI(api_key=api_key, max_retries=0)
    logger.info("OpenAI client initialized")
    return client


def load_app_config(dry_run_override: Optional[bool] = None) -> AppConfig:
    """
    Build the application configuration.

    Sources, in increasing precedence: built-in defaults, ``config.yaml``,
    ``.env`` and process environment variables, then ``dry_run_override``.

    Args:
        dry_run_override: When not None, replaces the ``dry_run`` setting.

    Returns:
        AppConfig: The resolved configuration.
    """
    project_root = _project_root()
    dotenv_path = _load_dotenv_files(project_root)
    config = _load_yaml_config(project_root)

    logger = _setup_logger_from_config(config)
    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)
    else:
        logger.info("No .env file in '%s' or its docker/ folder. Using the process environment.", project_root)

    glossary_config = config.get('glossary', {})
    dry_run = config.get('dry_run', False) if dry_run_override is None else dry_run_override

    return AppConfig(
        project_root=project_root,
        input_file=config.get('input_file', 'app.properties'),
        previous_file=config.get('previous_file'),
        output_file_format=config.get('output_file_format', 'translations/app_{lang}.properties'),
        cache_dir=config.get('cache_dir', '.translation_cache'),
        source_language=config.get('source_language', 'en'),
        language_codes=_build_language_codes(config.get('supported_locales', [])),
        glossary_name_format=glossary_config.get('name_format', 'glossary-{lang}'),
        glossary_store_dir=glossary_config.get('store_dir', '.glossaries'),
        glossary_source_file=glossary_config.get('source_file', 'glossary.csv'),
        glossary_creation_timeout_minutes=glossary_config.get('creation_timeout_minutes', 5),
        glossary_poll_interval_seconds=glossary_config.get('poll_interval_seconds', DEFAULT_POLL_INTERVAL_SECONDS),
        change_detection=config.get('change_detection', CONTENT_POLICY),
        validate_placeholders=config.get('validate_placeholders', True),
        model_name=os.environ.get('MODEL_NAME', config.get('model_name', 'gpt-4o-mini')),
        max_concurrent_languages=config.get('max_concurrent_languages', 1),
        dry_run=dry_run,
        show_progress=config.get('show_progress', True),
        openai_client=_create_openai_client(dry_run, logger),
    )
