"""
Incremental translation of a .properties document into one target language.

Comments and blank lines are copied as-is. A property is translated when it
is new or modified since the previous version of the source, or when the
cache holds no translation for it; otherwise the cached translation is reused
verbatim. A failure on one entry keeps the untranslated original and the run
continues. The full output is written back to the cache at the end of every
run.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from tqdm import tqdm

from src.change_detector import CONTENT_POLICY, get_change_detector
from src.errors import TranslationError, TranslatorUnavailableError
from src.glossary_lifecycle import GlossaryLifecycle, GlossaryResolution, GlossaryState
from src.logging_config import get_logger
from src.properties_parser import (
    ResourceDocument,
    ResourceEntry,
    property_index,
    read_properties_file,
    write_properties_file,
)
from src.translation_cache import TranslationCache
from src.translation_validator import check_placeholder_parity
from src.translators import Translator
from src.value_reconstructor import flatten_entry, rebuild_entry

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrchestratorConfig:
    source_language: str = "en"
    change_detection: str = CONTENT_POLICY
    validate_placeholders: bool = True
    show_progress: bool = True


@dataclass
class TranslationResult:
    target_language: str
    document: ResourceDocument = ()
    glossary_state: Optional[GlossaryState] = None
    translated: int = 0
    reused: int = 0
    copied: int = 0
    failed_keys: List[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_keys)


class TranslationOrchestrator:
    """
    Produces the translated document for one language at a time.

    Instances hold no per-run state, so a single orchestrator may serve
    several languages from different threads as long as the translator and
    glossary backend allow concurrent use.
    """

    def __init__(self, translator: Translator, cache: TranslationCache,
                 glossary_lifecycle: Optional[GlossaryLifecycle] = None,
                 config: OrchestratorConfig = OrchestratorConfig()):
        self.translator = translator
        self.cache = cache
        self.glossary_lifecycle = glossary_lifecycle
        self.config = config
        self._diff = get_change_detector(config.change_detection)

    def _resolve_glossary(self, target_language: str) -> Optional[GlossaryResolution]:
        if self.glossary_lifecycle is None:
            return None
        resolution = self.glossary_lifecycle.resolve(target_language)
        logger.info("Glossary status for %s: %s", target_language, resolution.state.name)
        if not resolution.usable:
            logger.info("Translating %s without a glossary.", target_language)
        return resolution

    def _translate_entry(self, entry: ResourceEntry, text: str, target_language: str,
                         resolution: Optional[GlossaryResolution]) -> ResourceEntry:
        glossary = resolution.glossary if resolution is not None and resolution.usable else None
        translated_text = self.translator.translate(
            text, self.config.source_language, target_language, glossary=glossary
        )
        if self.config.validate_placeholders and not check_placeholder_parity(text, translated_text):
            raise TranslationError(f"Placeholder mismatch in translation: {translated_text!r}", key=entry.key)
        return rebuild_entry(entry.key, entry.lines, translated_text)

    def translate_document(self, target_language: str, document: ResourceDocument,
                           previous_document: Optional[ResourceDocument] = None,
                           cached_document: Optional[ResourceDocument] = None) -> TranslationResult:
        """
        Translate ``document`` into ``target_language``.

        Args:
            target_language: Target language code, e.g. "de".
            document: The current source document.
            previous_document: The source as of the last run. When omitted,
                every property is translated.
            cached_document: The last output for this language. Loaded from
                the cache when omitted.

        Returns:
            TranslationResult: The output document, in input order, and counters.

        Raises:
            TranslatorUnavailableError: The translator cannot serve any request.
        """
        logger.info("Starting translation process for target language: %s", target_language)
        result = TranslationResult(target_language=target_language)

        resolution = self._resolve_glossary(target_language)
        if resolution is not None:
            result.glossary_state = resolution.state

        if previous_document is not None:
            changed_keys = self._diff(previous_document, document)
            if cached_document is None:
                cached_document = self.cache.load(target_language)
            cached_index = property_index(cached_document)
            logger.info("Processing %d modified/new entries for incremental translation", len(changed_keys))
        else:
            changed_keys = None
            cached_index = {}

        output: List[ResourceEntry] = []
        seen_keys = set()
        progress = tqdm(document, desc=f"Translating {target_language}", unit="entry",
                        disable=not self.config.show_progress)

        for entry in progress:
            if not entry.is_property:
                output.append(entry)
                result.copied += 1
                continue

            if entry.key in seen_keys:
                logger.warning("Duplicate key '%s' copied through untranslated.", entry.key)
                output.append(entry)
                result.copied += 1
                continue
            seen_keys.add(entry.key)

            is_changed = changed_keys is None or entry.key in changed_keys
            cached_entry = cached_index.get(entry.key)
            if not is_changed and cached_entry is not None:
                logger.debug("Reusing cached translation for key: %s", entry.key)
                output.append(cached_entry)
                result.reused += 1
                continue

            key, text = flatten_entry(entry)
            if not text:
                output.append(entry)
                result.copied += 1
                continue

            try:
                logger.info("Translating entry: %s", key)
                output.append(self._translate_entry(entry, text, target_language, resolution))
                result.translated += 1
            except TranslatorUnavailableError:
                logger.critical("Translator unavailable. Aborting run for %s.", target_language)
                raise
            except Exception as exc:
                logger.error("Failed to translate property: %s for language %s. Error: %s",
                             key, target_language, exc, exc_info=True)
                output.append(entry)
                result.failed_keys.append(key)

        result.document = tuple(output)
        self.cache.save(target_language, result.document)
        logger.info("Translation completed for language %s: %d translated, %d reused, %d failed",
                    target_language, result.translated, result.reused, result.failed)
        return result

    def translate_file(self, target_language: str, input_path: str, output_path: str,
                       previous_path: Optional[str] = None) -> TranslationResult:
        """Read the source files, translate, and write the output file."""
        document = read_properties_file(input_path)
        previous_document = None
        if previous_path and os.path.exists(previous_path):
            previous_document = read_properties_file(previous_path)
        elif previous_path:
            logger.warning("Previous version '%s' not found. Translating every entry.", previous_path)

        result = self.translate_document(target_language, document, previous_document)
        write_properties_file(result.document, output_path)
        return result
