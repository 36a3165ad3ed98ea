"""Command line entry point: translate a .properties file into target languages."""
import shutil
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import click

from src.app_config import AppConfig, load_app_config
from src.errors import ConfigurationError, GlossaryError
from src.glossary_lifecycle import GlossaryLifecycle
from src.glossary_store import CsvGlossarySourceInspector, LocalGlossaryBackend
from src.logging_config import get_logger
from src.orchestrator import TranslationOrchestrator, TranslationResult
from src.translation_cache import TranslationCache
from src.translation_validator import check_encoding_and_mojibake
from src.translators import EchoTranslator, OpenAITranslator, Translator

logger = get_logger(__name__)


def build_translator(app_config: AppConfig) -> Translator:
    if app_config.dry_run or app_config.openai_client is None:
        return EchoTranslator()
    return OpenAITranslator(app_config.openai_client, app_config.model_name)


def build_glossary_lifecycle(app_config: AppConfig, backend: LocalGlossaryBackend) -> GlossaryLifecycle:
    return GlossaryLifecycle(
        backend=backend,
        inspector=CsvGlossarySourceInspector(app_config.glossary_source_file),
        source_uri=app_config.glossary_source_file,
        name_format=app_config.glossary_name_format,
        source_language=app_config.source_language,
        creation_timeout=app_config.glossary_creation_timeout_minutes * 60,
        poll_interval=app_config.glossary_poll_interval_seconds,
    )


def check_supported_languages(app_config: AppConfig, languages: Sequence[str]) -> None:
    """Reject languages missing from ``supported_locales`` when that list is configured."""
    if not app_config.language_codes:
        return
    unsupported = [lang for lang in languages if lang not in app_config.language_codes]
    if unsupported:
        raise ConfigurationError(
            f"Unsupported language(s): {', '.join(unsupported)}. "
            f"Supported: {', '.join(sorted(app_config.language_codes))}"
        )


def run_languages(orchestrator: TranslationOrchestrator, app_config: AppConfig, languages: Sequence[str],
                  previous_file: Optional[str]) -> List[Tuple[str, Optional[TranslationResult]]]:
    """
    Translate the input file into each language, in parallel up to
    ``max_concurrent_languages``. A language whose run aborts yields ``None``.
    """
    def run_one(target_language: str) -> Optional[TranslationResult]:
        try:
            logger.info("Processing translation for language: %s", target_language)
            return orchestrator.translate_file(
                target_language,
                app_config.input_file,
                app_config.output_path_for(target_language),
                previous_file,
            )
        except Exception as exc:
            logger.error("Error processing language %s: %s", target_language, exc, exc_info=True)
            return None

    with ThreadPoolExecutor(max_workers=app_config.max_concurrent_languages) as executor:
        results = list(executor.map(run_one, languages))
    return list(zip(languages, results))


@click.group()
@click.option('--dry-run', is_flag=True, help='Copy source text instead of calling the translation API.')
@click.pass_context
def cli(ctx: click.Context, dry_run: bool):
    """Incrementally translate a .properties file while keeping its layout."""
    ctx.obj = load_app_config(dry_run_override=True if dry_run else None)


@cli.command()
@click.argument('languages', nargs=-1, required=True)
@click.option('--previous', 'previous_file', type=click.Path(dir_okay=False),
              help='Backup of the source file from the last run, used to find changed entries.')
@click.option('--delete-glossary', is_flag=True, help='Delete the glossaries of these languages afterwards.')
@click.pass_obj
def translate(app_config: AppConfig, languages: Tuple[str, ...], previous_file: Optional[str],
              delete_glossary: bool):
    """Translate the configured input file into LANGUAGES."""
    try:
        check_supported_languages(app_config, languages)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc))

    previous_file = previous_file or app_config.previous_file

    for error in check_encoding_and_mojibake(app_config.input_file):
        logger.warning(error)

    with LocalGlossaryBackend(app_config.glossary_store_dir) as backend:
        lifecycle = build_glossary_lifecycle(app_config, backend)
        orchestrator = TranslationOrchestrator(
            translator=build_translator(app_config),
            cache=TranslationCache(app_config.cache_dir),
            glossary_lifecycle=lifecycle,
            config=app_config.orchestrator_config(),
        )

        outcomes = run_languages(orchestrator, app_config, languages, previous_file)
        for target_language, result in outcomes:
            if result is None:
                click.secho(f"{target_language}: failed", fg='red', err=True)
            else:
                click.echo(f"{target_language}: {result.translated} translated, {result.reused} reused, "
                           f"{result.failed} failed -> {app_config.output_path_for(target_language)}")

        clean_run = all(result is not None and result.failed == 0 for _, result in outcomes)
        if previous_file and clean_run:
            shutil.copy2(app_config.input_file, previous_file)
            logger.info("Updated backup file: %s", previous_file)
        elif previous_file:
            logger.warning("Some entries failed; keeping backup file %s so they are retried next run.",
                           previous_file)

        if delete_glossary:
            for target_language in languages:
                try:
                    lifecycle.delete(target_language)
                except GlossaryError as exc:
                    logger.error("Error deleting glossary for language %s: %s", target_language, exc)

    if any(result is None for _, result in outcomes):
        sys.exit(1)


@cli.command('update-glossary')
@click.argument('language')
@click.option('--source', 'source_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='CSV file with one column per language code.')
@click.pass_obj
def update_glossary(app_config: AppConfig, language: str, source_path: str):
    """Rebuild the glossary for LANGUAGE from a CSV source."""
    with LocalGlossaryBackend(app_config.glossary_store_dir) as backend:
        lifecycle = build_glossary_lifecycle(app_config, backend)
        try:
            glossary = lifecycle.update(language, source_path)
        except GlossaryError as exc:
            raise click.ClickException(f"Glossary update failed for {language}: {exc}")
    click.echo(f"Glossary {glossary.name} ready with {glossary.entry_count} entries.")


@cli.command('delete-glossary')
@click.argument('languages', nargs=-1, required=True)
@click.pass_obj
def delete_glossary_command(app_config: AppConfig, languages: Tuple[str, ...]):
    """Delete the glossaries of LANGUAGES. Missing glossaries are not an error."""
    failed = False
    with LocalGlossaryBackend(app_config.glossary_store_dir) as backend:
        lifecycle = build_glossary_lifecycle(app_config, backend)
        for language in languages:
            try:
                deleted = lifecycle.delete(language)
            except GlossaryError as exc:
                logger.error("Error deleting glossary for language %s: %s", language, exc)
                failed = True
                continue
            click.echo(f"{language}: {'deleted' if deleted else 'not found'}")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
