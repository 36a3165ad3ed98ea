"""Tests for the click command line interface."""
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from src.app_config import AppConfig
from src.translate_properties import check_supported_languages, cli
from src.errors import ConfigurationError
from tests.fakes import FakeTranslator

SOURCE = "# Screen\ngreeting=Hello\nfarewell=Goodbye\n"


@pytest.fixture
def app_config(tmp_path):
    (tmp_path / "app.properties").write_text(SOURCE, encoding="utf-8")
    (tmp_path / "glossary.csv").write_text("en,de\nHello,Hallo\n", encoding="utf-8")
    return AppConfig(
        project_root=str(tmp_path),
        input_file=str(tmp_path / "app.properties"),
        previous_file=None,
        output_file_format=str(tmp_path / "out" / "app_{lang}.properties"),
        cache_dir=str(tmp_path / "cache"),
        source_language="en",
        language_codes={"de": "German", "fr": "French"},
        glossary_name_format="glossary-{lang}",
        glossary_store_dir=str(tmp_path / "store"),
        glossary_source_file=str(tmp_path / "glossary.csv"),
        glossary_creation_timeout_minutes=1,
        glossary_poll_interval_seconds=0.01,
        change_detection="content",
        validate_placeholders=True,
        model_name="gpt-4o-mini",
        max_concurrent_languages=2,
        dry_run=True,
        show_progress=False,
        openai_client=None,
    )


def invoke(app_config, args, translator=None):
    runner = CliRunner()
    with patch("src.translate_properties.load_app_config", return_value=app_config):
        if translator is None:
            return runner.invoke(cli, args)
        with patch("src.translate_properties.build_translator", return_value=translator):
            return runner.invoke(cli, args)


def test_translate_writes_output_per_language(app_config, tmp_path):
    result = invoke(app_config, ["translate", "de", "fr"], translator=FakeTranslator())

    assert result.exit_code == 0, result.output
    assert "de: 2 translated, 0 reused, 0 failed" in result.output
    assert (tmp_path / "out" / "app_de.properties").read_text(encoding="utf-8") == \
        "# Screen\ngreeting=[de] Hello\nfarewell=[de] Goodbye\n"
    assert (tmp_path / "out" / "app_fr.properties").read_text(encoding="utf-8") == \
        "# Screen\ngreeting=[fr] Hello\nfarewell=[fr] Goodbye\n"
    assert (tmp_path / "store" / "glossaries" / "glossary-de.json").exists()


def test_dry_run_copies_source_text(app_config, tmp_path):
    result = invoke(app_config, ["--dry-run", "translate", "de"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "out" / "app_de.properties").read_text(encoding="utf-8") == SOURCE


def test_previous_file_is_updated_after_clean_run(app_config, tmp_path):
    backup = tmp_path / "app.properties.bak"
    backup.write_text("# Screen\ngreeting=Hello\n", encoding="utf-8")
    translator = FakeTranslator()

    result = invoke(app_config, ["translate", "de", "--previous", str(backup)], translator=translator)

    assert result.exit_code == 0, result.output
    assert [call[0] for call in translator.calls] == ["Hello", "Goodbye"]
    assert backup.read_text(encoding="utf-8") == SOURCE


def test_previous_file_is_kept_when_entries_fail(app_config, tmp_path):
    backup = tmp_path / "app.properties.bak"
    backup.write_text("# Screen\n", encoding="utf-8")

    result = invoke(app_config, ["translate", "de", "--previous", str(backup)],
                    translator=FakeTranslator(fail_on={"Goodbye"}))

    assert result.exit_code == 0, result.output
    assert "1 failed" in result.output
    assert backup.read_text(encoding="utf-8") == "# Screen\n"


def test_unsupported_language_is_rejected(app_config):
    result = invoke(app_config, ["translate", "xx"], translator=FakeTranslator())

    assert result.exit_code != 0
    assert "Unsupported language(s): xx" in result.output


def test_delete_glossary_command(app_config):
    invoke(app_config, ["translate", "de"], translator=FakeTranslator())

    result = invoke(app_config, ["delete-glossary", "de", "fr"])

    assert result.exit_code == 0, result.output
    assert "de: deleted" in result.output
    assert "fr: not found" in result.output


def test_update_glossary_command(app_config, tmp_path):
    new_source = tmp_path / "new_glossary.csv"
    new_source.write_text("en,de\nHello,Servus\nWallet,Geldbörse\n", encoding="utf-8")

    result = invoke(app_config, ["update-glossary", "de", "--source", str(new_source)])

    assert result.exit_code == 0, result.output
    assert "Glossary glossary-de ready with 2 entries." in result.output


def test_update_glossary_rejects_bad_language(app_config):
    result = invoke(app_config, ["update-glossary", "german!", "--source", app_config.glossary_source_file])

    assert result.exit_code != 0
    assert "Glossary update failed" in result.output


def test_check_supported_languages_without_list_accepts_anything(app_config):
    app_config.language_codes = {}
    check_supported_languages(app_config, ["xx"])
    app_config.language_codes = {"de": "German"}
    with pytest.raises(ConfigurationError):
        check_supported_languages(app_config, ["de", "xx"])
