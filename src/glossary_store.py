"""
Filesystem-backed glossary backend.

Glossary sources are CSV files with one column per language code, e.g.::

    en,de,fr
    Wallet,Wallet,Portefeuille
    Trade,Handel,Échange

Compiled glossaries are stored as JSON under ``<store_dir>/glossaries``.
Creation runs on a thread pool and the returned ``Future`` is the pending
operation, so callers poll and cancel it exactly as they would a remote one.
"""
import csv
import json
import os
import shutil
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional

from src.errors import ApiErrorCode, GlossaryApiError, GlossaryNotFoundError
from src.glossary_lifecycle import Glossary, GlossarySpec
from src.logging_config import get_logger

logger = get_logger(__name__)


def _read_header(csv_path: str) -> List[str]:
    with open(csv_path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        return [column.strip() for column in next(reader, [])]


def load_glossary_terms(csv_path: str, source_language: str, target_language: str) -> Dict[str, str]:
    """
    Read the ``source -> target`` term pairs for one language from a CSV source.

    Raises:
        GlossaryApiError: NOT_FOUND if the file is missing, INVALID_ARGUMENT if
            either language has no column.
    """
    if not os.path.exists(csv_path):
        raise GlossaryApiError(ApiErrorCode.NOT_FOUND, f"Glossary source '{csv_path}' does not exist")

    header = [column.lower() for column in _read_header(csv_path)]
    try:
        source_column = header.index(source_language.lower())
        target_column = header.index(target_language.lower())
    except ValueError:
        raise GlossaryApiError(
            ApiErrorCode.INVALID_ARGUMENT,
            f"Glossary source '{csv_path}' has no column for '{source_language}' or '{target_language}'"
        )

    terms: Dict[str, str] = {}
    with open(csv_path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if len(row) <= max(source_column, target_column):
                continue
            source_term = row[source_column].strip()
            target_term = row[target_column].strip()
            if source_term and target_term:
                terms[source_term] = target_term
    return terms


class CsvGlossarySourceInspector:
    """Answers whether the glossary CSV has a column for a language."""

    def __init__(self, source_path: str):
        self.source_path = source_path

    def contains_language(self, target_language: str) -> bool:
        if not os.path.exists(self.source_path):
            logger.error("Glossary source file not found: %s", self.source_path)
            return False
        try:
            header = _read_header(self.source_path)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            logger.error("Error reading glossary source '%s': %s", self.source_path, exc)
            return False

        if any(column.lower() == target_language.lower() for column in header):
            logger.info("Found target language %s in glossary source", target_language)
            return True
        logger.warning("Target language %s not found in glossary source", target_language)
        return False


class LocalGlossaryBackend:
    """Glossary backend that compiles CSV sources into JSON files on disk."""

    def __init__(self, store_dir: str, executor: Optional[ThreadPoolExecutor] = None):
        self.store_dir = store_dir
        self.glossary_dir = os.path.join(store_dir, 'glossaries')
        self.source_dir = os.path.join(store_dir, 'sources')
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix='glossary')
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True, cancel_futures=True)

    def _glossary_path(self, name: str) -> str:
        return os.path.join(self.glossary_dir, f"{name}.json")

    def get(self, name: str) -> Glossary:
        path = self._glossary_path(name)
        if not os.path.exists(path):
            raise GlossaryNotFoundError(name)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return Glossary(
                name=data['name'],
                source_language=data['source_language'],
                target_language=data['target_language'],
                terms=data.get('terms', {}),
            )
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise GlossaryApiError(ApiErrorCode.INTERNAL, f"Corrupt glossary file '{path}': {exc!r}") from exc
        except OSError as exc:
            raise GlossaryApiError(ApiErrorCode.INTERNAL, f"Could not read glossary file '{path}': {exc}") from exc

    def start_create(self, spec: GlossarySpec) -> "Future[Glossary]":
        return self._executor.submit(self._create, spec)

    def _create(self, spec: GlossarySpec) -> Glossary:
        terms = load_glossary_terms(spec.input_uri, spec.source_language, spec.target_language)
        glossary = Glossary(spec.name, spec.source_language, spec.target_language, terms)
        payload = {
            'name': glossary.name,
            'source_language': glossary.source_language,
            'target_language': glossary.target_language,
            'input_uri': spec.input_uri,
            'terms': terms,
        }
        with self._lock:
            path = self._glossary_path(spec.name)
            if os.path.exists(path):
                raise GlossaryApiError(ApiErrorCode.ALREADY_EXISTS, f"Glossary '{spec.name}' already exists")
            os.makedirs(self.glossary_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.glossary_dir, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        logger.info("Compiled glossary '%s' with %d entries", spec.name, len(terms))
        return glossary

    def delete(self, name: str) -> None:
        with self._lock:
            path = self._glossary_path(name)
            if not os.path.exists(path):
                raise GlossaryNotFoundError(name)
            os.remove(path)

    def upload_source(self, file_path: str, target_language: str) -> str:
        """Copy a glossary CSV into the store and return its stored location."""
        if not os.path.exists(file_path):
            raise GlossaryApiError(ApiErrorCode.NOT_FOUND, f"Glossary file '{file_path}' does not exist")
        os.makedirs(self.source_dir, exist_ok=True)
        destination = os.path.join(self.source_dir, f"glossary_{target_language.lower()}.csv")
        shutil.copy2(file_path, destination)
        logger.info("Uploaded glossary source %s to %s", file_path, destination)
        return destination
