"""Per-language store of the last translated output."""
import os
import tempfile

from src.logging_config import get_logger
from src.properties_parser import ResourceDocument, document_to_text, read_properties_file

logger = get_logger(__name__)


class TranslationCache:
    """
    Keeps one ``.properties`` file per target language under ``cache_dir``.

    The cache is read once at the start of a run and replaced in a single
    atomic rename at the end, so an interrupted run leaves the previous cache
    intact.
    """

    def __init__(self, cache_dir: str, file_format: str = "cache_{lang}.properties"):
        self.cache_dir = cache_dir
        self.file_format = file_format

    def path_for(self, target_language: str) -> str:
        return os.path.join(self.cache_dir, self.file_format.format(lang=target_language))

    def exists(self, target_language: str) -> bool:
        return os.path.exists(self.path_for(target_language))

    def load(self, target_language: str) -> ResourceDocument:
        path = self.path_for(target_language)
        if not os.path.exists(path):
            logger.info("No translation cache for '%s' at %s. Starting fresh.", target_language, path)
            return ()
        return read_properties_file(path)

    def save(self, target_language: str, document: ResourceDocument) -> str:
        path = self.path_for(target_language)
        directory = os.path.dirname(path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.cache_', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(document_to_text(document))
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info("Saved translation cache for '%s' (%d entries) to %s", target_language, len(document), path)
        return path
