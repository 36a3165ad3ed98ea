import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from src.logging_config import get_logger

logger = get_logger(__name__)


class EntryType(Enum):
    PROPERTY = "property"
    COMMENT = "comment"
    EMPTY_LINE = "empty_line"


@dataclass(frozen=True)
class ResourceEntry:
    """
    One logical unit of a .properties file.

    ``lines`` holds the raw physical lines exactly as they appeared in the
    source, without line terminators. For PROPERTY entries, every line but the
    last ends in a continuation backslash.
    """
    key: str
    lines: Tuple[str, ...]
    kind: EntryType

    def __post_init__(self):
        if not self.lines:
            raise ValueError(f"Entry '{self.key}' must contain at least one line")
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, 'lines', tuple(self.lines))

    @property
    def is_property(self) -> bool:
        return self.kind is EntryType.PROPERTY


# Documents are immutable once parsed; transformations build new tuples.
ResourceDocument = Tuple[ResourceEntry, ...]


def _has_unescaped_trailing_backslash(s: str) -> bool:
    """Check if a string ends with an odd number of backslashes."""
    if not s.endswith('\\'):
        return False
    # Count trailing backslashes
    count = 0
    i = len(s) - 1
    while i >= 0 and s[i] == '\\':
        count += 1
        i -= 1
    # An odd number of trailing backslashes indicates an unescaped one
    return count % 2 == 1


def is_continuation_line(line: str) -> bool:
    """True if the physical line continues onto the next one."""
    return _has_unescaped_trailing_backslash(line.rstrip())


def find_separator(line: str) -> int:
    """
    Return the index of the first unescaped ``=`` in ``line``, or -1.

    A separator preceded by an odd number of backslashes is escaped and
    belongs to the key.
    """
    for j, char in enumerate(line):
        if char == '=':
            backslash_count = 0
            k = j - 1
            while k >= 0 and line[k] == '\\':
                backslash_count += 1
                k -= 1
            if backslash_count % 2 == 0:
                return j
    return -1


def parse_lines(lines: Iterable[str]) -> ResourceDocument:
    """
    Parse physical lines into a document without losing any text.

    Args:
        lines: The lines of a .properties file, without line terminators.

    Returns:
        ResourceDocument: Entries whose concatenated lines equal the input.
    """
    entries: List[ResourceEntry] = []
    current_key: Optional[str] = None
    current_kind: Optional[EntryType] = None
    current_lines: List[str] = []

    def flush():
        if current_kind is not None:
            entries.append(ResourceEntry(current_key, tuple(current_lines), current_kind))

    for line in lines:
        stripped_line = line.strip()

        if stripped_line.startswith('#'):
            flush()
            current_key, current_kind, current_lines = line, EntryType.COMMENT, [line]
        elif not stripped_line:
            flush()
            current_key, current_kind, current_lines = '', EntryType.EMPTY_LINE, [line]
        elif current_kind is EntryType.PROPERTY and is_continuation_line(current_lines[-1]):
            current_lines.append(line)
        else:
            flush()
            sep_index = find_separator(line)
            if sep_index != -1 and line[:sep_index].strip():
                key = line[:sep_index].strip()
            else:
                # A bare key with no value.
                key = stripped_line
            current_key, current_kind, current_lines = key, EntryType.PROPERTY, [line]

    flush()
    return tuple(entries)


def serialize_document(document: Iterable[ResourceEntry]) -> List[str]:
    """Flatten a document back into its physical lines."""
    return [line for entry in document for line in entry.lines]


def parse_text(content: str) -> ResourceDocument:
    """Parse the full text of a file. ``\\r`` is kept as part of each line."""
    if not content:
        return ()
    lines = content.split('\n')
    if content.endswith('\n'):
        lines.pop()
    return parse_lines(lines)


def document_to_text(document: Iterable[ResourceEntry]) -> str:
    """Render a document as file content, terminating every line."""
    return ''.join(f"{line}\n" for line in serialize_document(document))


def property_index(document: Iterable[ResourceEntry]) -> Dict[str, ResourceEntry]:
    """Map each PROPERTY key to its first occurrence in the document."""
    index: Dict[str, ResourceEntry] = {}
    for entry in document:
        if entry.is_property and entry.key not in index:
            index[entry.key] = entry
    return index


def read_properties_file(file_path: str) -> ResourceDocument:
    """
    Read and parse a UTF-8 .properties file.

    A missing file yields an empty document rather than an error.
    """
    if not os.path.exists(file_path):
        logger.warning("Properties file does not exist: %s. Using an empty document.", file_path)
        return ()

    logger.info("Reading properties file: %s", file_path)
    with open(file_path, 'r', encoding='utf-8', newline='') as file:
        content = file.read()
    document = parse_text(content)
    logger.info("Read %d entries from '%s'", len(document), file_path)
    return document


def write_properties_file(document: Iterable[ResourceEntry], file_path: str) -> None:
    """Write a document to ``file_path`` as UTF-8, creating parent folders."""
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8', newline='') as file:
        file.write(document_to_text(document))
    logger.info("Wrote properties file: %s", file_path)
