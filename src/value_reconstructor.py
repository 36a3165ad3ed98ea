"""
Map property values to and from the flat strings sent for translation.

``flatten_entry`` joins a (possibly continued) value into one line of text.
``rebuild_entry`` pours a flat translated string back into the physical line
layout of the original entry. The re-wrap is driven purely by the original
line lengths, so a split may fall in the middle of a word.
"""
import re
from typing import Sequence, Tuple

from src.logging_config import get_logger
from src.properties_parser import EntryType, ResourceEntry, find_separator, is_continuation_line

logger = get_logger(__name__)

_CONTINUATION_PATTERN = re.compile(r'\s*\\\r?\n\s*')
_LINE_BREAK_PATTERN = re.compile(r'\s*[\r\n]+\s*')


def _leading_whitespace(s: str) -> str:
    return s[:len(s) - len(s.lstrip())]


def _split_prefix(original_lines: Sequence[str], key: str) -> Tuple[str, str]:
    """
    Split the first physical line into its ``key=`` prefix and the value text.

    Whitespace right after the separator stays with the prefix so that
    ``key = value`` keeps its spacing.
    """
    first_line = original_lines[0]
    sep_index = find_separator(first_line)
    if sep_index == -1:
        return f"{key}=", ''
    value = first_line[sep_index + 1:]
    value_start = sep_index + 1 + len(_leading_whitespace(value))
    return first_line[:value_start], first_line[value_start:]


def flatten_entry(entry: ResourceEntry) -> Tuple[str, str]:
    """
    Return ``(key, text)`` where ``text`` is the value as a single line.

    Continuation markers and the indentation around them collapse into one
    space. Entries without a separator have an empty value.
    """
    joined = '\n'.join(entry.lines)
    sep_index = find_separator(entry.lines[0])
    if sep_index == -1:
        return entry.key, ''
    content = joined[sep_index + 1:]
    return entry.key, _CONTINUATION_PATTERN.sub(' ', content).strip()


def rebuild_entry(key: str, original_lines: Sequence[str], translated_text: str) -> ResourceEntry:
    """
    Lay ``translated_text`` out over the same physical lines as the original.

    Each continued line receives a slice as long as its original text minus
    the backslash, followed by `` \\``. The last line, or the first line that
    does not continue, absorbs everything left over.

    Args:
        key: The property key.
        original_lines: The physical lines of the source entry.
        translated_text: The flat translated value.

    Returns:
        ResourceEntry: A PROPERTY entry for the translated value.
    """
    prefix, first_value = _split_prefix(original_lines, key)
    layout = [first_value] + list(original_lines[1:])
    # Physical lines come only from the original layout.
    remaining = _LINE_BREAK_PATTERN.sub(' ', translated_text).strip()
    line_ending = '\r' if original_lines[-1].endswith('\r') else ''
    parts = [prefix]

    for i, original_line in enumerate(layout):
        trimmed = original_line.strip()
        if i > 0:
            parts.append('\n')
            parts.append(_leading_whitespace(original_line))
        if i == len(layout) - 1 or not is_continuation_line(trimmed):
            parts.append(remaining)
            remaining = ''
            break
        split_index = min(len(trimmed) - 1, len(remaining))
        parts.append(remaining[:split_index].strip() + ' \\')
        remaining = remaining[split_index:].strip()

    # Lines left empty by a short translation must not leave the final line
    # continued.
    result = ''.join(parts).strip()
    while is_continuation_line(result):
        result = result[:-1].strip()

    # CRLF files keep their '\r' on every physical line.
    lines = tuple(line + line_ending for line in result.split('\n'))
    return ResourceEntry(key, lines, EntryType.PROPERTY)
