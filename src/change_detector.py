"""Detect which properties changed between two versions of a source file."""
import difflib
from typing import FrozenSet, Iterable, List, Tuple

from src.logging_config import get_logger
from src.properties_parser import ResourceEntry, property_index

logger = get_logger(__name__)

ChangeSet = FrozenSet[str]

CONTENT_POLICY = "content"
EDIT_SCRIPT_POLICY = "edit_script"


def diff_documents(previous: Iterable[ResourceEntry], current: Iterable[ResourceEntry]) -> ChangeSet:
    """
    Return the keys of PROPERTY entries that are new or modified in ``current``.

    Entries are compared line by line. Keys removed from ``current`` are not
    reported, and comments and blank lines never take part.
    """
    previous_index = property_index(previous)
    changed = set()

    for entry in current:
        if not entry.is_property:
            continue
        previous_entry = previous_index.get(entry.key)
        if previous_entry is None:
            logger.info("New entry detected - Key: %s", entry.key)
            changed.add(entry.key)
        elif previous_entry.lines != entry.lines:
            logger.info("Modified entry detected - Key: %s", entry.key)
            logger.debug("  Original value: %s", ''.join(previous_entry.lines))
            logger.debug("  New value: %s", ''.join(entry.lines))
            changed.add(entry.key)

    logger.info("Total modified/new entries detected: %d", len(changed))
    return frozenset(changed)


def _property_sequence(document: Iterable[ResourceEntry]) -> List[Tuple[str, Tuple[str, ...]]]:
    return [(entry.key, entry.lines) for entry in document if entry.is_property]


def diff_documents_by_edit_script(previous: Iterable[ResourceEntry], current: Iterable[ResourceEntry]) -> ChangeSet:
    """
    Order-sensitive alternative to :func:`diff_documents`.

    Computes an edit script over the ordered ``(key, lines)`` pairs and flags
    every key of ``current`` touched by an insert or replace block. A property
    that only moved is reported as changed here, unlike the content policy.
    """
    old_sequence = _property_sequence(previous)
    new_sequence = _property_sequence(current)
    matcher = difflib.SequenceMatcher(a=old_sequence, b=new_sequence, autojunk=False)

    changed = set()
    for tag, _i1, _i2, j1, j2 in matcher.get_opcodes():
        if tag in ('insert', 'replace'):
            changed.update(key for key, _lines in new_sequence[j1:j2])

    logger.info("Total keys touched by edit script: %d", len(changed))
    return frozenset(changed)


def get_change_detector(policy: str):
    """Resolve a ``change_detection`` setting to its diff function."""
    if policy == CONTENT_POLICY:
        return diff_documents
    if policy == EDIT_SCRIPT_POLICY:
        return diff_documents_by_edit_script
    raise ValueError(f"Unknown change detection policy: {policy!r}")
