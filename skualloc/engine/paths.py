"""Hierarchy path model.

A SKU record maps to an ordered tuple of segments: its non-empty values for
the hierarchy columns in level order, optionally followed by the SKU code.
Inside the engine paths are handled as segment tuples; they are flattened
to ``/``-joined strings only for storage and the API. The separator is not
escaped, so a value containing ``/`` can make two different nodes share a
key. Import logs such values (see ``etl.sku_import``).
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from skualloc.config import Config

PATH_SEPARATOR = Config.PATH_SEPARATOR

Segments = Tuple[str, ...]


def ordered_definitions(definitions: Iterable) -> List:
    """Return hierarchy definitions sorted by level."""
    return sorted(definitions, key=lambda d: d.level)


def _values_of(record) -> dict:
    values = getattr(record, "hierarchy_values", None)
    if values is None and isinstance(record, dict):
        values = record
    return values or {}


def path_segments(record, definitions: Sequence, depth: int) -> Segments:
    """Segments for the first ``depth`` hierarchy levels of a record.
    
    Absent or empty values are skipped, so the result can be shorter
    than ``depth``.
    """
    values = _values_of(record)
    segments = []
    for definition in ordered_definitions(definitions)[:depth]:
        value = values.get(definition.column_name)
        if value:
            segments.append(str(value))
    return tuple(segments)


def build_path(record, definitions: Sequence, depth: int) -> str:
    """Join the record's values for levels 1..depth with the separator.
    
    Returns an empty string when the record has no value at any of the
    requested levels.
    """
    return join_path(path_segments(record, definitions, depth))


def sku_segments(record, definitions: Sequence) -> Segments:
    """Segments of the SKU leaf: all hierarchy values plus the SKU code."""
    return path_segments(record, definitions, len(definitions)) + (str(record.sku_code),)


def sku_path(record, definitions: Sequence) -> str:
    """Path of the SKU leaf node (just the SKU code when no values exist)."""
    return join_path(sku_segments(record, definitions))


def join_path(segments: Iterable[str]) -> str:
    return PATH_SEPARATOR.join(segments)


def split_path(path: str) -> Segments:
    if not path:
        return ()
    return tuple(path.split(PATH_SEPARATOR))


def parent_path(path: str) -> Optional[str]:
    """Path with the last segment removed; None for a top-level path."""
    segments = split_path(path)
    if len(segments) <= 1:
        return None
    return join_path(segments[:-1])


def path_depth(path: str) -> int:
    return len(split_path(path))


def is_prefix(prefix: Segments, segments: Segments) -> bool:
    """True when ``prefix`` is a leading run of ``segments``."""
    return len(prefix) <= len(segments) and tuple(segments[:len(prefix)]) == tuple(prefix)


def contains_separator(value) -> bool:
    return value is not None and PATH_SEPARATOR in str(value)
