"""Subject record access by dotted path.

A subject is any nested structure of mappings and sequences. Paths such as
`"scales.qol"` or `"visits.0.date"` walk into it one segment at a time; a
segment that cannot be resolved yields `None` instead of raising.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Sequence
from typing import Any

import polars as pl

type Subject = Mapping[str, Any]

type Subjects = Sequence[Subject] | pl.DataFrame


def get_path(subject: Any, path: str) -> Any:
    """Resolve a dotted path against a subject.

    Args:
        subject (Any): The record to read from.
        path (str): Dot-separated segments; integer segments index sequences.

    Returns:
        Any: The resolved value, or `None` when any segment is missing.

    Examples:
        >>> get_path({"scales": {"qol": 7}}, "scales.qol")
        7
        >>> get_path({"visits": [{"bmi": 22.5}]}, "visits.0.bmi")
        22.5
        >>> get_path({"scales": None}, "scales.qol") is None
        True
    """
    value = subject
    for segment in path.split("."):
        if isinstance(value, Mapping):
            if segment not in value:
                return None
            value = value[segment]
        elif isinstance(value, Sequence) and not isinstance(value, str) and segment.lstrip("-").isdigit():
            index = int(segment)
            if not -len(value) <= index < len(value):
                return None
            value = value[index]
        else:
            return None
    return value


def set_path(subject: MutableMapping[str, Any], path: str, value: Any) -> None:
    """Assign `value` at a dotted path, creating intermediate mappings as needed.

    Args:
        subject (MutableMapping[str, Any]): The record to modify in place.
        path (str): Dot-separated segments.
        value (Any): The value to store.

    Examples:
        >>> record = {}
        >>> set_path(record, "scales.qol", 7)
        >>> record
        {'scales': {'qol': 7}}
    """
    *parents, leaf = path.split(".")
    target: MutableMapping[str, Any] = subject
    for segment in parents:
        child = target.get(segment)
        if not isinstance(child, MutableMapping):
            child = {}
            target[segment] = child
        target = child
    target[leaf] = value


def as_subjects(subjects: Subjects) -> list[Subject]:
    """Normalize the accepted subject containers to a list of mappings.

    A `polars.DataFrame` is converted row by row; struct columns become nested
    mappings, so dotted paths reach into them exactly as for plain dicts.

    Args:
        subjects (Subjects): A sequence of mappings or a Polars DataFrame.

    Returns:
        list[Subject]: One mapping per subject.
    """
    if isinstance(subjects, pl.DataFrame):
        return subjects.to_dicts()
    return list(subjects)
