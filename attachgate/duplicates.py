"""Duplicate detection against attachments already known to the widget."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from attachgate.codec import encode
from attachgate.models import HasName, Preview

F = TypeVar("F", bound=HasName)


def partition_by_duplicate(
    files: Iterable[F], existing_previews: Iterable[Preview]
) -> tuple[list[F], list[F]]:
    """Split files into (unique, duplicates).

    Existing previews are matched by stored name, or by the name an unsaved
    preview will be stored under. Incoming files are compared by their encoded name, so
    ``result.025`` collides with an already stored ``result#$025.DOLI``.
    Comparison ignores case. A file repeated within ``files`` is a duplicate
    of its first occurrence.
    """
    known = {preview.lookup_name for preview in existing_previews}
    unique: list[F] = []
    duplicates: list[F] = []
    for file in files:
        encoded_name = encode(file.name).lower()
        if encoded_name in known:
            duplicates.append(file)
            continue
        known.add(encoded_name)
        unique.append(file)
    return unique, duplicates


def duplicate_message(duplicates: Sequence[HasName]) -> str:
    names = ", ".join(f'"{file.name}"' for file in duplicates)
    if len(duplicates) == 1:
        return f"File {names} is already attached. Duplicate files are not allowed."
    return f"Files {names} are already attached. Duplicate files are not allowed."
