"""Reversible filename encoding for reserved extensions.

Some instrument-data formats (KLARF, STIF and numbered ``.000``-``.999`` result
files) are rejected by the upstream attachment store's MIME/extension filter.
Before upload their names are rewritten so the real extension is hidden in the
base name and a neutral ``.DOLI`` extension is appended:

    report.klarf  ->  report#$klarf.DOLI
    result.025    ->  result#$025.DOLI

``decode`` reverses the transformation when listing or downloading.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ENCODED_SUFFIX = "DOLI"
ENCODED_MARKER = "#$"

_ENCODED_NAME_RE = re.compile(r"^(.+)#\$([^.]+)\.DOLI$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class ReservedExtension:
    """An extension that is always allowed and always re-encoded.

    Attributes:
        name: Lower-case extension without the leading dot.
        synthetic: True for generated numeric placeholders that should never
            be listed in user-facing labels.
    """

    name: str
    synthetic: bool = False


NAMED_RESERVED_EXTENSIONS: tuple[ReservedExtension, ...] = (
    ReservedExtension("klarf"),
    ReservedExtension("stif"),
)

NUMERIC_RESERVED_EXTENSIONS: tuple[ReservedExtension, ...] = tuple(
    ReservedExtension(f"{i:03d}", synthetic=True) for i in range(1000)
)

RESERVED_EXTENSIONS: tuple[ReservedExtension, ...] = (
    NAMED_RESERVED_EXTENSIONS + NUMERIC_RESERVED_EXTENSIONS
)

_RESERVED_NAMES: frozenset[str] = frozenset(ext.name for ext in RESERVED_EXTENSIONS)


def extension_of(filename: str) -> str:
    """Return the lower-cased text after the last dot, or "" if there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def is_reserved(extension: str) -> bool:
    return extension.lower() in _RESERVED_NAMES


def encode(original_name: str) -> str:
    """Return the name the remote store should see for ``original_name``.

    Names whose extension is not reserved are returned unchanged.
    """
    ext = extension_of(original_name)
    if not ext or not is_reserved(ext):
        return original_name
    base_name = original_name.rsplit(".", 1)[0]
    return f"{base_name}{ENCODED_MARKER}{ext}.{ENCODED_SUFFIX}"


def decode(stored_name: str) -> str:
    """Return the original filename for a stored name, or the input if not encoded."""
    match = _ENCODED_NAME_RE.match(stored_name)
    if match is None:
        return stored_name
    return f"{match.group(1)}.{match.group(2)}"
