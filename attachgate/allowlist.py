"""Extension allowlist built from free-text configuration."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from attachgate.codec import RESERVED_EXTENSIONS, extension_of
from attachgate.models import HasName

_TOKEN_SPLIT_RE = re.compile(r"[\s,]+")

F = TypeVar("F", bound=HasName)


@dataclass(frozen=True)
class AllowedExtensions:
    """Merged set of reserved and user-configured extensions.

    ``names`` keeps display order: reserved entries first, then user entries in
    the order they were first seen. ``hidden`` holds the entries that must not
    appear in labels shown to users.
    """

    names: tuple[str, ...]
    hidden: frozenset[str] = frozenset()
    _lookup: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Use object.__setattr__ because dataclass is frozen
        object.__setattr__(self, "_lookup", frozenset(self.names))

    def __contains__(self, extension: object) -> bool:
        return isinstance(extension, str) and extension.lower() in self._lookup

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def as_set(self) -> frozenset[str]:
        return self._lookup

    def label(self) -> str:
        """Upper-cased, comma separated list of the visible extensions."""
        return ", ".join(name.upper() for name in self.names if name not in self.hidden)


def _user_tokens(config_string: object) -> list[str]:
    if not isinstance(config_string, str) or not config_string.strip():
        return []
    tokens = (token.removeprefix(".") for token in _TOKEN_SPLIT_RE.split(config_string))
    return [token.lower() for token in tokens if token]


def parse_allowed(config_string: object) -> AllowedExtensions:
    """Parse a free-text extension list and merge it with the reserved set.

    Tokens are separated by whitespace and/or commas; a leading dot is
    stripped and case is ignored. Empty or non-string input yields exactly the
    reserved set.

    Example:
        >>> allowed = parse_allowed("pdf, .docx PDF")
        >>> "docx" in allowed
        True
    """
    names: dict[str, None] = {}
    hidden: set[str] = set()
    for reserved in RESERVED_EXTENSIONS:
        names[reserved.name] = None
        if reserved.synthetic:
            hidden.add(reserved.name)
    for token in _user_tokens(config_string):
        names.setdefault(token, None)
    return AllowedExtensions(names=tuple(names), hidden=frozenset(hidden))


def partition_by_extension(
    files: Iterable[F], allowed: AllowedExtensions
) -> tuple[list[F], list[F]]:
    """Split files into (accepted, rejected) by extension membership."""
    accepted: list[F] = []
    rejected: list[F] = []
    for file in files:
        (accepted if extension_of(file.name) in allowed else rejected).append(file)
    return accepted, rejected


def _quoted_names(files: Sequence[HasName]) -> str:
    return ", ".join(f'"{file.name}"' for file in files)


def rejection_message(rejected: Sequence[HasName], allowed: AllowedExtensions) -> str:
    if len(rejected) == 1:
        subject = f"File {_quoted_names(rejected)} is"
    else:
        subject = f"Files {_quoted_names(rejected)} are"
    return f"{subject} not allowed. Accepted types: {allowed.label()}."


def hint_text(config_string: object) -> str:
    """Short hint listing the extensions a user may drop."""
    visible_defaults = ", ".join(
        ext.name.upper() for ext in RESERVED_EXTENSIONS if not ext.synthetic
    )
    user = [
        name.upper()
        for name in parse_allowed(config_string).names[len(RESERVED_EXTENSIONS) :]
    ]
    if not user:
        return f"Default Allowed: {visible_defaults}"
    return f"Allowed: {visible_defaults}, {', '.join(user)}"
