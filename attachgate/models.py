"""Data types shared by the attachment pipeline."""

from __future__ import annotations

import asyncio
import logging
import ntpath
import os
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from attachgate.codec import decode, encode, extension_of
from attachgate.notifications import Toast

logger = logging.getLogger(__name__)

_FILE_TYPES: dict[str, frozenset[str]] = {
    "image": frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp"}),
    "pdf": frozenset({"pdf"}),
    "doc": frozenset({"doc", "docx"}),
    "sheet": frozenset({"xls", "xlsx", "csv"}),
    "archive": frozenset({"zip", "rar", "7z", "tar", "gz"}),
    "text": frozenset({"txt", "log", "md"}),
    "code": frozenset({"xml", "json", "js", "ts", "html", "css", "py", "java"}),
}


class HasName(Protocol):
    """Anything with a filename; raw files and previews both qualify."""

    @property
    def name(self) -> str: ...


def file_type_for(filename: str) -> str:
    """Coarse file category used by the presentation layer to pick an icon."""
    ext = extension_of(filename)
    for file_type, extensions in _FILE_TYPES.items():
        if ext in extensions:
            return file_type
    return "other"


def format_size(size_bytes: Any) -> str:
    """Human readable size, e.g. ``512 B``, ``1.5 KB``, ``2.00 MB``."""
    try:
        size = float(size_bytes or 0)
    except (TypeError, ValueError):
        size = 0
    if size < 1024:
        return f"{int(size)} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def _sanitize_filename(filename: str) -> str:
    """Remove path components from filename, returning just the basename."""
    stripped = filename.rstrip("/\\")
    return os.path.basename(ntpath.basename(stripped))


class AttachmentRecord(BaseModel):
    """Attachment metadata as returned by the remote attachment service.

    Attributes:
        id: Remote record identifier (``sys_id``)
        stored_name: Filename as persisted remotely, possibly encoded
        size_bytes: Size of the stored content
        content_type: MIME type recorded by the service
        created_on: Creation timestamp as rendered by the service
        created_by: User that created the attachment
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="sys_id")
    stored_name: str = Field(alias="file_name")
    size_bytes: int = Field(default=0, alias="size_bytes")
    content_type: str = Field(default="", alias="content_type")
    created_on: Optional[str] = Field(default=None, alias="sys_created_on")
    created_by: Optional[str] = Field(default=None, alias="sys_created_by")

    @field_validator("size_bytes", mode="before")
    @classmethod
    def coerce_size(cls, v: Any) -> int:
        """Display values come back as strings and may be blank."""
        if v is None or v == "":
            return 0
        try:
            return int(float(str(v).replace(",", "")))
        except ValueError:
            return 0

    @field_validator("created_on", "created_by", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return v or None


class PreviewStatus(str, Enum):
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Preview:
    """Renderable projection of an attachment, uploaded or still in flight.

    Attributes:
        local_id: Client-side handle, stable for the preview's whole lifetime.
        remote_id: Remote record id, known only once the service stored the file.
        stored_name: Remote (possibly encoded) filename.
        name: Decoded name shown to the user.
        size_bytes: File size.
        file_type: Category from :func:`file_type_for`.
        status: One of :class:`PreviewStatus`.
        progress: Percentage shown by the progress bar.
        uploaded_on: Remote creation timestamp.
    """

    local_id: str
    name: str
    size_bytes: int
    file_type: str
    status: PreviewStatus
    progress: int
    remote_id: Optional[str] = None
    stored_name: Optional[str] = None
    uploaded_on: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def is_saved(self) -> bool:
        return self.remote_id is not None

    @property
    def lookup_name(self) -> str:
        """Name used for duplicate detection.

        Unsaved previews use the name their file will be stored under.
        """
        return (self.stored_name or encode(self.name)).lower()

    @classmethod
    def from_record(cls, record: AttachmentRecord) -> Preview:
        name = decode(record.stored_name)
        return cls(
            local_id=record.id,
            remote_id=record.id,
            stored_name=record.stored_name,
            name=name,
            size_bytes=record.size_bytes,
            file_type=file_type_for(name),
            status=PreviewStatus.DONE,
            progress=100,
            uploaded_on=record.created_on,
        )

    @classmethod
    def optimistic(cls, file: LocalFile) -> Preview:
        return cls(
            local_id=f"local_{uuid.uuid4().hex}",
            name=file.name,
            size_bytes=file.size,
            file_type=file_type_for(file.name),
            status=PreviewStatus.UPLOADING,
            progress=50,
        )

    def failed(self) -> Preview:
        return replace(self, status=PreviewStatus.ERROR, progress=0)


@dataclass(frozen=True)
class LocalFile:
    """A raw file handed over by the presentation layer (picker or drop).

    Content is either held in memory or read lazily from ``path``.
    Use :meth:`from_path` or :meth:`from_bytes` rather than the constructor.
    """

    name: str
    size: int
    content_type: Optional[str] = None
    path: Optional[Path] = field(default=None, repr=False)
    content: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        original_name = self.name
        sanitized = _sanitize_filename(original_name)
        if not sanitized:
            raise ValueError("File name cannot be empty")
        if sanitized != original_name:
            object.__setattr__(self, "name", sanitized)
            logger.warning(
                "File name contained path components, sanitized from '%s' to '%s'",
                original_name,
                sanitized,
            )
        if self.path is None and self.content is None:
            raise ValueError(f"File '{self.name}' has neither a path nor content")

    @classmethod
    def from_path(
        cls,
        file_path: str | Path,
        name: str | None = None,
        content_type: str | None = None,
    ) -> LocalFile:
        path = Path(file_path)
        return cls(
            name=name if name is not None else path.name,
            size=path.stat().st_size,
            content_type=content_type,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, content: bytes, content_type: str | None = None) -> LocalFile:
        return cls(name=name, size=len(content), content_type=content_type, content=content)

    async def read(self) -> bytes:
        """Return the full file content; disk reads run off the event loop."""
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ValueError(f"File '{self.name}' has neither a path nor content")
        return await asyncio.to_thread(self.path.read_bytes)


@dataclass(frozen=True)
class DownloadedFile:
    """Content fetched from the remote store, under its decoded name."""

    name: str
    content: bytes = field(repr=False)
    content_type: str

    def save_to(self, directory: str | Path) -> Path:
        target = Path(directory) / _sanitize_filename(self.name)
        target.write_bytes(self.content)
        return target


@dataclass(frozen=True)
class WidgetState:
    """Snapshot handed to the presentation layer."""

    previews: tuple[Preview, ...] = ()
    toasts: tuple[Toast, ...] = ()
    loading: bool = False

    @property
    def saved_count(self) -> int:
        return sum(1 for preview in self.previews if preview.is_saved)

    @property
    def saved_label(self) -> str:
        return f"{self.saved_count} / {len(self.previews)} saved"
