"""Attachment pipeline in front of a REST attachment service.

Validates files against an extension allowlist, rejects duplicates, disguises
reserved instrument-data extensions so the upstream store accepts them,
uploads each batch concurrently and reports every outcome as a toast.

Example:
    >>> from attachgate import AttachmentManager, Config, LocalFile
    >>> config = Config.parse_yaml("attachgate.yaml")
    >>> manager = AttachmentManager.from_config(config)
    >>> await manager.load()
    >>> result = await manager.process_files([LocalFile.from_path("wafer.klarf")])
    >>> [toast.text for toast in manager.toasts]
    ['"wafer.klarf" uploaded successfully.']
"""

from attachgate.allowlist import AllowedExtensions, parse_allowed, partition_by_extension
from attachgate.client import AttachmentClient, AttachmentService
from attachgate.codec import RESERVED_EXTENSIONS, ReservedExtension, decode, encode, is_reserved
from attachgate.config import Config, RefreshPolicy, TelemetryConfig
from attachgate.duplicates import partition_by_duplicate
from attachgate.errors import AttachGateError, MissingRecordError, ServiceError, classify
from attachgate.models import (
    AttachmentRecord,
    DownloadedFile,
    LocalFile,
    Preview,
    PreviewStatus,
    WidgetState,
)
from attachgate.notifications import NotificationQueue, Toast, ToastKind, ToastListener
from attachgate.orchestrator import AttachmentManager, BatchResult, UploadOutcome

__all__ = [
    "AllowedExtensions",
    "AttachGateError",
    "AttachmentClient",
    "AttachmentManager",
    "AttachmentRecord",
    "AttachmentService",
    "BatchResult",
    "Config",
    "DownloadedFile",
    "LocalFile",
    "MissingRecordError",
    "NotificationQueue",
    "Preview",
    "PreviewStatus",
    "RESERVED_EXTENSIONS",
    "RefreshPolicy",
    "ReservedExtension",
    "ServiceError",
    "TelemetryConfig",
    "Toast",
    "ToastKind",
    "ToastListener",
    "UploadOutcome",
    "WidgetState",
    "classify",
    "decode",
    "encode",
    "is_reserved",
    "parse_allowed",
    "partition_by_duplicate",
    "partition_by_extension",
]
