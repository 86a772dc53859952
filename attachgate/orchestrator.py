"""Upload orchestration and the actions exposed to the presentation layer.

:class:`AttachmentManager` owns the preview list and drives every remote
operation. A batch is the set of files submitted by one user action. Its files
pass the extension allowlist and the duplicate check, are uploaded
concurrently, and once every upload has settled the canonical list is fetched
exactly once, whatever the mix of successes and failures.

Every outcome is reported through the injected :class:`NotificationQueue`;
no action raises for transport or validation failures.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from attachgate.allowlist import hint_text, parse_allowed, partition_by_extension, rejection_message
from attachgate.client import AttachmentClient, AttachmentService
from attachgate.config import Config, RefreshPolicy
from attachgate.duplicates import duplicate_message, partition_by_duplicate
from attachgate.errors import MissingRecordError, classify
from attachgate.models import (
    AttachmentRecord,
    DownloadedFile,
    LocalFile,
    Preview,
    PreviewStatus,
    WidgetState,
)
from attachgate.notifications import NotificationQueue, Toast
from attachgate.telemetry import setup_telemetry

logger = logging.getLogger(__name__)

REFRESH_FAILED_MESSAGE = (
    "Upload succeeded but the list could not be refreshed. Please reload the page."
)
LOAD_FAILED_CONTEXT = "Failed to load attachments"


class StateListener(Protocol):
    """Protocol for renderers that want every state change pushed to them."""

    def __call__(self, state: WidgetState) -> None:
        """Receive the new state snapshot."""
        ...


@dataclass(frozen=True)
class UploadOutcome:
    """Result of uploading a single file.

    Attributes:
        file: The uploaded file.
        local_id: Id of the optimistic preview created for the file.
        record: Created remote record on success.
        error: Exception raised by the upload on failure.
        message: User-facing message for a failure.
    """

    file: LocalFile
    local_id: str
    record: Optional[AttachmentRecord] = None
    error: Optional[BaseException] = field(default=None, repr=False)
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Outcome of one ``process_files`` call.

    Attributes:
        rejected: Files whose extension is not allowed.
        duplicates: Files already attached.
        outcomes: One entry per uploaded file, in submission order.
        refreshed: Whether the end-of-batch refresh succeeded. False when no
            file was uploaded.
    """

    rejected: list[LocalFile] = field(default_factory=list)
    duplicates: list[LocalFile] = field(default_factory=list)
    outcomes: list[UploadOutcome] = field(default_factory=list)
    refreshed: bool = False

    @property
    def succeeded(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]


class AttachmentManager:
    def __init__(
        self,
        service: AttachmentService,
        table_name: str,
        record_id: str,
        extensions: str = "",
        read_only: bool = False,
        queue: Optional[NotificationQueue] = None,
        refresh_policy: RefreshPolicy = RefreshPolicy.MERGE,
    ) -> None:
        """Initialize the manager.

        Args:
            service: Remote attachment store.
            table_name: Parent record table.
            record_id: Parent record id.
            extensions: Free-text list of extra allowed extensions.
            read_only: Ignore uploads and deletes.
            queue: Notification queue shared with the rest of the UI. A private
                one is created when omitted.
            refresh_policy: How the preview list is rebuilt after a batch.

                - MERGE: keep previews of other batches still uploading.
                - REPLACE: replace the list wholesale.
                  WARNING: a concurrent batch's optimistic previews are lost.
        """
        self.service = service
        self.table_name = table_name
        self.record_id = record_id
        self.extensions = extensions
        self.read_only = read_only
        self.queue = queue if queue is not None else NotificationQueue()
        self.refresh_policy = refresh_policy
        self.loading = False
        self._previews: tuple[Preview, ...] = ()
        self._in_flight: set[str] = set()
        self._listeners: list[StateListener] = []
        self.queue.subscribe(self._on_toasts_changed)

    @classmethod
    def from_config(
        cls,
        config: Config,
        service: Optional[AttachmentService] = None,
        queue: Optional[NotificationQueue] = None,
    ) -> AttachmentManager:
        """Build a manager from parsed configuration.

        Installs the tracer provider when telemetry is enabled, so spans around
        service calls are exported.
        """
        if config.telemetry.enabled:
            setup_telemetry(config.telemetry)
        if service is None:
            service = AttachmentClient(
                config.instance_url,
                session_token=config.session_token,
                timeout=config.request_timeout,
            )
        if queue is None:
            queue = NotificationQueue(
                dwell_seconds=config.toast_dwell_seconds, max_toasts=config.max_toasts
            )
        return cls(
            service,
            table_name=config.table_name,
            record_id=config.record_id,
            extensions=config.extensions,
            read_only=config.read_only,
            queue=queue,
            refresh_policy=config.refresh_policy,
        )

    # -- state ---------------------------------------------------------------

    @property
    def previews(self) -> tuple[Preview, ...]:
        return self._previews

    @property
    def toasts(self) -> tuple[Toast, ...]:
        return self.queue.toasts

    @property
    def state(self) -> WidgetState:
        return WidgetState(previews=self._previews, toasts=self.queue.toasts, loading=self.loading)

    @property
    def hint_text(self) -> str:
        return hint_text(self.extensions)

    @property
    def has_record(self) -> bool:
        return bool(self.table_name and self.record_id)

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _update(
        self, previews: Optional[Sequence[Preview]] = None, loading: Optional[bool] = None
    ) -> None:
        if previews is not None:
            self._previews = tuple(previews)
        if loading is not None:
            self.loading = loading
        self._publish()

    def _on_toasts_changed(self, _toasts: tuple[Toast, ...]) -> None:
        self._publish()

    def _publish(self) -> None:
        state = self.state
        for listener in self._listeners:
            try:
                listener(state)
            except Exception:
                logger.exception(
                    "State listener %s failed",
                    getattr(listener, "__name__", type(listener).__name__),
                )

    # -- list ----------------------------------------------------------------

    async def load(self) -> None:
        """Fetch the canonical attachment list and replace all previews with it."""
        if not self.has_record:
            logger.info("Skipping attachment load: table name or record id not set")
            return
        self._update(loading=True)
        try:
            records = await self.service.list_attachments(self.table_name, self.record_id)
        except Exception as e:
            logger.warning("Fetching attachments failed: %s", e)
            self._update(previews=(), loading=False)
            self.queue.error(classify(e, LOAD_FAILED_CONTEXT))
            return
        self._update(previews=[Preview.from_record(r) for r in records], loading=False)

    async def refresh(self) -> None:
        await self.load()

    # -- upload --------------------------------------------------------------

    async def process_files(self, files: Iterable[LocalFile]) -> BatchResult:
        """Validate a batch of files and upload the survivors concurrently.

        Rejected and duplicate files are reported with one toast each and
        dropped; the remaining files proceed. Returns once every upload has
        settled and the end-of-batch refresh has run.
        """
        result = BatchResult()
        if self.read_only:
            logger.info("Ignoring %d file(s): attachments are read-only", len(list(files)))
            return result

        allowed = parse_allowed(self.extensions)
        accepted, result.rejected = partition_by_extension(files, allowed)
        if result.rejected:
            self.queue.error(rejection_message(result.rejected, allowed))

        unique, result.duplicates = partition_by_duplicate(accepted, self._previews)
        if result.duplicates:
            self.queue.error(duplicate_message(result.duplicates))

        if not unique:
            return result

        if not self.has_record:
            self.queue.error(str(MissingRecordError.for_operation("upload")))
            return result

        entries = [(file, Preview.optimistic(file)) for file in unique]
        self._in_flight.update(preview.local_id for _, preview in entries)
        self._update(previews=[*self._previews, *(preview for _, preview in entries)])

        result.outcomes = list(
            await asyncio.gather(*(self._upload_one(file, preview) for file, preview in entries))
        )
        logger.info(
            "Batch settled: %d uploaded, %d failed",
            len(result.succeeded),
            len(result.failed),
        )
        result.refreshed = await self._refresh_after_batch(bool(result.succeeded))
        return result

    async def _upload_one(self, file: LocalFile, preview: Preview) -> UploadOutcome:
        try:
            record = await self.service.upload(file, self.table_name, self.record_id)
        except Exception as e:
            logger.warning("Upload of '%s' failed: %s", file.name, e)
            message = classify(e, f'Failed to upload "{file.name}"')
            self._in_flight.discard(preview.local_id)
            self.queue.error(message)
            self._mark_failed(preview.local_id)
            return UploadOutcome(file=file, local_id=preview.local_id, error=e, message=message)

        self._in_flight.discard(preview.local_id)
        self.queue.success(f'"{file.name}" uploaded successfully.')
        return UploadOutcome(file=file, local_id=preview.local_id, record=record)

    def _mark_failed(self, local_id: str) -> None:
        previews = [p.failed() if p.local_id == local_id else p for p in self._previews]
        self._update(previews=previews)

    async def _refresh_after_batch(self, any_succeeded: bool) -> bool:
        try:
            records = await self.service.list_attachments(self.table_name, self.record_id)
        except Exception as e:
            logger.warning("Refreshing attachments after upload failed: %s", e)
            if any_succeeded:
                self.queue.error(REFRESH_FAILED_MESSAGE)
            return False
        self._update(previews=self._rebuild_previews(records), loading=False)
        return True

    def _rebuild_previews(self, records: Sequence[AttachmentRecord]) -> list[Preview]:
        fetched = [Preview.from_record(record) for record in records]
        if self.refresh_policy is RefreshPolicy.REPLACE:
            return fetched

        stored = {preview.lookup_name for preview in fetched}
        pending = [
            preview
            for preview in self._previews
            if preview.status is PreviewStatus.UPLOADING
            and preview.local_id in self._in_flight
            and preview.lookup_name not in stored
        ]
        return [*fetched, *pending]

    # -- single file actions -------------------------------------------------

    async def delete(self, preview: Preview, index: int) -> bool:
        """Remove one attachment.

        The preview is dropped from the list immediately; the remote record
        is deleted afterwards when there is one. Returns True on success.
        """
        if self.read_only:
            logger.info("Ignoring delete of '%s': attachments are read-only", preview.name)
            return False

        previews = list(self._previews)
        if 0 <= index < len(previews) and previews[index].local_id == preview.local_id:
            del previews[index]
        else:
            previews = [p for p in previews if p.local_id != preview.local_id]
        self._update(previews=previews)

        if preview.remote_id is None:
            return True
        try:
            await self.service.delete(preview.remote_id)
        except Exception as e:
            logger.warning("Delete of '%s' failed: %s", preview.name, e)
            self.queue.error(classify(e, f'Failed to delete "{preview.name}"'))
            return False
        self.queue.success(f'"{preview.name}" deleted successfully.')
        return True

    async def download(
        self, preview: Preview, directory: Optional[str | Path] = None
    ) -> Optional[DownloadedFile]:
        """Fetch an attachment's content under its original (decoded) name.

        Args:
            preview: A saved preview; unsaved previews are ignored.
            directory: When given, the file is also written there.
        """
        if preview.remote_id is None:
            return None
        try:
            downloaded = await self.service.download(
                preview.remote_id, preview.stored_name or preview.name
            )
            if directory is not None:
                path = await asyncio.to_thread(downloaded.save_to, directory)
                logger.info("Saved '%s' to %s", downloaded.name, path)
        except Exception as e:
            logger.warning("Download of '%s' failed: %s", preview.name, e)
            self.queue.error(classify(e, f'Failed to download "{preview.name}"'))
            return None
        return downloaded

    async def close(self) -> None:
        """Cancel pending toast timers and release the service connection."""
        self.queue.close()
        close = getattr(self.service, "close", None)
        if close is not None:
            await close()
