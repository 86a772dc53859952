"""Async client for the remote REST attachment service.

Talks to the ServiceNow-style ``/api/now/attachment`` endpoints. Every
non-2xx answer is raised as :class:`~attachgate.errors.ServiceError` whose
message is ``"<status>: <body>"``; network failures propagate as the
underlying ``aiohttp`` exceptions. Callers are expected to catch both and
pass them to :func:`attachgate.errors.classify`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import aiohttp

from attachgate.codec import decode, encode
from attachgate.content_type import resolve_content_type
from attachgate.errors import ServiceError
from attachgate.models import AttachmentRecord, DownloadedFile, LocalFile
from attachgate.session import SESSION_TOKEN_HEADER, resolve_session_token
from attachgate.telemetry import get_tracer

logger = logging.getLogger(__name__)

ATTACHMENT_PATH = "/api/now/attachment"
UPLOAD_PATH = f"{ATTACHMENT_PATH}/upload"
LIST_FIELDS = "sys_id,file_name,size_bytes,content_type,sys_created_on,sys_created_by"


class AttachmentService(Protocol):
    """Operations the upload orchestrator needs from the remote store."""

    async def list_attachments(self, table_name: str, record_id: str) -> list[AttachmentRecord]:
        """Return every attachment of the parent record."""
        ...

    async def upload(self, file: LocalFile, table_name: str, record_id: str) -> AttachmentRecord:
        """Store ``file`` under its encoded name and return the created record."""
        ...

    async def delete(self, attachment_id: str) -> None:
        """Delete one attachment."""
        ...

    async def download(self, attachment_id: str, stored_name: str) -> DownloadedFile:
        """Fetch raw bytes of one attachment under its decoded name."""
        ...


class AttachmentClient:
    """aiohttp implementation of :class:`AttachmentService`.

    The client owns its ``aiohttp.ClientSession`` unless one is passed in; the
    session's cookie jar provides same-origin cookie handling and the
    fallback session token.

    Example:
        >>> async with AttachmentClient("https://example.service-now.com") as client:
        ...     records = await client.list_attachments("incident", "abc123")
    """

    def __init__(
        self,
        instance_url: str,
        session_token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.instance_url = instance_url.rstrip("/")
        self.session_token = session_token
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> AttachmentClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.instance_url}{path}"

    def _headers(self, session: aiohttp.ClientSession, **extra: str) -> dict[str, str]:
        token = resolve_session_token(self.session_token, session.cookie_jar)
        return {SESSION_TOKEN_HEADER: token, **extra}

    @staticmethod
    async def _raise_for_status(response: aiohttp.ClientResponse) -> None:
        if response.ok:
            return
        body = await response.text()
        raise ServiceError(response.status, body)

    async def list_attachments(self, table_name: str, record_id: str) -> list[AttachmentRecord]:
        session = self._get_session()
        params = {
            "sysparm_query": f"table_sys_id={record_id}^table_name={table_name}",
            "sysparm_fields": LIST_FIELDS,
            "sysparm_display_value": "true",
        }
        with get_tracer().start_as_current_span("attachgate.list") as span:
            span.set_attribute("attachgate.table_name", table_name)
            async with session.get(
                self._url(ATTACHMENT_PATH),
                params=params,
                headers=self._headers(session, Accept="application/json"),
            ) as response:
                await self._raise_for_status(response)
                payload = await response.json(content_type=None)
            results = (payload or {}).get("result") or []
            span.set_attribute("attachgate.count", len(results))
        return [AttachmentRecord.model_validate(item) for item in results]

    async def upload(self, file: LocalFile, table_name: str, record_id: str) -> AttachmentRecord:
        """Upload one file.

        Reserved-extension files are sent under their encoded name with a
        ``text/plain`` content type; their content is read fully into memory
        first, as is every other file's.
        """
        session = self._get_session()
        upload_name = encode(file.name)
        content = await file.read()
        content_type = resolve_content_type(file.name, content, file.content_type)

        form = aiohttp.FormData()
        form.add_field("table_name", table_name)
        form.add_field("table_sys_id", record_id)
        form.add_field("uploadFile", content, filename=upload_name, content_type=content_type)

        with get_tracer().start_as_current_span("attachgate.upload") as span:
            span.set_attribute("attachgate.file_name", upload_name)
            span.set_attribute("attachgate.content_type", content_type)
            logger.debug("Uploading '%s' as '%s' (%s)", file.name, upload_name, content_type)
            async with session.post(
                self._url(UPLOAD_PATH),
                data=form,
                headers=self._headers(session, Accept="application/json"),
            ) as response:
                await self._raise_for_status(response)
                payload = await response.json(content_type=None)
        return AttachmentRecord.model_validate((payload or {}).get("result") or {})

    async def delete(self, attachment_id: str) -> None:
        session = self._get_session()
        with get_tracer().start_as_current_span("attachgate.delete") as span:
            span.set_attribute("attachgate.attachment_id", attachment_id)
            async with session.delete(
                self._url(f"{ATTACHMENT_PATH}/{attachment_id}"),
                headers=self._headers(session),
            ) as response:
                if response.status in (200, 204):
                    return
                body = await response.text()
                raise ServiceError(response.status, body)

    async def download(self, attachment_id: str, stored_name: str) -> DownloadedFile:
        session = self._get_session()
        with get_tracer().start_as_current_span("attachgate.download") as span:
            span.set_attribute("attachgate.attachment_id", attachment_id)
            async with session.get(
                self._url(f"{ATTACHMENT_PATH}/{attachment_id}/file"),
                headers=self._headers(session),
            ) as response:
                if not response.ok:
                    raise ServiceError.download_failed(response.status)
                content = await response.read()
                content_type = response.content_type
        return DownloadedFile(name=decode(stored_name), content=content, content_type=content_type)
