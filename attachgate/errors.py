"""Error types and the user-facing error classifier.

Transport failures are surfaced as ``"<status>: <body>"`` strings by the
client (see :class:`ServiceError`). :func:`classify` turns those, and any
other exception, into a short message suitable for a toast. It is a pure
string transformation and never raises.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import aiohttp

_STATUS_BODY_RE = re.compile(r"^(\d+):\s*(.*)$", re.DOTALL)

_NETWORK_ERROR_RE = re.compile(
    r"failed to fetch|networkerror|network request failed|cannot connect to host"
    r"|connection (?:refused|reset)|server disconnected",
    re.IGNORECASE,
)

# Ordered rules applied to the server's error message
_SERVER_MESSAGE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"invalid file type", re.IGNORECASE), "The file type is not permitted by the server."),
    (
        re.compile(r"not an authorized file extension", re.IGNORECASE),
        "This file extension is not authorized.",
    ),
    (
        re.compile(r"maximum attachment size", re.IGNORECASE),
        "The file exceeds the maximum allowed size.",
    ),
    (
        re.compile(r"not logged in|session", re.IGNORECASE),
        "Your session has expired. Please refresh the page and try again.",
    ),
)
_UNAUTHORIZED_RE = re.compile(r"unauthorized|forbidden", re.IGNORECASE)

PERMISSION_MESSAGE = "You do not have permission to perform this action."
NOT_FOUND_MESSAGE = "The requested resource was not found."
SERVER_ERROR_MESSAGE = "A server error occurred. Please try again later."
NETWORK_MESSAGE = "A network error occurred. Please check your connection and try again."
GENERIC_MESSAGE = "Something went wrong. Please try again or contact your administrator."

_STATUS_MESSAGES: dict[int, str] = {
    401: PERMISSION_MESSAGE,
    403: PERMISSION_MESSAGE,
    404: NOT_FOUND_MESSAGE,
    500: SERVER_ERROR_MESSAGE,
}


class AttachGateError(Exception):
    """Base class for errors raised by this package."""


class ServiceError(AttachGateError):
    """Raised when the attachment service answers with a non-2xx status.

    The message has the form ``"<status>: <body>"`` which is what
    :func:`classify` expects.

    Attributes:
        status: HTTP status code.
        body: Raw response body text.
    """

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"{status}: {body}")

    @classmethod
    def download_failed(cls, status: int) -> ServiceError:
        return cls(status, json.dumps({"error": {"message": "Download failed"}}))


class MissingRecordError(AttachGateError):
    """Raised when no parent table/record is configured for an operation."""

    @classmethod
    def for_operation(cls, operation: str) -> MissingRecordError:
        return cls(f"Cannot {operation} attachments: table name and record id are required")


def _raw_message(error: Any) -> str:
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    return str(error)


def _is_network_failure(error: Any, raw: str) -> bool:
    if isinstance(error, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
        return True
    return bool(_NETWORK_ERROR_RE.search(raw))


def _classify_server_message(message: str, detail: Any, status: int) -> str:
    for pattern, text in _SERVER_MESSAGE_RULES:
        if pattern.search(message):
            return text
    if _UNAUTHORIZED_RE.search(message) or status in (401, 403):
        return PERMISSION_MESSAGE
    return f"{message} ({detail})" if detail else message


def _classify_status_body(status: int, body: str) -> str | None:
    try:
        parsed = json.loads(body)
    except ValueError:
        return _STATUS_MESSAGES.get(status)

    error = parsed.get("error") if isinstance(parsed, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    if message:
        return _classify_server_message(str(message), error.get("detail"), status)
    return _STATUS_MESSAGES.get(status)


def classify(error: Any, context: str) -> str:
    """Map a raw error to a contextualized, human readable message.

    Args:
        error: An exception or raw string, typically ``"<status>: <json body>"``.
        context: Prefix naming the failed operation, e.g. ``Failed to upload "x.txt"``.

    Returns:
        ``"<context>: <message>"``.

    Example:
        >>> classify('400: {"error":{"message":"Maximum attachment size exceeded"}}',
        ...          'Failed to upload "x"')
        'Failed to upload "x": The file exceeds the maximum allowed size.'
    """
    raw = _raw_message(error)

    status_match = _STATUS_BODY_RE.match(raw)
    if status_match:
        message = _classify_status_body(int(status_match.group(1)), status_match.group(2).strip())
        if message:
            return f"{context}: {message}"

    if _is_network_failure(error, raw):
        return f"{context}: {NETWORK_MESSAGE}"
    return f"{context}: {GENERIC_MESSAGE}"
