"""Content-type resolution for outgoing uploads.

Reserved-extension files are always sent as ``text/plain`` so the upstream
MIME sniffer accepts them regardless of what the bytes look like. Every other
file keeps the content type declared by the caller; when none was declared it
is guessed from the filename and, failing that, from magic bytes.
"""

from __future__ import annotations

import logging
import mimetypes

import puremagic

from attachgate.codec import extension_of, is_reserved

logger = logging.getLogger(__name__)

DISGUISED_CONTENT_TYPE = "text/plain"
FALLBACK_CONTENT_TYPE = "application/octet-stream"


def needs_disguise(filename: str) -> bool:
    """Whether the file must be re-wrapped as plain text before upload."""
    ext = extension_of(filename)
    return bool(ext) and is_reserved(ext)


def sniff_content_type(content: bytes, filename: str) -> str | None:
    """Detect a MIME type from magic bytes using puremagic.

    Returns None when the content cannot be identified.
    """
    if not content:
        return None
    try:
        detected = puremagic.magic_string(content, filename)
    except puremagic.PureError:
        logger.debug("Could not identify content type of '%s' from its bytes", filename)
        return None
    for match in detected:
        if match.mime_type:
            return match.mime_type
    return None


def resolve_content_type(filename: str, content: bytes, declared: str | None = None) -> str:
    """Pick the content type an upload is sent with.

    Args:
        filename: Original (decoded) filename.
        content: Full file content.
        declared: Content type reported by the caller, if any.
    """
    if needs_disguise(filename):
        return DISGUISED_CONTENT_TYPE
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    return sniff_content_type(content, filename) or FALLBACK_CONTENT_TYPE
