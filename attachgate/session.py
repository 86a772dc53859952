"""Session token lookup for requests to the attachment service."""

from __future__ import annotations

from http.cookies import Morsel
from typing import Iterable, Optional

SESSION_TOKEN_HEADER = "X-UserToken"
SESSION_COOKIE_NAME = "glide_user_activity"


def resolve_session_token(
    explicit_token: Optional[str],
    cookies: Iterable[Morsel[str]] = (),
) -> str:
    """Return the token sent in the ``X-UserToken`` header.

    An explicitly configured token wins; otherwise the session cookie is used.
    Returns an empty string when neither is available.
    """
    if explicit_token:
        return explicit_token
    for cookie in cookies:
        if cookie.key == SESSION_COOKIE_NAME and cookie.value:
            return cookie.value
    return ""
