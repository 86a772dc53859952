"""Self-expiring user notifications (toasts).

The queue is a plain object owned by whoever composes the upload flow and is
shared by reference across every batch, so outcomes of concurrent batches land
in the same ordered stack:

    >>> queue = NotificationQueue()
    >>> manager = AttachmentManager(client, queue=queue, ...)

Each toast gets its own timer on the running asyncio loop and removes itself
after ``dwell_seconds`` (15 seconds by default) unless dismissed earlier.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_TOAST_DWELL_SECONDS = 15.0


class ToastKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Toast:
    """A single notification.

    Attributes:
        id: Unique identifier used for dismissal.
        kind: Success or error.
        text: Human readable message, never a raw server payload.
    """

    id: str
    kind: ToastKind
    text: str


class ToastListener(Protocol):
    """Protocol for observers of the toast stack.

    Listeners receive the full, ordered snapshot after every change, which
    lets a renderer replace its state wholesale.

    Example:
        class Renderer:
            def __call__(self, toasts: tuple[Toast, ...]) -> None:
                self.state["toasts"] = list(toasts)

        queue.subscribe(Renderer())
    """

    def __call__(self, toasts: tuple[Toast, ...]) -> None:
        """Receive the current toast snapshot."""
        ...


class NotificationQueue:
    def __init__(
        self,
        dwell_seconds: float = DEFAULT_TOAST_DWELL_SECONDS,
        max_toasts: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Initialize the queue.

        Args:
            dwell_seconds: Time after which a toast dismisses itself.
            max_toasts: Optional cap; the oldest toast is evicted when exceeded.
                No cap by default.
            loop: Event loop used for dwell timers. Defaults to the running loop
                at the time a toast is pushed.
        """
        if dwell_seconds <= 0:
            raise ValueError(f"dwell_seconds must be positive, got {dwell_seconds}")
        if max_toasts is not None and max_toasts <= 0:
            raise ValueError(f"max_toasts must be positive, got {max_toasts}")
        self.dwell_seconds = dwell_seconds
        self.max_toasts = max_toasts
        self._loop = loop
        self._toasts: list[Toast] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[ToastListener] = []

    @property
    def toasts(self) -> tuple[Toast, ...]:
        return tuple(self._toasts)

    def __len__(self) -> int:
        return len(self._toasts)

    def subscribe(self, listener: ToastListener) -> None:
        self._listeners.append(listener)

    def push(self, kind: ToastKind | str, text: str) -> str:
        """Append a toast and schedule its automatic dismissal.

        Returns:
            The new toast's id.
        """
        toast = Toast(id=uuid.uuid4().hex, kind=ToastKind(kind), text=text)
        self._toasts = [*self._toasts, toast]
        self._timers[toast.id] = self._get_loop().call_later(
            self.dwell_seconds, self.dismiss, toast.id
        )
        if self.max_toasts is not None:
            while len(self._toasts) > self.max_toasts:
                self._remove(self._toasts[0].id)
        self._publish()
        return toast.id

    def success(self, text: str) -> str:
        return self.push(ToastKind.SUCCESS, text)

    def error(self, text: str) -> str:
        return self.push(ToastKind.ERROR, text)

    def dismiss(self, toast_id: str) -> None:
        """Remove a toast and cancel its timer. Unknown ids are ignored."""
        if toast_id not in self._timers and all(t.id != toast_id for t in self._toasts):
            return
        self._remove(toast_id)
        self._publish()

    def clear(self) -> None:
        """Dismiss every toast and cancel all pending timers."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self._toasts:
            self._toasts = []
            self._publish()

    close = clear

    def _remove(self, toast_id: str) -> None:
        handle = self._timers.pop(toast_id, None)
        if handle is not None:
            handle.cancel()
        self._toasts = [t for t in self._toasts if t.id != toast_id]

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def _publish(self) -> None:
        snapshot = self.toasts
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception(
                    "Toast listener %s failed",
                    getattr(listener, "__name__", type(listener).__name__),
                )
