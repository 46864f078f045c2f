"""Cooperative cancellation for streaming requests.

A provider polls the token between deltas and also registers an `on_cancel`
callback, so a stream blocked on a silent server is woken up. Once cancelled,
the HTTP response is closed and the stream ends without emitting anything
further.
"""
from threading import Lock
from typing import Callable, List, Optional

from .errors import StreamAbortedError

CancelCallback = Callable[[Optional[str]], None]


class CancellationToken:
    """A cooperative cancellation token.

    Child tokens inherit cancellation when the parent is cancelled, so one
    token can stop several concurrent streams. `cancel` may be called from
    any thread; callbacks run on the cancelling thread.
    """

    def __init__(self, *, parent: Optional["CancellationToken"] = None):
        self._cancelled = False
        self._reason: Optional[str] = None
        self._lock = Lock()
        self._children: List["CancellationToken"] = []
        self._callbacks: List[CancelCallback] = []
        if parent is not None:
            parent.link_child(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation and cascade to children."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            children = list(self._children)
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)
        for child in children:
            child.cancel(reason)

    def on_cancel(self, callback: CancelCallback) -> Callable[[], None]:
        """Run `callback(reason)` once on cancellation.

        Runs immediately if the token is already cancelled. Returns a function
        that unregisters the callback.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
            reason = self._reason
        callback(reason)
        return lambda: None

    def _remove_callback(self, callback: CancelCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def link_child(self, token: "CancellationToken") -> "CancellationToken":
        with self._lock:
            self._children.append(token)
            cancelled, reason = self._cancelled, self._reason
        if cancelled:
            token.cancel(reason)
        return token

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        """Raise StreamAbortedError if cancellation was requested."""
        if self._cancelled:
            raise StreamAbortedError(self._reason or "stream cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"


__all__ = ["CancellationToken"]
