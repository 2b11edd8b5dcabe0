"""
Cooperative cancellation shared by the pipeline and its steps.
"""

import threading
from typing import Optional

from .errors import Cancelled


class CancelToken:
    """Thread-safe flag set by the caller (or a signal handler) to stop a run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; returns True once cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise Cancelled(where)


def check(token: Optional[CancelToken], where: str = "") -> None:
    """Raise Cancelled if ``token`` is set; a missing token never cancels."""
    if token is not None:
        token.raise_if_cancelled(where)
