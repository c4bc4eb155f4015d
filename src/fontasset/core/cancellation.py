"""Cooperative cancellation built on :class:`threading.Event`."""

import threading

from .exceptions import OperationCancelledError


class CancellationEvent:
    """Cancellation flag shared between a caller and a running job.

    Jobs poll it between table reads; setting it never interrupts a table
    that is already being parsed.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        """Signal cancellation."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()


def raise_if_cancelled(cancellation: CancellationEvent | None) -> None:
    """Raise :class:`OperationCancelledError` if *cancellation* was signalled."""
    if cancellation is not None:
        cancellation.raise_if_cancelled()
