# SPDX-License-Identifier: Apache-2.0
"""Cooperative cancellation for long-running sweeps.

Mount operations are never interrupted mid-call. Loops such as the
port fallback sweep or delete --all check the token between steps and
stop before starting the next one.

Example:
    token = CancelToken()
    with cancel_on_signals(token):
        manager = WorkspaceManager(config, cancel=token)
        manager.delete_all()
"""

import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Sequence

from loguru import logger

from ..exceptions import OperationCancelled

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancelToken:
    """Thread-safe cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, completed: Sequence[str] = ()) -> None:
        """Raise OperationCancelled if cancel() has been called."""
        if self._event.is_set():
            raise OperationCancelled(completed=list(completed))

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"


@contextmanager
def cancel_on_signals(
    token: CancelToken, signals: Sequence[int] = DEFAULT_SIGNALS
) -> Iterator[CancelToken]:
    """
    Cancel ``token`` when one of ``signals`` arrives.

    Previous handlers are restored on exit. Must be entered from the
    main thread.
    """

    def _handler(signum, frame):
        logger.warning("Received {}, cancelling", signal.Signals(signum).name)
        token.cancel()

    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield token
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
