from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Union

from nota.transcript.models import TranscriptSnapshot

logger = logging.getLogger("nota.session.bus")

SnapshotHandler = Callable[[TranscriptSnapshot], Union[None, Awaitable[None]]]


class SnapshotBus:
    """
    In-process publish/subscribe for transcript snapshots.
    Observers never affect the publisher: failures are logged and dropped.
    """

    def __init__(self):
        self._handlers: list[SnapshotHandler] = []
        self.last: TranscriptSnapshot | None = None

    def subscribe(self, handler: SnapshotHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, snapshot: TranscriptSnapshot) -> None:
        self.last = snapshot
        for handler in list(self._handlers):
            try:
                result = handler(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("Snapshot observer failed: %s", exc)
