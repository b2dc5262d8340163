# src/rsync_backup/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Optional
from .events import BaseEvent
from .interface import Observer

log = logging.getLogger("rsync_backup")


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers: List[Observer] = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: BaseEvent) -> None:
        # a failing observer is logged and skipped, compilation carries on
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                log.debug(
                    "observer %s failed on %s",
                    type(ob).__name__,
                    type(event).__name__,
                    exc_info=True,
                )
