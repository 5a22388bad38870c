"""
Periodic refresh of the on-screen timestamp.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from ..graph import Stage

LOG = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
UPDATE_INTERVAL_MS = 1000


class OverlayUpdater:
    """
    Writes the current local time into the overlay's ``text`` property.

    The tick never removes itself: with no overlay attached it does nothing
    and stays scheduled until :meth:`cancel` is called.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock: Callable[[], datetime] = clock if clock is not None else datetime.now
        self._overlay: Optional[Stage] = None
        self._timer_id: Optional[int] = None

    @property
    def overlay(self) -> Optional[Stage]:
        return self._overlay

    @property
    def is_scheduled(self) -> bool:
        return self._timer_id is not None

    def attach(self, overlay: Stage) -> None:
        self._overlay = overlay

    def detach(self) -> None:
        self._overlay = None

    def schedule(self, loop: Any) -> int:
        if self._timer_id is None:
            self._timer_id = loop.add_timeout(UPDATE_INTERVAL_MS, self.tick)
        return self._timer_id

    def cancel(self, loop: Any) -> None:
        timer_id = self._timer_id
        if timer_id is None:
            return
        self._timer_id = None
        loop.remove_source(timer_id)

    def tick(self) -> bool:
        overlay = self._overlay
        if overlay is None:
            return True
        overlay.set_property("text", self._clock().strftime(TIMESTAMP_FORMAT))
        return True
