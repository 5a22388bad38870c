"""
Bus message handling.

Runs on the main loop thread; every handler returns immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .messages import BusMessage, MessageKind

LOG = logging.getLogger(__name__)


class MessageDispatcher:
    """
    Map bus messages onto log lines and stop requests.

    EOS and ERROR both end the stream; nothing is retried.  State changes are
    reported only for the top-level pipeline, compared by identity so that a
    child element sharing its name is never mistaken for it.
    """

    def __init__(self, on_stop: Callable[[], None]) -> None:
        self._on_stop = on_stop
        self._pipeline: Optional[Any] = None
        self._closed = False
        self.error_count = 0
        self.last_error: Optional[str] = None

    def bind(self, pipeline: Any) -> None:
        self._pipeline = pipeline
        self._closed = False

    def close(self) -> None:
        self._closed = True
        self._pipeline = None

    @property
    def closed(self) -> bool:
        return self._closed

    def dispatch(self, message: BusMessage) -> bool:
        kind = message.kind
        if kind == MessageKind.EOS:
            self._on_eos(message)
        elif kind == MessageKind.ERROR:
            self._on_error(message)
        elif kind == MessageKind.WARNING:
            self._on_warning(message)
        elif kind == MessageKind.STATE_CHANGED:
            self._on_state_changed(message)
        elif kind == MessageKind.STREAM_STATUS:
            self._on_stream_status(message)
        return not self._closed

    # --------------------------------------------------------------- handlers

    def _on_eos(self, _message: BusMessage) -> None:
        LOG.info("Stream reached end of stream; stopping.")
        self._on_stop()

    def _on_error(self, message: BusMessage) -> None:
        self.error_count += 1
        self.last_error = f"{message.source_name}: {message.text}"
        LOG.error("Error from %s: %s", message.source_name, message.text)
        LOG.error("Debug info: %s", message.detail or "none")
        self._on_stop()

    def _on_warning(self, message: BusMessage) -> None:
        LOG.warning("Warning from %s: %s", message.source_name, message.text)

    def _on_state_changed(self, message: BusMessage) -> None:
        if self._pipeline is None or message.source is not self._pipeline:
            return
        old = message.old_state.value if message.old_state else "?"
        new = message.new_state.value if message.new_state else "?"
        LOG.info("Pipeline state changed: %s -> %s", old, new)

    def _on_stream_status(self, message: BusMessage) -> None:
        LOG.info("Stream status from %s: %s", message.source_name, message.status)
