"""
Engine-neutral representations of pipeline states and bus messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class PipelineState(str, Enum):
    VOID_PENDING = "VOID_PENDING"
    NULL = "NULL"
    READY = "READY"
    PAUSED = "PAUSED"
    PLAYING = "PLAYING"


class MessageKind(str, Enum):
    EOS = "eos"
    ERROR = "error"
    WARNING = "warning"
    STATE_CHANGED = "state-changed"
    STREAM_STATUS = "stream-status"
    OTHER = "other"


@dataclass(frozen=True)
class BusMessage:
    """
    A bus notification translated out of GStreamer types.

    ``source`` keeps the originating object itself so receivers can compare
    by identity; ``source_name`` is for display only.
    """

    kind: MessageKind
    source: Any = None
    source_name: str = ""
    text: str = ""
    detail: Optional[str] = None
    old_state: Optional[PipelineState] = None
    new_state: Optional[PipelineState] = None
    status: Optional[str] = None
