"""
Runtime pieces driving a built pipeline: the GStreamer/GLib adapters, the
overlay timer, the bus dispatcher and the lifecycle controller.
"""

from __future__ import annotations

from .dispatcher import MessageDispatcher
from .gst_adapter import GLibLoop, GstEngine
from .lifecycle import LifecycleController
from .messages import BusMessage, MessageKind, PipelineState
from .overlay import OverlayUpdater

__all__ = [
    "BusMessage",
    "GLibLoop",
    "GstEngine",
    "LifecycleController",
    "MessageDispatcher",
    "MessageKind",
    "OverlayUpdater",
    "PipelineState",
]
