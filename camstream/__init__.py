"""
camstream: push a timestamped camera/microphone feed to an RTMP server.

The package builds a GStreamer pipeline (capture, timestamp overlay, x264/AAC
encoding, FLV muxing, rtmpsink) and keeps it running on a GLib main loop until
interrupted.  See :mod:`camstream.main` for the process entrypoint.
"""

from __future__ import annotations

__all__ = [
    "ConfigError",
    "StreamConfig",
    "load_config",
]

from .config import ConfigError, StreamConfig, load_config
