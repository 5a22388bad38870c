"""
Startup, run and teardown of a streaming session.
"""

from __future__ import annotations

import logging
import signal
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..config import StreamConfig
from ..errors import BuildError, StartupError
from ..pipeline import PipelineBuilder, StreamPipeline
from .dispatcher import MessageDispatcher
from .gst_adapter import GLibLoop, GstEngine
from .messages import PipelineState
from .overlay import OverlayUpdater

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_BUILD_FAILED = 2
EXIT_START_FAILED = 3
EXIT_STREAM_ERROR = 4

HANDLED_SIGNALS = ("SIGINT", "SIGTERM")


class LifecycleController:
    """
    Owns the pipeline, the overlay timer and the bus watch for one session.

    ``engine`` and ``loop`` default to the GStreamer/GLib implementations; the
    loop is created lazily so constructing a controller never needs the
    native runtime.
    """

    def __init__(
        self,
        config: StreamConfig,
        *,
        engine: Optional[Any] = None,
        loop: Optional[Any] = None,
        clock: Optional[Callable[[], datetime]] = None,
        install_signals: bool = True,
    ) -> None:
        self._config = config
        self._engine = engine if engine is not None else GstEngine()
        self._loop = loop
        self._install_signals = install_signals
        self._overlay_updater = OverlayUpdater(clock=clock)
        self._dispatcher = MessageDispatcher(on_stop=self.request_stop)
        self._stream: Optional[StreamPipeline] = None
        self._watch_id: Optional[int] = None
        self._previous_handlers: Dict[int, Any] = {}
        self._stop_requested = False
        self._stop_signal: Optional[int] = None
        self._shut_down = False

    # ------------------------------------------------------------------ state

    @property
    def stream(self) -> Optional[StreamPipeline]:
        return self._stream

    @property
    def dispatcher(self) -> MessageDispatcher:
        return self._dispatcher

    @property
    def overlay_updater(self) -> OverlayUpdater:
        return self._overlay_updater

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # -------------------------------------------------------------------- API

    def start(self) -> None:
        """
        Build the pipeline and request PLAYING.

        Raises :class:`BuildError` or :class:`StartupError`; the caller is
        expected to run :meth:`shutdown` afterwards in both cases.
        """

        self._install_signal_handlers()
        if self._loop is None:
            self._loop = GLibLoop()

        LOG.info("GStreamer version: %s", self._engine.version_string())
        self._stream = PipelineBuilder(self._engine, self._config).build()

        self._overlay_updater.attach(self._stream.overlay)
        self._overlay_updater.schedule(self._loop)

        self._dispatcher.bind(self._stream.pipeline)
        self._watch_id = self._loop.add_bus_watch(self._stream.pipeline, self._dispatcher.dispatch)

        if not self._engine.set_state(self._stream.pipeline, PipelineState.PLAYING):
            raise StartupError("Pipeline refused to enter the PLAYING state.")
        self._log_banner()

    def run(self) -> int:
        """
        Start, block until stopped, tear down, and return an exit code.
        """

        try:
            self.start()
        except BuildError as exc:
            LOG.error("Unable to build the streaming pipeline: %s", exc)
            self.shutdown()
            return EXIT_BUILD_FAILED
        except StartupError as exc:
            LOG.error("Unable to start streaming: %s", exc)
            self.shutdown()
            return EXIT_START_FAILED

        try:
            if not self._stop_requested:
                # A quit issued before run() is lost, so re-check once the loop spins.
                self._loop.add_idle(self._quit_if_stop_requested)
                self._loop.run()
        finally:
            self.shutdown()

        if self._dispatcher.error_count:
            return EXIT_STREAM_ERROR
        return EXIT_OK

    def request_stop(self) -> None:
        """
        Ask the main loop to return.  Safe to call from a signal handler.
        """

        self._stop_requested = True
        if self._loop is not None:
            self._loop.quit()

    def shutdown(self) -> None:
        """
        Tear the session down in order; later calls do nothing.

        The pipeline leaves PLAYING before any other handle is released so
        rtmpsink can flush and close its connection.
        """

        if self._shut_down:
            return
        self._shut_down = True
        if self._stop_signal is not None:
            LOG.info("Received %s, stopping stream...", signal.Signals(self._stop_signal).name)
        else:
            LOG.info("Stopping stream...")
        self._dispatcher.close()

        loop = self._loop
        if loop is not None:
            try:
                self._overlay_updater.cancel(loop)
            except Exception:
                LOG.exception("Failed to cancel the overlay timer.")
        self._overlay_updater.detach()

        stream = self._stream
        if stream is not None:
            try:
                if not self._engine.set_state(stream.pipeline, PipelineState.NULL):
                    LOG.error("Pipeline refused to enter the NULL state.")
            except Exception:
                LOG.exception("Error while stopping GStreamer pipeline.")
            stream.release(self._engine)
            self._stream = None

        if loop is not None:
            if self._watch_id is not None:
                watch_id = self._watch_id
                self._watch_id = None
                try:
                    loop.remove_source(watch_id)
                except Exception:
                    LOG.exception("Failed to detach the bus watch.")
            loop.release()
            self._loop = None

        self._restore_signal_handlers()
        LOG.info("Stream stopped.")

    # ---------------------------------------------------------------- helpers

    def _handle_signal(self, signum: int, frame: Optional[object]) -> None:
        self._stop_signal = signum
        self.request_stop()

    def _quit_if_stop_requested(self) -> bool:
        if self._stop_requested and self._loop is not None:
            self._loop.quit()
        return False

    def _install_signal_handlers(self) -> None:
        if not self._install_signals or self._previous_handlers:
            return
        for signame in HANDLED_SIGNALS:
            signum = getattr(signal, signame)
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            try:
                signal.signal(signum, handler)
            except (TypeError, ValueError):
                LOG.debug("Could not restore handler for signal %s", signum, exc_info=True)

    def _log_banner(self) -> None:
        config = self._config
        LOG.info("Streaming camera to %s", config.url)
        LOG.info(
            "Resolution %dx%d @ %d fps, video %d kbit/s, audio %d kbit/s",
            config.width,
            config.height,
            config.framerate,
            config.video_bitrate,
            config.audio_bitrate,
        )
        LOG.info("Press Ctrl+C to stop streaming.")
