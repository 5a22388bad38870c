"""
GStreamer-backed engine and GLib main loop adapters.

This is the only module that talks to ``gi.repository``.  The builder, the
dispatcher and the lifecycle controller work against :class:`GstEngine` and
:class:`GLibLoop`, which keeps them testable without the native runtime.  When
PyGObject or GStreamer is missing the import still succeeds; the first call
that needs the runtime raises :class:`EngineUnavailableError`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..errors import EngineUnavailableError
from .messages import BusMessage, MessageKind, PipelineState

LOG = logging.getLogger(__name__)

_GST_INITIALISED = False

try:  # pragma: no cover - availability depends on host environment
    import gi  # type: ignore

    gi.require_version("Gst", "1.0")
    from gi.repository import GLib, GObject, Gst  # type: ignore
except (ImportError, ValueError) as exc:  # pragma: no cover
    Gst = None  # type: ignore[assignment]
    GLib = None  # type: ignore[assignment]
    GObject = None  # type: ignore[assignment]
    _GST_IMPORT_ERROR: Optional[BaseException] = exc
else:  # pragma: no cover - executed only when GStreamer is present
    _GST_IMPORT_ERROR = None


def _require_gstreamer() -> None:
    if Gst is None:
        raise EngineUnavailableError(
            "GStreamer runtime is not available. Install PyGObject and GStreamer "
            "1.20+ (with the x264, libav and rtmp plugins) to stream."
        ) from _GST_IMPORT_ERROR


def _ensure_gst_initialised() -> None:
    _require_gstreamer()
    global _GST_INITIALISED
    if _GST_INITIALISED:
        return
    Gst.init(None)
    _GST_INITIALISED = True


def _state_from_gst(state: Any) -> PipelineState:
    name = Gst.Element.state_get_name(state)
    try:
        return PipelineState(name)
    except ValueError:
        return PipelineState.VOID_PENDING


def translate_message(message: Any) -> BusMessage:
    """
    Convert a ``Gst.Message`` into a :class:`BusMessage`.
    """

    _require_gstreamer()
    source = message.src
    source_name = source.get_name() if source is not None else ""
    msg_type = message.type

    if msg_type == Gst.MessageType.EOS:
        return BusMessage(MessageKind.EOS, source=source, source_name=source_name)
    if msg_type == Gst.MessageType.ERROR:
        err, debug = message.parse_error()
        return BusMessage(
            MessageKind.ERROR,
            source=source,
            source_name=source_name,
            text=err.message,
            detail=debug or None,
        )
    if msg_type == Gst.MessageType.WARNING:
        warn, debug = message.parse_warning()
        return BusMessage(
            MessageKind.WARNING,
            source=source,
            source_name=source_name,
            text=warn.message,
            detail=debug or None,
        )
    if msg_type == Gst.MessageType.STATE_CHANGED:
        old, new, _pending = message.parse_state_changed()
        return BusMessage(
            MessageKind.STATE_CHANGED,
            source=source,
            source_name=source_name,
            old_state=_state_from_gst(old),
            new_state=_state_from_gst(new),
        )
    if msg_type == Gst.MessageType.STREAM_STATUS:
        status_type, _owner = message.parse_stream_status()
        status = getattr(status_type, "value_nick", None) or str(int(status_type))
        return BusMessage(
            MessageKind.STREAM_STATUS,
            source=source,
            source_name=source_name,
            status=status,
        )
    return BusMessage(MessageKind.OTHER, source=source, source_name=source_name)


class GstEngine:
    """
    Thin facade over the GStreamer calls the builder needs.

    Element handles returned here are plain ``Gst.Element`` objects; callers
    treat them as opaque.
    """

    @property
    def is_available(self) -> bool:
        return Gst is not None

    def version_string(self) -> str:
        _ensure_gst_initialised()
        return Gst.version_string()

    def new_pipeline(self, name: str) -> Any:
        _ensure_gst_initialised()
        pipeline = Gst.Pipeline.new(name)
        if not pipeline:
            raise EngineUnavailableError("Failed to create GstPipeline instance.")
        # Live sources: timestamps follow the running clock, not a start offset.
        pipeline.set_start_time(Gst.CLOCK_TIME_NONE)
        return pipeline

    def make_element(self, factory: str, name: str) -> Optional[Any]:
        _ensure_gst_initialised()
        return Gst.ElementFactory.make(factory, name)

    def make_caps(self, description: str) -> Any:
        _ensure_gst_initialised()
        caps = Gst.Caps.from_string(description)
        if caps is None:
            raise ValueError(f"Invalid caps description '{description}'.")
        return caps

    # ------------------------------------------------------------ properties

    def has_property(self, element: Any, key: str) -> bool:
        return element.find_property(key) is not None

    def set_property(self, element: Any, key: str, value: object) -> None:
        pspec = element.find_property(key)
        if pspec is None:
            raise KeyError(key)
        if isinstance(value, str) and self._is_enum_like(pspec):
            # Enum and flags values are given by nick ("zerolatency", "bottom").
            Gst.util_set_object_arg(element, key, value)
            return
        element.set_property(key, value)

    def get_property(self, element: Any, key: str) -> object:
        return element.get_property(key)

    @staticmethod
    def _is_enum_like(pspec: Any) -> bool:
        value_type = pspec.value_type
        return value_type.is_a(GObject.TYPE_ENUM) or value_type.is_a(GObject.TYPE_FLAGS)

    # ------------------------------------------------------------- topology

    def add(self, pipeline: Any, element: Any) -> bool:
        return bool(pipeline.add(element))

    def remove(self, pipeline: Any, element: Any) -> None:
        pipeline.remove(element)

    def link(self, upstream: Any, downstream: Any) -> bool:
        return bool(upstream.link(downstream))

    def static_pad(self, element: Any, name: str) -> Optional[Any]:
        return element.get_static_pad(name)

    def request_pad(self, element: Any, template: str) -> Optional[Any]:
        request = getattr(element, "request_pad_simple", None)
        if request is None:  # GStreamer < 1.20
            request = element.get_request_pad
        return request(template)

    def link_pads(self, src_pad: Any, sink_pad: Any) -> bool:
        return src_pad.link(sink_pad) == Gst.PadLinkReturn.OK

    def release_request_pad(self, element: Any, pad: Any) -> None:
        element.release_request_pad(pad)

    # ---------------------------------------------------------------- state

    def set_state(self, pipeline: Any, state: PipelineState) -> bool:
        """
        Request ``state``; returns False only when GStreamer reports FAILURE.
        """

        target = getattr(Gst.State, state.value)
        result = pipeline.set_state(target)
        if result == Gst.StateChangeReturn.FAILURE:
            return False
        LOG.debug("Requested pipeline state %s (%s)", state.value, result.value_nick)
        return True


class GLibLoop:
    """
    Owns a ``GLib.MainLoop`` and the sources registered on its default context.
    """

    def __init__(self) -> None:
        _ensure_gst_initialised()
        self._loop: Optional[Any] = GLib.MainLoop()
        self._bus_watches: Dict[int, Any] = {}

    def run(self) -> None:
        if self._loop is None:
            raise RuntimeError("Main loop has already been released.")
        self._loop.run()

    def quit(self) -> None:
        if self._loop is not None:
            self._loop.quit()

    def add_timeout(self, interval_ms: int, callback: Callable[[], bool]) -> int:
        return GLib.timeout_add(int(interval_ms), callback)

    def add_idle(self, callback: Callable[[], bool]) -> int:
        return GLib.idle_add(callback)

    def add_bus_watch(self, pipeline: Any, callback: Callable[[BusMessage], bool]) -> int:
        bus = pipeline.get_bus()
        if bus is None:
            raise RuntimeError("Pipeline bus is not available.")

        def _on_message(_bus: Any, message: Any) -> bool:
            return callback(translate_message(message))

        watch_id = bus.add_watch(GLib.PRIORITY_DEFAULT, _on_message)
        self._bus_watches[watch_id] = bus
        return watch_id

    def remove_source(self, source_id: int) -> None:
        self._bus_watches.pop(source_id, None)
        # A watch whose callback returned False is already gone.
        if GLib.MainContext.default().find_source_by_id(source_id) is None:
            LOG.debug("GLib source %s already removed.", source_id)
            return
        GLib.source_remove(source_id)

    def release(self) -> None:
        self._bus_watches.clear()
        self._loop = None
