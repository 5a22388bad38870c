"""In-memory stand-ins for the GStreamer engine and the GLib main loop."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import pytest

from camstream.config import StreamConfig
from camstream.runtime.messages import PipelineState


class FakeElement:
    def __init__(self, factory: str, name: str, unsupported: Iterable[str] = ()) -> None:
        self.factory = factory
        self.name = name
        self.unsupported: Set[str] = set(unsupported)
        self.props: Dict[str, object] = {}
        self.writes: List[Tuple[str, object]] = []
        self.request_pads: List["FakePad"] = []
        self.released_pads: List["FakePad"] = []

    def __repr__(self) -> str:
        return f"FakeElement({self.name!r})"


class FakePad:
    def __init__(self, owner: FakeElement, name: str) -> None:
        self.owner = owner
        self.name = name

    def __repr__(self) -> str:
        return f"{self.owner.name}:{self.name}"


class FakePipeline:
    def __init__(self, name: str) -> None:
        self.name = name
        self.children: List[FakeElement] = []
        self.states: List[PipelineState] = []


class FakeEngine:
    """
    Records every call; failures are injected by element name or factory.
    """

    def __init__(
        self,
        events: Optional[List[str]] = None,
        *,
        missing: Iterable[str] = (),
        unsupported: Optional[Dict[str, Iterable[str]]] = None,
        refuse_add: Iterable[str] = (),
        refuse_links: Iterable[Tuple[str, str]] = (),
        refuse_pads: Iterable[Tuple[str, str]] = (),
        refuse_pad_links: Iterable[Tuple[str, str]] = (),
        fail_states: Iterable[PipelineState] = (),
    ) -> None:
        self.events = events if events is not None else []
        self.missing = set(missing)
        self.unsupported = {key: set(value) for key, value in (unsupported or {}).items()}
        self.refuse_add = set(refuse_add)
        self.refuse_links = set(refuse_links)
        self.refuse_pads = set(refuse_pads)
        self.refuse_pad_links = set(refuse_pad_links)
        self.fail_states = set(fail_states)
        self.pipelines: List[FakePipeline] = []
        self.elements: Dict[str, FakeElement] = {}
        self.links: List[Tuple[str, str]] = []
        self.pad_links: List[Tuple[str, str]] = []

    is_available = True

    def version_string(self) -> str:
        return "GStreamer 1.22.0 (fake)"

    def new_pipeline(self, name: str) -> FakePipeline:
        pipeline = FakePipeline(name)
        self.pipelines.append(pipeline)
        return pipeline

    def make_element(self, factory: str, name: str) -> Optional[FakeElement]:
        if factory in self.missing:
            return None
        element = FakeElement(factory, name, self.unsupported.get(factory, ()))
        self.elements[name] = element
        return element

    def make_caps(self, description: str) -> str:
        return description

    def has_property(self, element: FakeElement, key: str) -> bool:
        return key not in element.unsupported

    def set_property(self, element: FakeElement, key: str, value: object) -> None:
        if key in element.unsupported:
            raise KeyError(key)
        element.props[key] = value
        element.writes.append((key, value))

    def get_property(self, element: FakeElement, key: str) -> object:
        return element.props.get(key)

    def add(self, pipeline: FakePipeline, element: FakeElement) -> bool:
        if element.name in self.refuse_add:
            return False
        pipeline.children.append(element)
        return True

    def remove(self, pipeline: FakePipeline, element: FakeElement) -> None:
        pipeline.children.remove(element)

    def link(self, upstream: FakeElement, downstream: FakeElement) -> bool:
        if (upstream.name, downstream.name) in self.refuse_links:
            return False
        self.links.append((upstream.name, downstream.name))
        return True

    def static_pad(self, element: FakeElement, name: str) -> FakePad:
        return FakePad(element, name)

    def request_pad(self, element: FakeElement, template: str) -> Optional[FakePad]:
        if (element.name, template) in self.refuse_pads:
            return None
        pad = FakePad(element, template)
        element.request_pads.append(pad)
        return pad

    def link_pads(self, src_pad: FakePad, sink_pad: FakePad) -> bool:
        if (src_pad.owner.name, repr(sink_pad)) in self.refuse_pad_links:
            return False
        self.pad_links.append((repr(src_pad), repr(sink_pad)))
        return True

    def release_request_pad(self, element: FakeElement, pad: FakePad) -> None:
        element.request_pads.remove(pad)
        element.released_pads.append(pad)
        self.events.append(f"release_request_pad:{pad!r}")

    def set_state(self, pipeline: FakePipeline, state: PipelineState) -> bool:
        self.events.append(f"set_state:{state.value}")
        if state in self.fail_states:
            return False
        pipeline.states.append(state)
        return True


class FakeLoop:
    """
    ``run()`` dispatches pending idle callbacks, then the queued ``on_run``
    actions, instead of blocking.  Like ``GLib.MainLoop`` it forgets a quit
    that arrived before ``run()`` and fails if nothing quit it while running.
    """

    def __init__(self, events: Optional[List[str]] = None) -> None:
        self.events = events if events is not None else []
        self.timeouts: Dict[int, Tuple[int, Callable[[], bool]]] = {}
        self.watches: Dict[int, Tuple[object, Callable]] = {}
        self.on_run: List[Callable[[], None]] = []
        self.idles: List[Callable[[], bool]] = []
        self.run_calls = 0
        self.quit_calls = 0
        self.released = False
        self._next_id = 1
        self._running = False
        self._quit_while_running = False

    def _allocate(self) -> int:
        source_id = self._next_id
        self._next_id += 1
        return source_id

    def add_timeout(self, interval_ms: int, callback: Callable[[], bool]) -> int:
        source_id = self._allocate()
        self.timeouts[source_id] = (interval_ms, callback)
        return source_id

    def add_idle(self, callback: Callable[[], bool]) -> int:
        self.idles.append(callback)
        return self._allocate()

    def add_bus_watch(self, pipeline: object, callback: Callable) -> int:
        source_id = self._allocate()
        self.watches[source_id] = (pipeline, callback)
        return source_id

    def remove_source(self, source_id: int) -> None:
        if source_id in self.timeouts:
            del self.timeouts[source_id]
            self.events.append("remove_source:timer")
        elif source_id in self.watches:
            del self.watches[source_id]
            self.events.append("remove_source:watch")
        else:
            raise KeyError(source_id)

    def run(self) -> None:
        self.run_calls += 1
        self._running = True
        self._quit_while_running = False
        try:
            idles, self.idles = self.idles, []
            for callback in idles:
                callback()
            for action in self.on_run:
                action()
        finally:
            self._running = False
        if not self._quit_while_running:
            raise AssertionError("main loop would block forever")

    def quit(self) -> None:
        self.quit_calls += 1
        if self._running:
            self._quit_while_running = True

    def release(self) -> None:
        self.released = True
        self.events.append("release_loop")

    def post(self, message: object) -> List[bool]:
        return [callback(message) for _pipeline, callback in list(self.watches.values())]

    def fire_timers(self) -> List[bool]:
        return [callback() for _interval, callback in list(self.timeouts.values())]


FIXED_NOW = datetime(2024, 5, 17, 9, 3, 7)


@pytest.fixture
def config() -> StreamConfig:
    return StreamConfig(
        url="rtmp://example/live/x",
        width=640,
        height=480,
        video_bitrate=1000,
        audio_bitrate=128,
    )


@pytest.fixture
def events() -> List[str]:
    return []


@pytest.fixture
def engine(events: List[str]) -> FakeEngine:
    return FakeEngine(events)


@pytest.fixture
def loop(events: List[str]) -> FakeLoop:
    return FakeLoop(events)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def make_engine(events: List[str]) -> Callable[..., FakeEngine]:
    def _make(**failures: object) -> FakeEngine:
        return FakeEngine(events, **failures)  # type: ignore[arg-type]

    return _make
