from __future__ import annotations

import re

from camstream.graph import StageRole, StageSpec, create_stages
from camstream.runtime.overlay import UPDATE_INTERVAL_MS, OverlayUpdater

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")


def _overlay(engine):
    spec = StageSpec("timestamp-overlay", "textoverlay", StageRole.OVERLAY)
    return create_stages(engine, [spec])["timestamp-overlay"]


def test_tick_writes_formatted_timestamp(engine, fixed_clock) -> None:
    overlay = _overlay(engine)
    updater = OverlayUpdater(clock=fixed_clock)
    updater.attach(overlay)

    assert updater.tick() is True
    assert overlay.element.props["text"] == "2024-05-17 09:03:07"


def test_tick_uses_wall_clock_by_default(engine) -> None:
    overlay = _overlay(engine)
    updater = OverlayUpdater()
    updater.attach(overlay)

    updater.tick()

    assert TIMESTAMP_RE.match(str(overlay.element.props["text"]))


def test_tick_without_overlay_is_a_silent_no_op(engine, fixed_clock) -> None:
    overlay = _overlay(engine)
    updater = OverlayUpdater(clock=fixed_clock)

    assert updater.tick() is True

    updater.attach(overlay)
    updater.detach()
    assert updater.tick() is True
    assert overlay.element.writes == []


def test_last_write_wins(engine) -> None:
    overlay = _overlay(engine)
    ticks = iter(["2024-01-01 00:00:00", "2024-01-01 00:00:01"])

    class _Clock:
        def __init__(self, value: str) -> None:
            self.value = value

        def strftime(self, _fmt: str) -> str:
            return self.value

    updater = OverlayUpdater(clock=lambda: _Clock(next(ticks)))  # type: ignore[arg-type, return-value]
    updater.attach(overlay)
    updater.tick()
    updater.tick()

    assert overlay.element.props["text"] == "2024-01-01 00:00:01"
    assert len(overlay.element.writes) == 2


def test_schedule_registers_one_second_timer_once(loop) -> None:
    updater = OverlayUpdater()

    first = updater.schedule(loop)
    second = updater.schedule(loop)

    assert first == second
    assert list(loop.timeouts.values())[0][0] == UPDATE_INTERVAL_MS == 1000
    assert len(loop.timeouts) == 1
    assert updater.is_scheduled


def test_cancel_removes_timer_once(loop, events) -> None:
    updater = OverlayUpdater()
    updater.schedule(loop)

    updater.cancel(loop)
    updater.cancel(loop)

    assert loop.timeouts == {}
    assert events == ["remove_source:timer"]
    assert not updater.is_scheduled
