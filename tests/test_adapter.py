import asyncio

import pytest

from blockplay.adapter import (
    AnimationClock,
    AnimationFrame,
    FailureSignal,
    GameSignal,
    WinSignal,
    ease_out,
    lerp,
)
from blockplay.config import RuntimeSettings


def test_signals_carry_their_message() -> None:
    win = WinSignal("Goal reached!")
    failure = FailureSignal("Crash!")

    assert isinstance(win, GameSignal)
    assert isinstance(failure, GameSignal)
    assert win.message == "Goal reached!"
    assert str(failure) == "Crash!"


def test_easing_helpers() -> None:
    assert ease_out(0.0) == 0.0
    assert ease_out(1.0) == 1.0
    assert ease_out(0.5) == pytest.approx(0.875)
    assert lerp(2.0, 4.0, 0.25) == 2.5


def test_instant_clock_reports_final_progress_only() -> None:
    clock = AnimationClock.instant()
    seen: list[float] = []

    asyncio.run(clock.animate(250, seen.append))

    assert seen == [1.0]


def test_animation_reaches_full_progress() -> None:
    clock = AnimationClock(scale=1.0, frame_interval_ms=1.0)
    seen: list[float] = []

    asyncio.run(clock.animate(20, seen.append))

    assert seen[-1] == 1.0
    assert len(seen) > 1
    assert seen == sorted(seen)


def test_frames_are_published_to_observer() -> None:
    frames: list[AnimationFrame | None] = []
    clock = AnimationClock(on_frame=frames.append)

    clock.set_frame(AnimationFrame(x=1.5, y=2.0, direction="E", progress=0.5))
    clock.clear()

    assert frames[0] == AnimationFrame(x=1.5, y=2.0, direction="E", progress=0.5)
    assert frames[1] is None
    assert clock.current is None


def test_clock_from_settings() -> None:
    settings = RuntimeSettings(move_duration_ms=100, turn_duration_ms=40, animation_scale=0.5)

    clock = AnimationClock.from_settings(settings)

    assert clock.move_duration_ms == 100
    assert clock.turn_duration_ms == 40
    assert clock.scale == 0.5


def test_pause_with_zero_scale_returns_immediately() -> None:
    async def scenario() -> float:
        loop = asyncio.get_running_loop()
        started = loop.time()
        await AnimationClock.instant().pause(10_000)
        return loop.time() - started

    assert asyncio.run(scenario()) < 1.0
