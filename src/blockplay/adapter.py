"""Contract between the generic runtime and each game's state."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from blockplay.config import RuntimeSettings
from blockplay.program import LeafOp

StateT = TypeVar("StateT")


class GameSignal(Exception):
    """Terminal game outcome raised from ``apply_op``; not a runtime defect."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WinSignal(GameSignal):
    """The level has been won; stop the program."""


class FailureSignal(GameSignal):
    """The level has been lost (collision, out of bounds, ...); stop the program."""


class RuntimeAdapter(Protocol[StateT]):
    """Per-game capability surface driven by the runtime.

    ``apply_op`` may be a coroutine function; the runtime awaits it either way.
    """

    def apply_op(self, op: LeafOp, state: StateT) -> StateT | Awaitable[StateT]: ...

    def reset(self, state: StateT) -> StateT: ...


@dataclass
class AnimationFrame:
    """In-between sprite pose published while a step animates."""

    x: float
    y: float
    direction: str
    progress: float = 1.0


def ease_out(t: float) -> float:
    return 1 - (1 - t) ** 3


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


class AnimationClock:
    """Timing source and frame holder handed to adapters explicitly."""

    def __init__(
        self,
        *,
        move_duration_ms: float = 250.0,
        turn_duration_ms: float = 200.0,
        scale: float = 1.0,
        frame_interval_ms: float = 16.0,
        on_frame: Callable[[AnimationFrame | None], None] | None = None,
    ) -> None:
        self.move_duration_ms = move_duration_ms
        self.turn_duration_ms = turn_duration_ms
        self.scale = scale
        self.frame_interval_ms = frame_interval_ms
        self.on_frame = on_frame
        self.current: AnimationFrame | None = None

    @classmethod
    def from_settings(cls, settings: RuntimeSettings, **kwargs: object) -> AnimationClock:
        return cls(
            move_duration_ms=settings.move_duration_ms,
            turn_duration_ms=settings.turn_duration_ms,
            scale=settings.animation_scale,
            **kwargs,  # type: ignore[arg-type]
        )

    @classmethod
    def instant(cls) -> AnimationClock:
        """Clock that never sleeps; used for headless runs and tests."""
        return cls(scale=0.0)

    def set_frame(self, frame: AnimationFrame | None) -> None:
        self.current = frame
        if self.on_frame:
            self.on_frame(frame)

    def clear(self) -> None:
        self.set_frame(None)

    async def animate(self, duration_ms: float, on_progress: Callable[[float], None]) -> None:
        """Report eased progress in ``[0, 1]`` until ``duration_ms`` (scaled) elapses."""
        duration = duration_ms * self.scale / 1000.0
        if duration <= 0:
            on_progress(1.0)
            return
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            progress = min((loop.time() - started) / duration, 1.0)
            on_progress(ease_out(progress))
            if progress >= 1.0:
                return
            await asyncio.sleep(self.frame_interval_ms / 1000.0)

    async def pause(self, ms: float) -> None:
        delay = ms * self.scale / 1000.0
        if delay > 0:
            await asyncio.sleep(delay)
