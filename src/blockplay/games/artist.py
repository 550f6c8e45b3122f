"""Turtle-graphics artist: draw lines by moving a pen around a canvas."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from blockplay.adapter import AnimationClock, WinSignal
from blockplay.compiler import CompileOptions
from blockplay.constraints import LevelConstraints
from blockplay.program import (
    ColorOp,
    LeafOp,
    MoveOp,
    PenOp,
    TurnOp,
    WaitOp,
    WidthOp,
    is_drawing_op,
)
from blockplay.registry import GameDefinition

PIXELS_PER_STEP = 10
MOVE_PAUSE_MS = 200
TURN_PAUSE_MS = 50
DEFAULT_PEN_COLOR = "#000000"
DEFAULT_PEN_WIDTH = 3.0
MATCH_TOLERANCE = 10.0
DRAWING_MATCHED_MESSAGE = "Drawing complete!"


class Point(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float


class Line(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: Point
    end: Point
    color: str = DEFAULT_PEN_COLOR
    width: float = DEFAULT_PEN_WIDTH


class ArtistLevel(BaseModel):
    """Canvas, turtle start pose and optional target drawing."""

    model_config = ConfigDict(extra="forbid")

    id: int
    title: str = ""
    instructions: str = ""
    width: int = Field(default=400, ge=1)
    height: int = Field(default=400, ge=1)
    start_x: float = 200
    start_y: float = 200
    start_angle: float = 0
    target_lines: list[Line] = Field(default_factory=list)
    constraints: LevelConstraints | None = None


@dataclass
class ArtistState:
    level_id: int
    x: float
    y: float
    angle: float
    pen_down: bool = True
    pen_color: str = DEFAULT_PEN_COLOR
    pen_width: float = DEFAULT_PEN_WIDTH
    lines: list[Line] = field(default_factory=list)
    status: str = "idle"
    message: str | None = None
    completed_levels: list[int] = field(default_factory=list)


def normalize_angle(angle: float) -> float:
    return angle % 360


def calculate_end_point(x: float, y: float, angle: float, distance: float) -> Point:
    """Project ``distance`` along ``angle`` (0 = right, 90 = up; canvas y grows down)."""
    radians = np.deg2rad(angle)
    return Point(x=float(x + np.cos(radians) * distance), y=float(y - np.sin(radians) * distance))


def get_level(levels: list[ArtistLevel], level_id: int) -> ArtistLevel:
    for level in levels:
        if level.id == level_id:
            return level
    return levels[0]


def make_initial_state(
    levels: list[ArtistLevel],
    level_id: int,
    completed_levels: list[int] | None = None,
) -> ArtistState:
    level = get_level(levels, level_id)
    return ArtistState(
        level_id=level.id,
        x=level.start_x,
        y=level.start_y,
        angle=level.start_angle,
        completed_levels=list(completed_levels or []),
    )


def move_forward(state: ArtistState, distance: float) -> Line | None:
    end = calculate_end_point(state.x, state.y, state.angle, distance)
    line = None
    if state.pen_down:
        line = Line(
            start=Point(x=state.x, y=state.y),
            end=end,
            color=state.pen_color,
            width=state.pen_width,
        )
        state.lines.append(line)
    state.x = end.x
    state.y = end.y
    return line


def turn(state: ArtistState, direction: str, degrees: float) -> None:
    delta = degrees if direction == "left" else -degrees
    state.angle = normalize_angle(state.angle + delta)


def set_width(state: ArtistState, width: float) -> None:
    state.pen_width = max(1.0, width)


def set_pen(state: ArtistState, op: PenOp | ColorOp | WidthOp) -> None:
    if isinstance(op, PenOp):
        state.pen_down = op.down
    elif isinstance(op, ColorOp):
        state.pen_color = op.value
    else:
        set_width(state, op.value)


def _endpoints(lines: Sequence[Line]) -> np.ndarray:
    return np.array(
        [[line.start.x, line.start.y, line.end.x, line.end.y] for line in lines],
        dtype=float,
    ).reshape(-1, 4)


def validate_drawing(
    drawn: Sequence[Line],
    target: Sequence[Line],
    tolerance: float = MATCH_TOLERANCE,
) -> bool:
    """True when both drawings have the same lines, endpoints within ``tolerance``."""
    if len(drawn) != len(target):
        return False
    if not target:
        return True
    a = _endpoints(drawn)
    b = _endpoints(target)
    start_dist = np.hypot(a[:, 0] - b[:, 0], a[:, 1] - b[:, 1])
    end_dist = np.hypot(a[:, 2] - b[:, 2], a[:, 3] - b[:, 3])
    return bool(np.all(start_dist <= tolerance) and np.all(end_dist <= tolerance))


class ArtistAdapter:
    """Applies drawing ops; wins as soon as the drawing matches the level target."""

    def __init__(
        self,
        levels: list[ArtistLevel],
        *,
        clock: AnimationClock | None = None,
        on_draw: Callable[[ArtistState], None] | None = None,
        on_line_drawn: Callable[[Line], None] | None = None,
    ) -> None:
        if not levels:
            raise ValueError("at least one level is required")
        self.levels = levels
        self.clock = clock or AnimationClock.instant()
        self.on_draw = on_draw
        self.on_line_drawn = on_line_drawn

    def _draw(self, state: ArtistState) -> None:
        if self.on_draw:
            self.on_draw(state)

    async def apply_op(self, op: LeafOp, state: ArtistState) -> ArtistState:
        if state.status in {"complete", "error"}:
            return state

        if isinstance(op, MoveOp):
            line = move_forward(state, op.steps * PIXELS_PER_STEP)
            if line is not None and self.on_line_drawn:
                self.on_line_drawn(line)
            self._draw(state)
            await self.clock.pause(MOVE_PAUSE_MS)
            self._check_target(state)
        elif isinstance(op, TurnOp):
            turn(state, op.direction, op.degrees)
            self._draw(state)
            await self.clock.pause(TURN_PAUSE_MS)
        elif is_drawing_op(op):
            set_pen(state, op)
            self._draw(state)
        elif isinstance(op, WaitOp):
            await self.clock.pause(op.ms)
        return state

    def _check_target(self, state: ArtistState) -> None:
        level = get_level(self.levels, state.level_id)
        if not level.target_lines:
            return
        if validate_drawing(state.lines, level.target_lines):
            if state.level_id not in state.completed_levels:
                state.completed_levels.append(state.level_id)
            state.status = "complete"
            state.message = DRAWING_MATCHED_MESSAGE
            self._draw(state)
            raise WinSignal(DRAWING_MATCHED_MESSAGE)

    def reset(self, state: ArtistState) -> ArtistState:
        fresh = make_initial_state(self.levels, state.level_id, state.completed_levels)
        for item in fields(fresh):
            setattr(state, item.name, getattr(fresh, item.name))
        self._draw(state)
        return state


ARTIST_GAME = GameDefinition(
    id="artist",
    title="Artist",
    compile_options=CompileOptions(
        move_types=["artist_move", "artist_move_simple"],
        turn_left_types=["artist_turn_left", "artist_turn_left_90"],
        turn_right_types=["artist_turn_right", "artist_turn_right_90"],
        repeat_types=["artist_repeat"],
        wait_types=["artist_wait"],
        pen_up_types=["artist_pen_up"],
        pen_down_types=["artist_pen_down"],
        color_types=["artist_set_color"],
        width_types=["artist_set_width"],
    ),
    level_model=ArtistLevel,
    make_adapter=lambda levels, clock: ArtistAdapter(levels, clock=clock),
    make_state=make_initial_state,
)
