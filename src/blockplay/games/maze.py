"""Grid maze: walk a character to the goal cell without hitting walls."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from blockplay.adapter import (
    AnimationClock,
    AnimationFrame,
    FailureSignal,
    WinSignal,
    lerp,
)
from blockplay.compiler import CompileOptions
from blockplay.constraints import LevelConstraints
from blockplay.program import LeafOp, MoveOp, TurnOp, WaitOp, is_movement_op
from blockplay.registry import GameDefinition

Direction = Literal["N", "E", "S", "W"]

DIR_ORDER: tuple[Direction, ...] = ("N", "E", "S", "W")

DIR_DELTAS: dict[str, tuple[int, int]] = {
    "N": (0, -1),
    "E": (1, 0),
    "S": (0, 1),
    "W": (-1, 0),
}

CRASH_MESSAGE = "Crash!"


class GridPoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: int
    y: int


class Obstacle(GridPoint):
    type: str | None = None


class StartPose(GridPoint):
    dir: Direction = "E"


class MazeLevel(BaseModel):
    """One maze layout."""

    model_config = ConfigDict(extra="forbid")

    id: int
    title: str = ""
    grid_w: int = Field(ge=1)
    grid_h: int = Field(ge=1)
    walls: list[Obstacle] = Field(default_factory=list)
    start: StartPose
    goal: GridPoint
    constraints: LevelConstraints | None = None
    instructions: str | None = None


@dataclass
class Player:
    x: int
    y: int
    dir: str


@dataclass
class MazeState:
    level_id: int
    player: Player
    status: str = "idle"
    message: str | None = None
    completed_levels: list[int] = field(default_factory=list)
    visited_cells: list[tuple[int, int]] = field(default_factory=list)


def turn_left(direction: str) -> str:
    index = DIR_ORDER.index(direction)
    return DIR_ORDER[(index + 3) % len(DIR_ORDER)]


def turn_right(direction: str) -> str:
    index = DIR_ORDER.index(direction)
    return DIR_ORDER[(index + 1) % len(DIR_ORDER)]


def get_delta(direction: str) -> tuple[int, int]:
    return DIR_DELTAS[direction]


def is_blocked(level: MazeLevel, x: int, y: int) -> bool:
    return any(wall.x == x and wall.y == y for wall in level.walls)


def in_bounds(level: MazeLevel, x: int, y: int) -> bool:
    return 0 <= x < level.grid_w and 0 <= y < level.grid_h


def get_level(levels: list[MazeLevel], level_id: int) -> MazeLevel:
    """Look up a level by id, falling back to the first one."""
    for level in levels:
        if level.id == level_id:
            return level
    return levels[0]


def make_initial_state(
    levels: list[MazeLevel],
    level_id: int,
    completed_levels: list[int] | None = None,
) -> MazeState:
    level = get_level(levels, level_id)
    return MazeState(
        level_id=level.id,
        player=Player(x=level.start.x, y=level.start.y, dir=level.start.dir),
        completed_levels=list(completed_levels or []),
        visited_cells=[(level.start.x, level.start.y)],
    )


class MazeAdapter:
    """Moves the player cell by cell, animating through an ``AnimationClock``."""

    def __init__(
        self,
        levels: list[MazeLevel],
        *,
        clock: AnimationClock | None = None,
        on_draw: Callable[[MazeState], None] | None = None,
    ) -> None:
        if not levels:
            raise ValueError("at least one level is required")
        self.levels = levels
        self.clock = clock or AnimationClock.instant()
        self.on_draw = on_draw

    def _draw(self, state: MazeState) -> None:
        if self.on_draw:
            self.on_draw(state)

    async def apply_op(self, op: LeafOp, state: MazeState) -> MazeState:
        if state.status in {"win", "error"}:
            return state
        if is_movement_op(op):
            if isinstance(op, TurnOp):
                await self._turn(op, state)
            else:
                await self._move(op, state, get_level(self.levels, state.level_id))
        elif isinstance(op, WaitOp):
            await self.clock.pause(op.ms)
        return state

    async def _turn(self, op: TurnOp, state: MazeState) -> None:
        old_dir = state.player.dir
        new_dir = turn_left(old_dir) if op.direction == "left" else turn_right(old_dir)

        def frame(progress: float) -> None:
            self.clock.set_frame(
                AnimationFrame(
                    x=state.player.x,
                    y=state.player.y,
                    direction=old_dir if progress < 0.5 else new_dir,
                    progress=progress,
                )
            )
            self._draw(state)

        await self.clock.animate(self.clock.turn_duration_ms, frame)
        state.player.dir = new_dir
        self.clock.clear()
        self._draw(state)

    async def _move(self, op: MoveOp, state: MazeState, level: MazeLevel) -> None:
        dx, dy = get_delta(state.player.dir)
        sign = 1 if op.steps >= 0 else -1
        for _ in range(math.ceil(abs(op.steps))):
            start_x, start_y = state.player.x, state.player.y
            next_x = start_x + dx * sign
            next_y = start_y + dy * sign

            if not in_bounds(level, next_x, next_y) or is_blocked(level, next_x, next_y):
                state.status = "error"
                state.message = CRASH_MESSAGE
                self.clock.clear()
                self._draw(state)
                raise FailureSignal(CRASH_MESSAGE)

            def frame(progress: float) -> None:
                self.clock.set_frame(
                    AnimationFrame(
                        x=lerp(start_x, next_x, progress),
                        y=lerp(start_y, next_y, progress),
                        direction=state.player.dir,
                    )
                )
                self._draw(state)

            await self.clock.animate(self.clock.move_duration_ms, frame)
            state.player.x = next_x
            state.player.y = next_y
            self.clock.clear()
            if (next_x, next_y) not in state.visited_cells:
                state.visited_cells.append((next_x, next_y))

            self._after_cell(state, level)
            self._draw(state)

    def _after_cell(self, state: MazeState, level: MazeLevel) -> None:
        if (state.player.x, state.player.y) != (level.goal.x, level.goal.y):
            return
        if state.level_id not in state.completed_levels:
            state.completed_levels.append(state.level_id)
        next_level = next((lvl for lvl in self.levels if lvl.id == state.level_id + 1), None)
        state.status = "win"
        state.message = (
            f"Goal reached! Advancing to level {next_level.id}..."
            if next_level
            else "Goal reached! All levels complete!"
        )
        self._draw(state)
        raise WinSignal(state.message)

    def reset(self, state: MazeState) -> MazeState:
        self.clock.clear()
        fresh = make_initial_state(self.levels, state.level_id, state.completed_levels)
        state.level_id = fresh.level_id
        state.player = fresh.player
        state.status = fresh.status
        state.message = fresh.message
        state.completed_levels = fresh.completed_levels
        state.visited_cells = fresh.visited_cells
        self._draw(state)
        return state


def _maze_options(prefix: str) -> CompileOptions:
    return CompileOptions(
        move_types=[f"{prefix}game_move"],
        back_types=[f"{prefix}game_back"],
        turn_left_types=[f"{prefix}game_turn_left"],
        turn_right_types=[f"{prefix}game_turn_right"],
        repeat_types=[f"{prefix}game_repeat"],
        wait_types=[f"{prefix}game_wait"],
    )


MAZE_GAME = GameDefinition(
    id="maze",
    title="Maze",
    compile_options=_maze_options(""),
    level_model=MazeLevel,
    make_adapter=lambda levels, clock: MazeAdapter(levels, clock=clock),
    make_state=make_initial_state,
)

MAZE_VERTICAL_GAME = GameDefinition(
    id="maze-vertical",
    title="Maze (vertical blocks)",
    compile_options=_maze_options("v_"),
    level_model=MazeLevel,
    make_adapter=lambda levels, clock: MazeAdapter(levels, clock=clock),
    make_state=make_initial_state,
    block_type="vertical",
)
