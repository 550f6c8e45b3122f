"""Host-side session: one game, its levels, and the currently active run."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

from blockplay.adapter import AnimationClock
from blockplay.compiler import compile_program
from blockplay.config import RuntimeSettings
from blockplay.constraints import check_constraints
from blockplay.errors import ConstraintError
from blockplay.graph import Workspace
from blockplay.instrumentation import RunTrace
from blockplay.program import Program
from blockplay.registry import GameDefinition
from blockplay.runtime import ProgramRuntime, RunCallbacks, run_program
from blockplay.validator import ProgramLimits, validate_program

logger = logging.getLogger(__name__)

STATUS_READY = "Ready"
STATE_RUNNING_MESSAGE = "Playing..."


class GameSession:
    """Holds the game state between runs and owns at most one active runtime."""

    def __init__(
        self,
        game: GameDefinition,
        levels: list[Any],
        *,
        level_id: int | None = None,
        settings: RuntimeSettings | None = None,
        clock: AnimationClock | None = None,
        trace: RunTrace | None = None,
    ) -> None:
        if not levels:
            raise ValueError("at least one level is required")
        self.game = game
        self.levels = levels
        self.settings = settings or RuntimeSettings()
        self.clock = clock or AnimationClock.from_settings(self.settings)
        self.trace = trace
        self.adapter = game.make_adapter(levels, self.clock)
        self.state = game.make_state(levels, levels[0].id if level_id is None else level_id)
        self.runtime: ProgramRuntime[Any] | None = None
        self.status_text = STATUS_READY

    @property
    def level(self) -> Any:
        return next(
            (level for level in self.levels if level.id == self.state.level_id),
            self.levels[0],
        )

    @property
    def running(self) -> bool:
        return self.runtime is not None and not self.runtime.finished

    def prepare(self, workspace: Workspace) -> Program:
        """Compile, validate and constraint-check ``workspace`` without touching the run."""
        program = compile_program(workspace, self.game.compile_options, settings=self.settings)
        validate_program(program, ProgramLimits.from_settings(self.settings))

        options = self.game.compile_options
        result = check_constraints(
            getattr(self.level, "constraints", None),
            workspace.block_types(),
            start_types=options.start_types,
            repeat_types=options.repeat_types,
        )
        if not result.ok:
            message = result.message or "Level constraints not met."
            self.state.status = "error"
            self.state.message = message
            self.status_text = message
            raise ConstraintError(message)
        return program

    async def start(
        self,
        workspace: Workspace,
        callbacks: RunCallbacks | None = None,
    ) -> ProgramRuntime[Any]:
        """Stop any active run, reset the level and start ``workspace`` from scratch."""
        program = self.prepare(workspace)
        await self.stop()

        self.state = self.adapter.reset(self.state)
        self.state.status = "running"
        self.state.message = STATE_RUNNING_MESSAGE
        logger.info("Starting %s level %s.", self.game.id, self.state.level_id)
        self.runtime = run_program(
            program,
            self.adapter,
            self._track_status(callbacks or RunCallbacks()),
            initial_state=self.state,
            trace=self.trace,
        )
        return self.runtime

    async def run(
        self,
        workspace: Workspace,
        callbacks: RunCallbacks | None = None,
    ) -> ProgramRuntime[Any]:
        runtime = await self.start(workspace, callbacks)
        await runtime.wait()
        self.state = runtime.state
        return runtime

    async def stop(self) -> None:
        """Stop the active run and wait for it to unwind."""
        if self.runtime is None or self.runtime.finished:
            return
        self.runtime.stop()
        await self.runtime.wait()

    async def restart(self) -> None:
        await self.stop()
        self.state = self.adapter.reset(self.state)
        self.state.status = "idle"
        self.state.message = None
        self.status_text = STATUS_READY

    def advance_level(self) -> bool:
        """Move to the next level after a win; ``False`` when there is none."""
        if self.state.status not in {"win", "complete"}:
            return False
        next_level = next(
            (level for level in self.levels if level.id == self.state.level_id + 1),
            None,
        )
        if next_level is None:
            return False
        completed = list(self.state.completed_levels)
        self.state = self.game.make_state(self.levels, next_level.id)
        self.state.completed_levels = completed
        self.status_text = f"Level {next_level.id} ready"
        return True

    def _track_status(self, callbacks: RunCallbacks) -> RunCallbacks:
        forward = callbacks.on_status

        async def on_status(text: str) -> None:
            self.status_text = text
            if forward:
                result = forward(text)
                if asyncio.iscoroutine(result):
                    await result

        return dataclasses.replace(callbacks, on_status=on_status)
