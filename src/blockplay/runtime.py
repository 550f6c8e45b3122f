"""Stepwise execution of a compiled program against a game adapter."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic

from blockplay.adapter import GameSignal, RuntimeAdapter, StateT, WinSignal
from blockplay.instrumentation import RunTrace
from blockplay.program import LeafOp, Op, Program, RepeatOp

logger = logging.getLogger(__name__)

STATUS_RUNNING = "Running..."
STATUS_FINISHED = "Finished."
STATUS_STOPPED = "Stopped."


class RunStatus(str, Enum):
    """Lifecycle of a single run."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunOutcome(str, Enum):
    """How a run reached ``RunStatus.DONE``."""

    COMPLETED = "completed"
    WON = "won"
    LOST = "lost"


@dataclass(frozen=True)
class RunResult:
    outcome: RunOutcome
    message: str | None
    steps: int


@dataclass
class RunCallbacks:
    """Host hooks; each may be a plain function or a coroutine function."""

    on_step: Callable[[str], Any] | None = None
    on_status: Callable[[str], Any] | None = None
    on_done: Callable[[RunResult], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    on_cancel: Callable[[], Any] | None = None


class _StopRequested(Exception):
    """Internal unwinding marker for cooperative cancellation."""


class ProgramRuntime(Generic[StateT]):
    """Runs one program once; doubles as the host-facing controller."""

    def __init__(
        self,
        program: Program,
        adapter: RuntimeAdapter[StateT],
        state: StateT,
        callbacks: RunCallbacks | None = None,
        *,
        trace: RunTrace | None = None,
    ) -> None:
        self.program = program
        self.adapter = adapter
        self.state = state
        self.callbacks = callbacks or RunCallbacks()
        self.trace = trace
        self.status = RunStatus.IDLE
        self.steps = 0
        self.result: RunResult | None = None
        self.error: BaseException | None = None
        self._stop_requested = False
        self._task: asyncio.Task[None] | None = None

    @property
    def finished(self) -> bool:
        return self.status in {RunStatus.DONE, RunStatus.FAILED, RunStatus.CANCELLED}

    def start(self) -> None:
        """Schedule the run on the current event loop."""
        if self.status is not RunStatus.IDLE:
            return
        self.status = RunStatus.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Request cancellation at the next instruction boundary."""
        if self.finished:
            return
        self._stop_requested = True

    async def wait(self) -> RunStatus:
        if self._task is not None:
            await self._task
        return self.status

    async def _run(self) -> None:
        logger.info("Run started (%d leaf instructions).", self.program.leaf_count())
        if self.trace:
            self.trace.run_started(self.program)
        try:
            await self._emit(self.callbacks.on_status, STATUS_RUNNING)
            await self._execute(self.program.ops)
        except _StopRequested:
            await self._finish_cancelled()
        except GameSignal as signal:
            outcome = RunOutcome.WON if isinstance(signal, WinSignal) else RunOutcome.LOST
            await self._finish_done(outcome, signal.message)
        except asyncio.CancelledError:
            await self._finish_cancelled()
            raise
        except Exception as exc:
            await self._finish_failed(exc)
        else:
            await self._finish_done(RunOutcome.COMPLETED, None)

    async def _execute(self, ops: Sequence[Op]) -> None:
        for op in ops:
            if isinstance(op, RepeatOp):
                # Re-enter the body on every pass so adapters see fresh state.
                for _ in range(max(0, op.times)):
                    self._check_stop()
                    await self._execute(op.body)
                continue
            await self._step(op)

    async def _step(self, op: LeafOp) -> None:
        self._check_stop()
        logger.debug("Step %d: %s (%s)", self.steps + 1, op.kind, op.block_id)
        if self.trace:
            self.trace.step(self.steps + 1, op)
        await self._emit(self.callbacks.on_step, op.block_id)
        result = self.adapter.apply_op(op, self.state)
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            self.state = result
        self.steps += 1

    def _check_stop(self) -> None:
        if self._stop_requested:
            raise _StopRequested

    async def _finish_done(self, outcome: RunOutcome, message: str | None) -> None:
        self.status = RunStatus.DONE
        self.result = RunResult(outcome=outcome, message=message, steps=self.steps)
        logger.info("Run finished: %s after %d steps.", outcome.value, self.steps)
        if self.trace:
            self.trace.run_finished(
                self.status.value, message=message, outcome=outcome.value, steps=self.steps
            )
        await self._emit(self.callbacks.on_status, message or STATUS_FINISHED)
        await self._emit(self.callbacks.on_done, self.result)

    async def _finish_failed(self, exc: Exception) -> None:
        self.status = RunStatus.FAILED
        self.error = exc
        logger.error("Run failed after %d steps: %s", self.steps, exc)
        if self.trace:
            self.trace.run_finished(
                self.status.value, message=str(exc), error=type(exc).__name__, steps=self.steps
            )
        await self._emit(self.callbacks.on_error, exc)

    async def _finish_cancelled(self) -> None:
        self.status = RunStatus.CANCELLED
        logger.info("Run stopped after %d steps.", self.steps)
        if self.trace:
            self.trace.run_finished(self.status.value, steps=self.steps)
        await self._emit(self.callbacks.on_status, STATUS_STOPPED)
        await self._emit(self.callbacks.on_cancel)

    async def _emit(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result


def run_program(
    program: Program,
    adapter: RuntimeAdapter[StateT],
    callbacks: RunCallbacks | None = None,
    *,
    initial_state: StateT,
    trace: RunTrace | None = None,
) -> ProgramRuntime[StateT]:
    """Start ``program`` on the running event loop and return its controller."""
    runtime = ProgramRuntime(program, adapter, initial_state, callbacks, trace=trace)
    runtime.start()
    return runtime


async def execute_program(
    program: Program,
    adapter: RuntimeAdapter[StateT],
    callbacks: RunCallbacks | None = None,
    *,
    initial_state: StateT,
    trace: RunTrace | None = None,
) -> ProgramRuntime[StateT]:
    """Run ``program`` to a terminal state and return the finished runtime."""
    runtime = run_program(program, adapter, callbacks, initial_state=initial_state, trace=trace)
    await runtime.wait()
    return runtime
