import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from blockplay.adapter import FailureSignal, WinSignal
from blockplay.instrumentation import RunTrace
from blockplay.program import LeafOp, MoveOp, Program, RepeatOp, StartOp, TurnOp
from blockplay.runtime import (
    ProgramRuntime,
    RunCallbacks,
    RunOutcome,
    RunResult,
    RunStatus,
    execute_program,
    run_program,
)


@dataclass
class Counter:
    x: float = 0
    turns: int = 0


class CountingAdapter:
    """Moves along x and counts turns; optionally raises on a given call."""

    def __init__(self, raise_on: int | None = None, signal: Exception | None = None) -> None:
        self.calls: list[str] = []
        self.raise_on = raise_on
        self.signal = signal

    def apply_op(self, op: LeafOp, state: Counter) -> Counter:
        self.calls.append(op.block_id)
        if self.raise_on is not None and len(self.calls) == self.raise_on:
            assert self.signal is not None
            raise self.signal
        if isinstance(op, MoveOp):
            return Counter(x=state.x + op.steps, turns=state.turns)
        if isinstance(op, TurnOp):
            return Counter(x=state.x, turns=state.turns + 1)
        return state

    def reset(self, state: Counter) -> Counter:
        return Counter()


class SlowAdapter(CountingAdapter):
    async def apply_op(self, op: LeafOp, state: Counter) -> Counter:
        await asyncio.sleep(0.01)
        return super().apply_op(op, state)


@dataclass
class Recorder:
    steps: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    done: list[RunResult] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)
    cancelled: int = 0

    def callbacks(self) -> RunCallbacks:
        return RunCallbacks(
            on_step=self.steps.append,
            on_status=self.statuses.append,
            on_done=self.done.append,
            on_error=self.errors.append,
            on_cancel=self._on_cancel,
        )

    def _on_cancel(self) -> None:
        self.cancelled += 1


def _execute(program: Program, adapter: CountingAdapter, recorder: Recorder) -> ProgramRuntime:
    return asyncio.run(
        execute_program(program, adapter, recorder.callbacks(), initial_state=Counter())
    )


def test_single_move_completes() -> None:
    recorder = Recorder()
    runtime = _execute(
        Program(ops=(MoveOp(steps=3, block_id="move-1"),)), CountingAdapter(), recorder
    )

    assert runtime.status is RunStatus.DONE
    assert runtime.state.x == 3
    assert recorder.steps == ["move-1"]
    assert recorder.done == [RunResult(outcome=RunOutcome.COMPLETED, message=None, steps=1)]
    assert recorder.statuses == ["Running...", "Finished."]
    assert recorder.errors == []


def test_repeat_reenters_body_each_iteration() -> None:
    recorder = Recorder()
    adapter = CountingAdapter()
    program = Program(
        ops=(RepeatOp(times=3, block_id="loop", body=(TurnOp(direction="left", block_id="turn"),)),)
    )

    runtime = _execute(program, adapter, recorder)

    assert recorder.steps == ["turn", "turn", "turn"]
    assert adapter.calls == ["turn", "turn", "turn"]
    assert runtime.state.turns == 3
    assert len(recorder.done) == 1


def test_steps_follow_execution_order() -> None:
    recorder = Recorder()
    program = Program(
        ops=(
            StartOp(block_id="s"),
            RepeatOp(
                times=2,
                block_id="outer",
                body=(
                    MoveOp(block_id="a"),
                    RepeatOp(times=2, block_id="inner", body=(TurnOp(direction="right", block_id="b"),)),
                ),
            ),
            MoveOp(block_id="c"),
        )
    )

    runtime = _execute(program, CountingAdapter(), recorder)

    assert recorder.steps == ["s", "a", "b", "b", "a", "b", "b", "c"]
    assert runtime.steps == 8
    assert runtime.state.x == 3


def test_empty_and_negative_repeats_are_no_ops() -> None:
    recorder = Recorder()
    adapter = CountingAdapter()
    program = Program(
        ops=(
            RepeatOp(times=5, block_id="empty"),
            RepeatOp(times=-2, block_id="neg", body=(MoveOp(block_id="m"),)),
        )
    )

    runtime = _execute(program, adapter, recorder)

    assert runtime.status is RunStatus.DONE
    assert adapter.calls == []
    assert recorder.steps == []
    assert recorder.done[0].outcome is RunOutcome.COMPLETED


def test_win_signal_stops_the_run_through_done() -> None:
    recorder = Recorder()
    adapter = CountingAdapter(raise_on=2, signal=WinSignal("You won!"))
    program = Program(
        ops=(MoveOp(block_id="a"), MoveOp(block_id="b"), MoveOp(block_id="c"))
    )

    runtime = _execute(program, adapter, recorder)

    assert adapter.calls == ["a", "b"]
    assert runtime.status is RunStatus.DONE
    assert recorder.done == [RunResult(outcome=RunOutcome.WON, message="You won!", steps=1)]
    assert recorder.errors == []
    assert recorder.statuses[-1] == "You won!"


def test_failure_signal_is_a_lost_outcome() -> None:
    recorder = Recorder()
    adapter = CountingAdapter(raise_on=1, signal=FailureSignal("Crash!"))

    runtime = _execute(Program(ops=(MoveOp(block_id="a"),)), adapter, recorder)

    assert runtime.result is not None
    assert runtime.result.outcome is RunOutcome.LOST
    assert runtime.result.message == "Crash!"
    assert recorder.errors == []


def test_unexpected_exception_goes_to_on_error() -> None:
    recorder = Recorder()
    boom = RuntimeError("boom")
    adapter = CountingAdapter(raise_on=1, signal=boom)

    runtime = _execute(Program(ops=(MoveOp(block_id="a"), MoveOp(block_id="b"))), adapter, recorder)

    assert runtime.status is RunStatus.FAILED
    assert runtime.error is boom
    assert recorder.errors == [boom]
    assert recorder.done == []
    assert adapter.calls == ["a"]


def test_stop_prevents_further_steps() -> None:
    recorder = Recorder()
    adapter = SlowAdapter()
    program = Program(ops=tuple(MoveOp(block_id=f"m{i}") for i in range(50)))

    async def scenario() -> ProgramRuntime:
        runtime = run_program(program, adapter, recorder.callbacks(), initial_state=Counter())
        while runtime.steps < 3:
            await asyncio.sleep(0.005)
        runtime.stop()
        steps_at_stop = len(recorder.steps)
        await runtime.wait()
        # at most the in-flight op completes after stop()
        assert len(recorder.steps) <= steps_at_stop
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.status is RunStatus.CANCELLED
    assert recorder.cancelled == 1
    assert recorder.done == []
    assert recorder.errors == []
    assert recorder.statuses[-1] == "Stopped."
    assert runtime.state.x == runtime.steps
    assert runtime.steps < 50


def test_stop_before_first_step_runs_nothing() -> None:
    recorder = Recorder()
    adapter = CountingAdapter()

    async def scenario() -> ProgramRuntime:
        runtime = run_program(
            Program(ops=(MoveOp(block_id="a"),)), adapter, recorder.callbacks(), initial_state=Counter()
        )
        runtime.stop()
        await runtime.wait()
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.status is RunStatus.CANCELLED
    assert adapter.calls == []
    assert recorder.steps == []


def test_stop_after_finish_is_a_no_op() -> None:
    recorder = Recorder()

    async def scenario() -> ProgramRuntime:
        runtime = run_program(
            Program(ops=(MoveOp(block_id="a"),)),
            CountingAdapter(),
            recorder.callbacks(),
            initial_state=Counter(),
        )
        await runtime.wait()
        runtime.stop()
        runtime.stop()
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.status is RunStatus.DONE
    assert recorder.cancelled == 0


class StoppingAdapter(CountingAdapter):
    """Asks the runtime to stop while applying every op."""

    runtime: ProgramRuntime | None = None

    def apply_op(self, op: LeafOp, state: Counter) -> Counter:
        assert self.runtime is not None
        self.runtime.stop()
        return super().apply_op(op, state)


def test_stop_during_last_op_still_completes() -> None:
    recorder = Recorder()
    adapter = StoppingAdapter()

    async def scenario() -> ProgramRuntime:
        runtime = ProgramRuntime(
            Program(ops=(MoveOp(steps=2, block_id="only"),)),
            adapter,
            Counter(),
            recorder.callbacks(),
        )
        adapter.runtime = runtime
        runtime.start()
        await runtime.wait()
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.status is RunStatus.DONE
    assert runtime.state.x == 2
    assert recorder.done == [RunResult(outcome=RunOutcome.COMPLETED, message=None, steps=1)]
    assert recorder.cancelled == 0


def test_task_cancellation_reports_stopped() -> None:
    recorder = Recorder()
    program = Program(ops=tuple(MoveOp(block_id=f"m{i}") for i in range(50)))

    async def scenario() -> ProgramRuntime:
        runtime = run_program(program, SlowAdapter(), recorder.callbacks(), initial_state=Counter())
        while runtime.steps < 1:
            await asyncio.sleep(0.005)
        runtime._task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runtime.wait()
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.status is RunStatus.CANCELLED
    assert recorder.cancelled == 1
    assert recorder.statuses[-1] == "Stopped."
    assert recorder.done == []


def test_async_callbacks_are_awaited() -> None:
    seen: list[str] = []

    async def on_step(block_id: str) -> None:
        await asyncio.sleep(0)
        seen.append(block_id)

    asyncio.run(
        execute_program(
            Program(ops=(MoveOp(block_id="a"), MoveOp(block_id="b"))),
            SlowAdapter(),
            RunCallbacks(on_step=on_step),
            initial_state=Counter(),
        )
    )

    assert seen == ["a", "b"]


def test_trace_records_run_lifecycle(tmp_path: Path) -> None:
    trace = RunTrace(tmp_path / "trace.jsonl")

    asyncio.run(
        execute_program(
            Program(ops=(MoveOp(block_id="a"),)),
            CountingAdapter(),
            initial_state=Counter(),
            trace=trace,
        )
    )

    events = [event["event"] for event in trace.read_events()]
    assert events == ["run_started", "step", "run_finished"]
