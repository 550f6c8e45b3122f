"""Structural checks on a compiled program before any run side effects."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from blockplay.config import RuntimeSettings
from blockplay.errors import ValidationError
from blockplay.program import Op, Program, RepeatOp, StartOp


@dataclass(frozen=True)
class ProgramLimits:
    max_repeat_times: int = 1000
    max_nesting_depth: int = 32
    max_total_steps: int = 10_000

    @classmethod
    def from_settings(cls, settings: RuntimeSettings) -> ProgramLimits:
        return cls(
            max_repeat_times=settings.max_repeat_times,
            max_nesting_depth=settings.max_nesting_depth,
            max_total_steps=settings.max_total_steps,
        )


def _check_ops(
    ops: Sequence[Op],
    limits: ProgramLimits,
    problems: list[str],
    *,
    top_level: bool,
) -> None:
    for index, op in enumerate(ops):
        if isinstance(op, StartOp) and not (top_level and index == 0):
            problems.append(f"start block '{op.block_id}' must be the first instruction")
        if isinstance(op, RepeatOp):
            if op.times > limits.max_repeat_times:
                problems.append(
                    f"repeat block '{op.block_id}' runs {op.times} times "
                    f"(limit {limits.max_repeat_times})"
                )
            _check_ops(op.body, limits, problems, top_level=False)


def validate_program(program: Program, limits: ProgramLimits | None = None) -> None:
    """Raise ``ValidationError`` listing every structural problem found."""
    limits = limits or ProgramLimits()
    problems: list[str] = []

    if not any(not isinstance(op, StartOp) for op in program.ops):
        problems.append("program is empty")

    _check_ops(program.ops, limits, problems, top_level=True)

    depth = program.max_depth()
    if depth > limits.max_nesting_depth:
        problems.append(f"loops are nested {depth} deep (limit {limits.max_nesting_depth})")

    total = program.expanded_step_count()
    if total > limits.max_total_steps:
        problems.append(f"program would run {total} steps (limit {limits.max_total_steps})")

    if problems:
        raise ValidationError(problems)
