"""Per-level workspace constraints checked before a run starts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

# Helper blocks that never count towards a level's block budget.
IGNORED_PREFIXES = ("dropdown_", "math_")


class LevelConstraints(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_blocks: int | None = Field(default=None, ge=1)
    must_use_repeat: bool = False


@dataclass(frozen=True)
class ConstraintResult:
    ok: bool
    message: str | None = None


def counted_block_types(block_types: Iterable[str], start_types: Iterable[str]) -> list[str]:
    """Drop start blocks and literal/dropdown helper blocks from a type list."""
    starts = set(start_types)
    return [
        block_type
        for block_type in block_types
        if block_type not in starts and not block_type.startswith(IGNORED_PREFIXES)
    ]


def check_constraints(
    constraints: LevelConstraints | None,
    block_types: Iterable[str],
    *,
    start_types: Iterable[str],
    repeat_types: Iterable[str],
) -> ConstraintResult:
    if constraints is None:
        return ConstraintResult(ok=True)

    counted = counted_block_types(block_types, start_types)
    if constraints.max_blocks is not None and len(counted) > constraints.max_blocks:
        return ConstraintResult(
            ok=False, message=f"Use at most {constraints.max_blocks} blocks."
        )

    if constraints.must_use_repeat:
        repeats = set(repeat_types)
        if not any(block_type in repeats for block_type in counted):
            return ConstraintResult(ok=False, message="You have to use a repeat block.")

    return ConstraintResult(ok=True)
