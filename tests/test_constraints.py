import pytest
from pydantic import ValidationError as PydanticValidationError

from blockplay.constraints import (
    ConstraintResult,
    LevelConstraints,
    check_constraints,
    counted_block_types,
)

START_TYPES = ["event_inicio", "event_whenflagclicked"]
REPEAT_TYPES = ["game_repeat"]


def _check(constraints: LevelConstraints | None, types: list[str]) -> ConstraintResult:
    return check_constraints(
        constraints, types, start_types=START_TYPES, repeat_types=REPEAT_TYPES
    )


def test_helper_blocks_are_not_counted() -> None:
    types = ["event_inicio", "game_move", "math_number", "dropdown_dir", "game_repeat"]

    assert counted_block_types(types, START_TYPES) == ["game_move", "game_repeat"]


def test_no_constraints_always_pass() -> None:
    assert _check(None, ["game_move"] * 50).ok


def test_block_budget() -> None:
    constraints = LevelConstraints(max_blocks=2)

    assert _check(constraints, ["event_inicio", "game_move", "math_number", "game_move"]).ok

    result = _check(constraints, ["event_inicio", "game_move", "game_move", "game_move"])
    assert not result.ok
    assert result.message == "Use at most 2 blocks."


def test_required_repeat() -> None:
    constraints = LevelConstraints(must_use_repeat=True)

    assert _check(constraints, ["event_inicio", "game_repeat", "game_move"]).ok

    result = _check(constraints, ["event_inicio", "game_move"])
    assert not result.ok
    assert result.message == "You have to use a repeat block."


def test_budget_must_be_positive() -> None:
    with pytest.raises(PydanticValidationError):
        LevelConstraints(max_blocks=0)
