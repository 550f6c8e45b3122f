import asyncio

import pytest

from blockplay.games.artist import (
    ARTIST_GAME,
    ArtistAdapter,
    ArtistLevel,
    Line,
    Point,
    calculate_end_point,
    make_initial_state,
    normalize_angle,
    validate_drawing,
)
from blockplay.program import (
    ColorOp,
    MoveOp,
    PenOp,
    Program,
    RepeatOp,
    TurnOp,
    WidthOp,
)
from blockplay.runtime import RunOutcome, execute_program


def _line(x1: float, y1: float, x2: float, y2: float) -> Line:
    return Line(start=Point(x=x1, y=y1), end=Point(x=x2, y=y2))


SQUARE = [
    _line(100, 100, 150, 100),
    _line(150, 100, 150, 50),
    _line(150, 50, 100, 50),
    _line(100, 50, 100, 100),
]

LEVELS = [
    ArtistLevel(id=1, start_x=100, start_y=100, start_angle=0, target_lines=SQUARE),
    ArtistLevel(id=2, start_x=0, start_y=0),
]


def _apply(adapter: ArtistAdapter, op, state):
    return asyncio.run(adapter.apply_op(op, state))


def test_angles_normalize_into_a_full_turn() -> None:
    assert normalize_angle(450) == 90
    assert normalize_angle(-90) == 270


def test_end_point_uses_screen_coordinates() -> None:
    up = calculate_end_point(10, 10, 90, 5)

    assert up.x == pytest.approx(10)
    assert up.y == pytest.approx(5)


def test_move_draws_only_with_pen_down() -> None:
    adapter = ArtistAdapter(LEVELS)
    state = make_initial_state(LEVELS, 2)

    _apply(adapter, MoveOp(steps=2, block_id="m1"), state)
    _apply(adapter, PenOp(down=False, block_id="up"), state)
    _apply(adapter, MoveOp(steps=1, block_id="m2"), state)
    _apply(adapter, PenOp(down=True, block_id="down"), state)
    _apply(adapter, MoveOp(steps=1, block_id="m3"), state)

    assert len(state.lines) == 2
    assert state.lines[0].end.x == pytest.approx(20)
    assert state.lines[1].start.x == pytest.approx(30)
    assert state.x == pytest.approx(40)


def test_turns_color_and_width() -> None:
    adapter = ArtistAdapter(LEVELS)
    state = make_initial_state(LEVELS, 2)

    _apply(adapter, TurnOp(direction="right", degrees=90, block_id="t"), state)
    _apply(adapter, ColorOp(value="#ff0000", block_id="c"), state)
    _apply(adapter, WidthOp(value=0, block_id="w"), state)
    _apply(adapter, MoveOp(steps=1, block_id="m"), state)

    assert state.angle == 270
    assert state.pen_width == 1
    line = state.lines[0]
    assert line.color == "#ff0000"
    assert line.end.y == pytest.approx(10)


def test_validate_drawing_tolerance() -> None:
    nudged = [_line(104, 103, 150, 100), *SQUARE[1:]]
    far = [_line(120, 100, 150, 100), *SQUARE[1:]]

    assert validate_drawing(SQUARE, SQUARE)
    assert validate_drawing(nudged, SQUARE)
    assert not validate_drawing(far, SQUARE)
    assert not validate_drawing(SQUARE[:3], SQUARE)
    assert validate_drawing([], [])


def test_matching_the_target_wins() -> None:
    program = Program(
        ops=(
            RepeatOp(
                times=4,
                block_id="loop",
                body=(
                    MoveOp(steps=5, block_id="fd"),
                    TurnOp(direction="left", degrees=90, block_id="lt"),
                ),
            ),
        )
    )
    state = make_initial_state(LEVELS, 1)

    runtime = asyncio.run(execute_program(program, ArtistAdapter(LEVELS), initial_state=state))

    assert runtime.result is not None
    assert runtime.result.outcome is RunOutcome.WON
    assert runtime.result.message == "Drawing complete!"
    assert state.status == "complete"
    assert state.completed_levels == [1]
    # the final turn never runs once the fourth side matches
    assert runtime.steps == 6


def test_level_without_target_never_wins() -> None:
    adapter = ArtistAdapter(LEVELS)
    state = make_initial_state(LEVELS, 2)

    for _ in range(3):
        _apply(adapter, MoveOp(steps=1, block_id="m"), state)

    assert state.status == "idle"


def test_wrong_drawing_does_not_win() -> None:
    adapter = ArtistAdapter(LEVELS)
    state = make_initial_state(LEVELS, 1)

    _apply(adapter, MoveOp(steps=5, block_id="m"), state)

    assert len(state.lines) == 1
    assert state.status == "idle"


def test_reset_clears_drawing() -> None:
    adapter = ArtistAdapter(LEVELS)
    state = make_initial_state(LEVELS, 1)
    _apply(adapter, MoveOp(steps=3, block_id="m"), state)
    _apply(adapter, PenOp(down=False, block_id="p"), state)

    adapter.reset(state)

    assert state.lines == []
    assert state.pen_down is True
    assert (state.x, state.y) == (100, 100)


def test_artist_game_tags() -> None:
    options = ARTIST_GAME.compile_options

    assert "artist_move_simple" in options.move_types
    assert options.pen_up_types == ["artist_pen_up"]
    assert options.width_types == ["artist_set_width"]
