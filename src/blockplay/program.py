"""Instruction model produced by the compiler and consumed by the runtime."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _OpBase(BaseModel):
    """Fields shared by every compiled instruction."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    block_id: str


class StartOp(_OpBase):
    kind: Literal["start"] = "start"


class MoveOp(_OpBase):
    kind: Literal["move"] = "move"
    steps: float = 1


class TurnOp(_OpBase):
    kind: Literal["turn"] = "turn"
    direction: Literal["left", "right"]
    degrees: float = 90


class WaitOp(_OpBase):
    kind: Literal["wait"] = "wait"
    ms: float = 500


class PenOp(_OpBase):
    kind: Literal["pen"] = "pen"
    down: bool


class ColorOp(_OpBase):
    kind: Literal["color"] = "color"
    value: str = "#000000"


class WidthOp(_OpBase):
    kind: Literal["width"] = "width"
    value: float = 3


class CollectOp(_OpBase):
    kind: Literal["collect"] = "collect"


class PlantOp(_OpBase):
    kind: Literal["plant"] = "plant"


class WaterOp(_OpBase):
    kind: Literal["water"] = "water"


class HarvestOp(_OpBase):
    kind: Literal["harvest"] = "harvest"


class RepeatOp(_OpBase):
    """Loop container; the only op with children."""

    kind: Literal["repeat"] = "repeat"
    times: int = 2
    body: tuple[Op, ...] = ()


Op = Annotated[
    Union[
        StartOp,
        MoveOp,
        TurnOp,
        WaitOp,
        PenOp,
        ColorOp,
        WidthOp,
        CollectOp,
        PlantOp,
        WaterOp,
        HarvestOp,
        RepeatOp,
    ],
    Field(discriminator="kind"),
]

LeafOp = Union[
    StartOp,
    MoveOp,
    TurnOp,
    WaitOp,
    PenOp,
    ColorOp,
    WidthOp,
    CollectOp,
    PlantOp,
    WaterOp,
    HarvestOp,
]

RepeatOp.model_rebuild()


class Program(BaseModel):
    """Ordered, immutable instruction tree for one run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ops: tuple[Op, ...] = ()

    def __len__(self) -> int:
        return len(self.ops)

    def iter_leaves(self) -> Iterator[LeafOp]:
        return iter_leaves(self.ops)

    def leaf_count(self) -> int:
        return sum(1 for _ in self.iter_leaves())

    def max_depth(self) -> int:
        return max_depth(self.ops)

    def expanded_step_count(self) -> int:
        return expanded_step_count(self.ops)


def iter_leaves(ops: Sequence[Op]) -> Iterator[LeafOp]:
    """Walk leaves depth-first, visiting each repeat body once."""
    for op in ops:
        if isinstance(op, RepeatOp):
            yield from iter_leaves(op.body)
        else:
            yield op


def max_depth(ops: Sequence[Op]) -> int:
    """Return the deepest repeat nesting level (0 for a flat sequence)."""
    depth = 0
    for op in ops:
        if isinstance(op, RepeatOp):
            depth = max(depth, 1 + max_depth(op.body))
    return depth


def expanded_step_count(ops: Sequence[Op]) -> int:
    """Number of leaf visits a full run makes, with every loop unrolled."""
    total = 0
    for op in ops:
        if isinstance(op, RepeatOp):
            total += max(0, op.times) * expanded_step_count(op.body)
        else:
            total += 1
    return total


def is_movement_op(op: Op) -> bool:
    return op.kind in {"move", "turn"}


def is_drawing_op(op: Op) -> bool:
    return op.kind in {"pen", "color", "width"}


def is_collector_op(op: Op) -> bool:
    return op.kind in {"collect", "plant", "water", "harvest"}
