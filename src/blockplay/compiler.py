"""Compile a graph of connected editor blocks into a ``Program``."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from blockplay.config import RuntimeSettings
from blockplay.errors import CompilationError
from blockplay.graph import BlockGraph, BlockLike, FieldValue
from blockplay.program import (
    CollectOp,
    ColorOp,
    HarvestOp,
    MoveOp,
    Op,
    PenOp,
    PlantOp,
    Program,
    RepeatOp,
    StartOp,
    TurnOp,
    WaitOp,
    WaterOp,
    WidthOp,
)

logger = logging.getLogger(__name__)

MAX_CHAIN = 500
MAX_NESTING_DEPTH = 32
MAX_TOTAL_BLOCKS = 10_000

# Keys tried on a literal value block plugged into an input slot.
FALLBACK_NUMBER_KEYS = ("NUM", "N", "VALUE", "TIMES", "DURATION", "STEPS", "SECS", "MS")

STEP_KEYS = ("STEPS", "NUM", "N")
DEGREE_KEYS = ("DEGREES", "DEG", "ANGLE", "NUM")
TIMES_KEYS = ("TIMES", "NUM", "N")
WIDTH_KEYS = ("WIDTH", "NUM", "N")
COLOR_KEYS = ("COLOR", "VALUE", "NAME")
WAIT_GENERIC_KEYS = ("NUM", "N", "DURATION")
BODY_SLOTS = ("SUBSTACK", "DO")

DEFAULT_STEPS = 1
DEFAULT_DEGREES = 90
DEFAULT_TIMES = 2
DEFAULT_WIDTH = 3
DEFAULT_COLOR = "#000000"
DEFAULT_WAIT_MS = 500


class CompileOptions(BaseModel):
    """Per-game mapping from block type tags to instruction kinds."""

    model_config = ConfigDict(extra="forbid")

    start_types: list[str] = Field(
        default_factory=lambda: ["event_inicio", "event_whenflagclicked"]
    )
    move_types: list[str] = Field(default_factory=list)
    back_types: list[str] = Field(default_factory=list)
    turn_left_types: list[str] = Field(default_factory=list)
    turn_right_types: list[str] = Field(default_factory=list)
    repeat_types: list[str] = Field(default_factory=list)
    wait_types: list[str] = Field(default_factory=list)
    pen_up_types: list[str] = Field(default_factory=list)
    pen_down_types: list[str] = Field(default_factory=list)
    color_types: list[str] = Field(default_factory=list)
    width_types: list[str] = Field(default_factory=list)
    collect_types: list[str] = Field(default_factory=list)
    plant_types: list[str] = Field(default_factory=list)
    water_types: list[str] = Field(default_factory=list)
    harvest_types: list[str] = Field(default_factory=list)

    def known_types(self) -> set[str]:
        known: set[str] = set()
        for value in self.model_dump().values():
            known.update(value)
        return known


def parse_number(raw: FieldValue) -> float | None:
    """Interpret a raw field value as a finite number, or ``None``."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _read_direct(block: BlockLike | None, keys: Sequence[str]) -> float | None:
    if block is None:
        return None
    for key in keys:
        value = parse_number(block.field_value(key))
        if value is not None:
            return value
    return None


def resolve_number(block: BlockLike, keys: Sequence[str]) -> float | None:
    """Read a numeric field from the block itself, then from a plugged literal block."""
    direct = _read_direct(block, keys)
    if direct is not None:
        return direct
    for key in keys:
        from_target = _read_direct(block.input_target(key), FALLBACK_NUMBER_KEYS)
        if from_target is not None:
            return from_target
    return None


def read_number_field(block: BlockLike, keys: Sequence[str], default: float) -> float:
    value = resolve_number(block, keys)
    return default if value is None else value


def read_string_field(block: BlockLike, keys: Sequence[str], default: str) -> str:
    for key in keys:
        raw = block.field_value(key)
        if raw is not None and raw != "":
            return str(raw)
    return default


def read_wait_ms(block: BlockLike) -> float:
    ms = resolve_number(block, ("MS",))
    if ms is None:
        secs = resolve_number(block, ("SECS",))
        if secs is not None:
            ms = secs * 1000
    if ms is None:
        ms = read_number_field(block, WAIT_GENERIC_KEYS, DEFAULT_WAIT_MS)
    return ms


BlockBuilder = Callable[[BlockLike, int], Op]


class BlockCompiler:
    """Chain-walking compiler configured for one game."""

    def __init__(
        self,
        options: CompileOptions,
        *,
        max_chain: int = MAX_CHAIN,
        max_nesting_depth: int = MAX_NESTING_DEPTH,
        max_total_blocks: int = MAX_TOTAL_BLOCKS,
    ) -> None:
        self.options = options
        self.max_chain = max_chain
        self.max_nesting_depth = max_nesting_depth
        self.max_total_blocks = max_total_blocks
        self._compiled = 0
        self._start_types = set(options.start_types)
        self._builders = self._build_lookup()

    def _build_lookup(self) -> dict[str, BlockBuilder]:
        opts = self.options
        table: list[tuple[list[str], BlockBuilder]] = [
            (opts.start_types, lambda block, depth: StartOp(block_id=block.id)),
            (opts.move_types, self._compile_move),
            (opts.back_types, self._compile_back),
            (opts.turn_left_types, lambda block, depth: self._compile_turn(block, "left")),
            (opts.turn_right_types, lambda block, depth: self._compile_turn(block, "right")),
            (opts.pen_up_types, lambda block, depth: PenOp(down=False, block_id=block.id)),
            (opts.pen_down_types, lambda block, depth: PenOp(down=True, block_id=block.id)),
            (opts.color_types, self._compile_color),
            (opts.width_types, self._compile_width),
            (opts.wait_types, self._compile_wait),
            (opts.repeat_types, self._compile_repeat),
            (opts.collect_types, lambda block, depth: CollectOp(block_id=block.id)),
            (opts.plant_types, lambda block, depth: PlantOp(block_id=block.id)),
            (opts.water_types, lambda block, depth: WaterOp(block_id=block.id)),
            (opts.harvest_types, lambda block, depth: HarvestOp(block_id=block.id)),
        ]
        lookup: dict[str, BlockBuilder] = {}
        for type_tags, builder in table:
            for type_tag in type_tags:
                # Earlier categories win when a tag is listed twice.
                lookup.setdefault(type_tag, builder)
        return lookup

    def compile(self, graph: BlockGraph) -> Program:
        start = next(
            (block for block in graph.top_blocks() if block.type in self._start_types),
            None,
        )
        if start is None:
            raise CompilationError("Missing start block.")
        self._compiled = 0
        return Program(ops=tuple(self.compile_chain(start, depth=0)))

    def compile_chain(self, first: BlockLike | None, *, depth: int) -> list[Op]:
        ops: list[Op] = []
        current = first
        visited = 0
        while current is not None and visited < self.max_chain:
            visited += 1
            if not current.id or not current.type:
                break
            # One budget across every chain, so cycles inside loop bodies cannot multiply.
            self._compiled += 1
            if self._compiled > self.max_total_blocks:
                raise CompilationError(
                    f"Program has more than {self.max_total_blocks} blocks; "
                    "check for loops that feed back into themselves."
                )
            ops.append(self.compile_block(current, depth))
            current = current.next_block()
        if current is not None and visited >= self.max_chain:
            logger.warning(
                "Block chain truncated after %d blocks (next block '%s').",
                self.max_chain,
                current.id,
            )
        return ops

    def compile_block(self, block: BlockLike, depth: int) -> Op:
        builder = self._builders.get(block.type)
        if builder is None:
            raise CompilationError(f"Unsupported block type: {block.type}")
        return builder(block, depth)

    def _compile_move(self, block: BlockLike, depth: int) -> Op:
        steps = read_number_field(block, STEP_KEYS, DEFAULT_STEPS)
        return MoveOp(steps=steps, block_id=block.id)

    def _compile_back(self, block: BlockLike, depth: int) -> Op:
        steps = read_number_field(block, STEP_KEYS, DEFAULT_STEPS)
        return MoveOp(steps=-abs(steps), block_id=block.id)

    def _compile_turn(self, block: BlockLike, direction: str) -> Op:
        degrees = read_number_field(block, DEGREE_KEYS, DEFAULT_DEGREES)
        return TurnOp(direction=direction, degrees=degrees, block_id=block.id)

    def _compile_color(self, block: BlockLike, depth: int) -> Op:
        value = read_string_field(block, COLOR_KEYS, DEFAULT_COLOR)
        return ColorOp(value=value, block_id=block.id)

    def _compile_width(self, block: BlockLike, depth: int) -> Op:
        value = read_number_field(block, WIDTH_KEYS, DEFAULT_WIDTH)
        return WidthOp(value=value, block_id=block.id)

    def _compile_wait(self, block: BlockLike, depth: int) -> Op:
        return WaitOp(ms=read_wait_ms(block), block_id=block.id)

    def _compile_repeat(self, block: BlockLike, depth: int) -> Op:
        times = int(read_number_field(block, TIMES_KEYS, DEFAULT_TIMES))
        body_start = None
        for slot in BODY_SLOTS:
            body_start = block.input_target(slot)
            if body_start is not None:
                break
        body: list[Op] = []
        if body_start is not None:
            if depth + 1 > self.max_nesting_depth:
                raise CompilationError(
                    f"Block '{block.id}' is nested deeper than {self.max_nesting_depth} loops."
                )
            body = self.compile_chain(body_start, depth=depth + 1)
        return RepeatOp(times=times, body=tuple(body), block_id=block.id)


def compile_program(
    graph: BlockGraph,
    options: CompileOptions,
    *,
    settings: RuntimeSettings | None = None,
) -> Program:
    """Compile ``graph`` with the game's ``options``.

    Raises ``CompilationError`` when there is no start block among the top-level
    blocks, when a reachable block type is not mapped by ``options`` or when
    the graph expands past ``max_total_blocks`` compiled blocks.
    """
    settings = settings or RuntimeSettings()
    compiler = BlockCompiler(
        options,
        max_chain=settings.max_chain,
        max_nesting_depth=settings.max_nesting_depth,
        max_total_blocks=settings.max_total_blocks,
    )
    return compiler.compile(graph)
