"""Collector and farmer variants of the maze: gather items, tend crops."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from blockplay.adapter import AnimationClock, WinSignal
from blockplay.compiler import CompileOptions
from blockplay.games.maze import MazeAdapter, MazeLevel, MazeState, Player
from blockplay.program import (
    CollectOp,
    HarvestOp,
    LeafOp,
    PlantOp,
    WaterOp,
    is_collector_op,
)
from blockplay.registry import GameDefinition

FarmCellState = Literal["empty", "planted", "growing", "ready", "harvested"]

COLLECTED_ALL_MESSAGE = "You collected everything!"


class CollectibleItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: int
    y: int
    type: str
    quantity: int = Field(default=1, ge=0)
    collected: bool = False


class FarmCell(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: int
    y: int
    state: FarmCellState = "empty"
    needs_water: bool = False


class CollectorLevel(MazeLevel):
    items: list[CollectibleItem] = Field(default_factory=list)
    targets: dict[str, int] | None = None
    farm_cells: list[FarmCell] | None = None
    initial_inventory: dict[str, int] = Field(default_factory=dict)


@dataclass
class CollectorState(MazeState):
    inventory: dict[str, int] = field(default_factory=dict)
    items: list[CollectibleItem] = field(default_factory=list)
    farm_cells: list[FarmCell] | None = None


def get_level(levels: list[CollectorLevel], level_id: int) -> CollectorLevel:
    for level in levels:
        if level.id == level_id:
            return level
    return levels[0]


def make_initial_state(
    levels: list[CollectorLevel],
    level_id: int,
    completed_levels: list[int] | None = None,
) -> CollectorState:
    level = get_level(levels, level_id)
    return CollectorState(
        level_id=level.id,
        player=Player(x=level.start.x, y=level.start.y, dir=level.start.dir),
        completed_levels=list(completed_levels or []),
        visited_cells=[(level.start.x, level.start.y)],
        inventory=dict(level.initial_inventory),
        items=[item.model_copy(update={"collected": False}) for item in level.items],
        farm_cells=(
            [cell.model_copy() for cell in level.farm_cells]
            if level.farm_cells is not None
            else None
        ),
    )


def get_item_at(items: list[CollectibleItem], x: int, y: int) -> CollectibleItem | None:
    return next(
        (
            item
            for item in items
            if item.x == x and item.y == y and not item.collected and item.quantity > 0
        ),
        None,
    )


def get_farm_cell_at(cells: list[FarmCell] | None, x: int, y: int) -> FarmCell | None:
    if not cells:
        return None
    return next((cell for cell in cells if cell.x == x and cell.y == y), None)


def collect_item(state: CollectorState) -> CollectibleItem | None:
    """Take one unit of the item under the player, if any."""
    item = get_item_at(state.items, state.player.x, state.player.y)
    if item is None:
        return None
    item.quantity -= 1
    if item.quantity <= 0:
        item.collected = True
    state.inventory[item.type] = state.inventory.get(item.type, 0) + 1
    return item


def plant_seed(state: CollectorState) -> bool:
    cell = get_farm_cell_at(state.farm_cells, state.player.x, state.player.y)
    if cell is None or cell.state != "empty":
        return False
    cell.state = "planted"
    cell.needs_water = True
    return True


def water_plant(state: CollectorState) -> bool:
    cell = get_farm_cell_at(state.farm_cells, state.player.x, state.player.y)
    if cell is None or not cell.needs_water:
        return False
    cell.needs_water = False
    if cell.state == "planted":
        cell.state = "growing"
    elif cell.state == "growing":
        cell.state = "ready"
    return True


def harvest_plant(state: CollectorState) -> bool:
    cell = get_farm_cell_at(state.farm_cells, state.player.x, state.player.y)
    if cell is None or cell.state != "ready":
        return False
    cell.state = "harvested"
    state.inventory["harvest"] = state.inventory.get("harvest", 0) + 1
    return True


def check_targets_met(inventory: dict[str, int], targets: dict[str, int] | None) -> bool:
    if not targets:
        return True
    return all(inventory.get(kind, 0) >= required for kind, required in targets.items())


def check_all_items_collected(items: list[CollectibleItem]) -> bool:
    return all(item.collected or item.quantity <= 0 for item in items)


def format_inventory(inventory: dict[str, int]) -> str:
    entries = [f"{kind}: {count}" for kind, count in inventory.items() if count > 0]
    return ", ".join(entries) if entries else "Empty"


class CollectorAdapter(MazeAdapter):
    """Maze movement plus collect/plant/water/harvest; wins by collecting on the goal."""

    def __init__(
        self,
        levels: list[CollectorLevel],
        *,
        clock: AnimationClock | None = None,
        on_draw: Callable[[CollectorState], None] | None = None,
        on_collect: Callable[[str], None] | None = None,
    ) -> None:
        super().__init__(levels, clock=clock, on_draw=on_draw)
        self.on_collect = on_collect

    async def apply_op(self, op: LeafOp, state: CollectorState) -> CollectorState:
        if state.status in {"win", "error"}:
            return state
        if not is_collector_op(op):
            await super().apply_op(op, state)
            return state
        level = get_level(self.levels, state.level_id)
        if isinstance(op, CollectOp):
            item = collect_item(state)
            if item is not None and self.on_collect:
                self.on_collect(item.type)
            self._draw(state)
            self._check_win(state, level)
        elif isinstance(op, PlantOp):
            plant_seed(state)
            self._draw(state)
        elif isinstance(op, WaterOp):
            water_plant(state)
            self._draw(state)
        elif isinstance(op, HarvestOp):
            harvest_plant(state)
            self._draw(state)
        return state

    def _after_cell(self, state: MazeState, level: MazeLevel) -> None:
        # Reaching the goal only counts once the collection is complete.
        return None

    def _check_win(self, state: CollectorState, level: CollectorLevel) -> None:
        if level.targets:
            complete = check_targets_met(state.inventory, level.targets)
        else:
            complete = check_all_items_collected(state.items)
        at_goal = (state.player.x, state.player.y) == (level.goal.x, level.goal.y)
        if complete and at_goal:
            if state.level_id not in state.completed_levels:
                state.completed_levels.append(state.level_id)
            state.status = "win"
            state.message = COLLECTED_ALL_MESSAGE
            self._draw(state)
            raise WinSignal(COLLECTED_ALL_MESSAGE)

    def reset(self, state: CollectorState) -> CollectorState:
        self.clock.clear()
        fresh = make_initial_state(self.levels, state.level_id, state.completed_levels)
        for item in fields(fresh):
            setattr(state, item.name, getattr(fresh, item.name))
        self._draw(state)
        return state


COLLECTOR_GAME = GameDefinition(
    id="collector",
    title="Collector",
    compile_options=CompileOptions(
        move_types=["collector_move"],
        back_types=["collector_back"],
        turn_left_types=["collector_turn_left"],
        turn_right_types=["collector_turn_right"],
        repeat_types=["collector_repeat"],
        wait_types=["collector_wait"],
        collect_types=["collector_collect"],
        plant_types=["farmer_plant"],
        water_types=["farmer_water"],
        harvest_types=["farmer_harvest"],
    ),
    level_model=CollectorLevel,
    make_adapter=lambda levels, clock: CollectorAdapter(levels, clock=clock),
    make_state=make_initial_state,
)
