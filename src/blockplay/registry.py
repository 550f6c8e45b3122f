"""Game definitions and their discovery."""

from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from importlib import metadata
from typing import Any, Literal

from pydantic import BaseModel

from blockplay.adapter import AnimationClock, RuntimeAdapter
from blockplay.compiler import CompileOptions

AdapterFactory = Callable[[list[Any], AnimationClock], RuntimeAdapter[Any]]
StateFactory = Callable[[list[Any], int], Any]


@dataclass(frozen=True)
class GameDefinition:
    """Everything the host needs to compile and run programs for one game."""

    id: str
    title: str
    compile_options: CompileOptions
    level_model: type[BaseModel]
    make_adapter: AdapterFactory
    make_state: StateFactory
    block_type: Literal["horizontal", "vertical"] = "horizontal"

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "block_type": self.block_type,
            "compile_options": self.compile_options.model_dump(),
            "level_schema": self.level_model.model_json_schema(),
        }


class GameRegistry:
    """Registry that discovers and stores game definitions."""

    def __init__(self) -> None:
        self._games: dict[str, GameDefinition] = {}

    def register(self, game: GameDefinition) -> None:
        self._games[game.id] = game

    def discover_entry_points(self, group: str = "blockplay.games") -> None:
        for entry_point in metadata.entry_points(group=group):
            loaded = entry_point.load()
            if isinstance(loaded, GameDefinition):
                self.register(loaded)

    def discover_modules(self, package: str = "blockplay.games") -> None:
        pkg = importlib.import_module(package)
        for module_info in pkgutil.walk_packages(pkg.__path__, prefix=f"{package}."):
            module = importlib.import_module(module_info.name)
            for member in vars(module).values():
                if isinstance(member, GameDefinition):
                    self.register(member)

    def discover(self) -> None:
        self.discover_modules()
        self.discover_entry_points()

    def list_games(self) -> list[str]:
        return sorted(self._games.keys())

    def get(self, game_id: str) -> GameDefinition:
        if game_id not in self._games:
            available = ", ".join(self.list_games())
            raise KeyError(f"Unknown game '{game_id}'. Available: {available}")
        return self._games[game_id]

    def items(self) -> Iterable[tuple[str, GameDefinition]]:
        return self._games.items()
