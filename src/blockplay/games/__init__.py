"""Reference games driven by the block runtime."""

from blockplay.games.artist import ARTIST_GAME, ArtistAdapter, ArtistLevel, ArtistState
from blockplay.games.collector import (
    COLLECTOR_GAME,
    CollectorAdapter,
    CollectorLevel,
    CollectorState,
)
from blockplay.games.maze import (
    MAZE_GAME,
    MAZE_VERTICAL_GAME,
    MazeAdapter,
    MazeLevel,
    MazeState,
)

__all__ = [
    "ARTIST_GAME",
    "COLLECTOR_GAME",
    "MAZE_GAME",
    "MAZE_VERTICAL_GAME",
    "ArtistAdapter",
    "ArtistLevel",
    "ArtistState",
    "CollectorAdapter",
    "CollectorLevel",
    "CollectorState",
    "MazeAdapter",
    "MazeLevel",
    "MazeState",
]
