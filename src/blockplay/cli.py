"""CLI entrypoint for blockplay."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml

from blockplay.compiler import compile_program
from blockplay.config import RuntimeSettings, load_and_validate_config, load_level_list
from blockplay.errors import BlockplayError
from blockplay.graph import WorkspaceGraph, load_workspace
from blockplay.instrumentation import RunTrace
from blockplay.program import Program
from blockplay.registry import GameDefinition, GameRegistry
from blockplay.runtime import RunCallbacks, RunOutcome, RunStatus
from blockplay.session import GameSession
from blockplay.validator import ProgramLimits, validate_program

app = typer.Typer(help="Compile, validate and run block programs headlessly.")

GameOption = Annotated[str, typer.Option("--game", "-g", help="Game id, see `blockplay games`.")]
WorkspaceArg = Annotated[Path, typer.Argument(exists=True, dir_okay=False)]
SettingsOption = Annotated[
    Path | None,
    typer.Option("--settings", exists=True, dir_okay=False, help="YAML runtime settings file."),
]


def _load_registry() -> GameRegistry:
    registry = GameRegistry()
    registry.discover()
    return registry


def _get_game(game_id: str) -> GameDefinition:
    try:
        return _load_registry().get(game_id)
    except KeyError as err:
        raise typer.BadParameter(err.args[0], param_hint="--game") from err


def _load(path: Path) -> WorkspaceGraph:
    try:
        return load_workspace(path)
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="WORKSPACE") from err


def _settings(path: Path | None) -> RuntimeSettings:
    if path is None:
        return RuntimeSettings()
    try:
        return load_and_validate_config(path, RuntimeSettings)
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="--settings") from err


def _compile(graph: WorkspaceGraph, game: GameDefinition, settings: RuntimeSettings) -> Program:
    try:
        return compile_program(graph, game.compile_options, settings=settings)
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="WORKSPACE") from err


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("games")
def list_games() -> None:
    """List available games."""
    for game_id, game in sorted(_load_registry().items()):
        typer.echo(f"{game_id}: {game.title}")


@app.command("describe")
def describe_game(game: str) -> None:
    """Describe a game: block tags and level schema."""
    typer.echo(json.dumps(_get_game(game).describe(), indent=2))


@app.command("compile")
def compile_workspace(
    workspace: WorkspaceArg, game: GameOption, settings_path: SettingsOption = None
) -> None:
    """Compile a workspace file and print the instruction tree as JSON."""
    definition = _get_game(game)
    program = _compile(_load(workspace), definition, _settings(settings_path))
    typer.echo(program.model_dump_json(indent=2))


@app.command("validate")
def validate_workspace(
    workspace: WorkspaceArg, game: GameOption, settings_path: SettingsOption = None
) -> None:
    """Compile and validate a workspace file."""
    settings = _settings(settings_path)
    program = _compile(_load(workspace), _get_game(game), settings)
    try:
        validate_program(program, ProgramLimits.from_settings(settings))
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="WORKSPACE") from err
    typer.echo(
        f"valid program: {workspace} ({program.leaf_count()} instructions, "
        f"{program.expanded_step_count()} steps)"
    )


@app.command("run")
def run_workspace(
    workspace: WorkspaceArg,
    game: GameOption,
    levels: Annotated[
        Path,
        typer.Option(..., "--levels", "-l", exists=True, dir_okay=False, help="YAML level file."),
    ],
    level: Annotated[int | None, typer.Option("--level", help="Level id to play.")] = None,
    trace: Annotated[
        Path | None, typer.Option("--trace", help="Write a JSONL run trace here.")
    ] = None,
    speed: Annotated[
        float, typer.Option("--speed", min=0.0, help="Animation time scale; 0 runs instantly.")
    ] = 0.0,
    settings_path: SettingsOption = None,
) -> None:
    """Run a workspace against a level and print each step and the outcome."""
    definition = _get_game(game)
    graph = _load(workspace)
    try:
        level_list = load_level_list(levels, definition.level_model)
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="--levels") from err

    settings = _settings(settings_path).model_copy(update={"animation_scale": speed})
    session = GameSession(
        definition,
        level_list,
        level_id=level,
        settings=settings,
        trace=RunTrace(trace) if trace else None,
    )
    step_count = 0

    def on_step(block_id: str) -> None:
        nonlocal step_count
        step_count += 1
        typer.echo(f"step {step_count}: {block_id}")

    try:
        runtime = asyncio.run(session.run(graph, RunCallbacks(on_step=on_step)))
    except BlockplayError as err:
        raise typer.BadParameter(str(err), param_hint="WORKSPACE") from err

    if runtime.status is RunStatus.FAILED:
        typer.echo(f"failed: {runtime.error}", err=True)
        raise typer.Exit(code=1)
    result = runtime.result
    if result is None:
        typer.echo(f"{runtime.status.value}")
        raise typer.Exit(code=1)
    typer.echo(f"{result.outcome.value}: {session.status_text}")
    if result.outcome is RunOutcome.LOST:
        raise typer.Exit(code=1)


STARTER_WORKSPACE = {
    "blocks": [
        {"id": "start", "type": "event_inicio", "next": "loop"},
        {
            "id": "loop",
            "type": "game_repeat",
            "fields": {"TIMES": 3},
            "inputs": {"SUBSTACK": "step"},
        },
        {"id": "step", "type": "game_move", "fields": {"STEPS": 1}},
    ],
    "metadata": {"game": "maze"},
}

STARTER_LEVELS = {
    "levels": [
        {
            "id": 1,
            "title": "Straight ahead",
            "grid_w": 5,
            "grid_h": 3,
            "start": {"x": 0, "y": 1, "dir": "E"},
            "goal": {"x": 3, "y": 1},
            "walls": [{"x": 4, "y": 1}],
            "constraints": {"max_blocks": 3, "must_use_repeat": True},
        }
    ]
}


@app.command("init")
def init(output: Path = Path("blockplay_starter")) -> None:
    """Write a starter maze workspace and level file."""
    output.mkdir(parents=True, exist_ok=True)
    workspace_path = output / "workspace.json"
    levels_path = output / "levels.yaml"
    workspace_path.write_text(json.dumps(STARTER_WORKSPACE, indent=2), encoding="utf-8")
    levels_path.write_text(yaml.safe_dump(STARTER_LEVELS, sort_keys=False), encoding="utf-8")
    typer.echo(f"starter workspace written: {workspace_path}")
    typer.echo(f"starter levels written: {levels_path}")
