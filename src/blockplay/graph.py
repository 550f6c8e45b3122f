"""Block-graph reader contract and the JSON workspace file that implements it."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from blockplay.errors import WorkspaceFormatError

FieldValue = str | int | float | bool | None


@runtime_checkable
class BlockLike(Protocol):
    """One editor block as seen by the compiler.

    Accessors return ``None`` when the block has no such neighbour or field.
    """

    @property
    def id(self) -> str: ...

    @property
    def type(self) -> str: ...

    def next_block(self) -> BlockLike | None: ...

    def input_target(self, name: str) -> BlockLike | None: ...

    def field_value(self, name: str) -> FieldValue: ...


class BlockGraph(Protocol):
    """Ordered access to the top-level blocks of an editor workspace."""

    def top_blocks(self) -> list[BlockLike]: ...


class Workspace(BlockGraph, Protocol):
    """Block graph that can also list the type of every block it holds."""

    def block_types(self) -> list[str]: ...


class BlockNode(BaseModel):
    """Serialized block description."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: str
    next: str | None = None
    inputs: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, FieldValue] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("block id cannot be empty")
        return trimmed

    @field_validator("next")
    @classmethod
    def _strip_next(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("inputs")
    @classmethod
    def _strip_inputs(cls, value: dict[str, str]) -> dict[str, str]:
        # References must match the stripped ids they point at.
        return {slot: target.strip() for slot, target in value.items()}


class WorkspaceFile(BaseModel):
    """Workspace document: a flat list of blocks linked by id."""

    model_config = ConfigDict(extra="forbid")

    blocks: list[BlockNode] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_links(self) -> WorkspaceFile:
        errors: list[str] = []
        block_ids = [block.id for block in self.blocks]
        duplicates = sorted(block_id for block_id, n in Counter(block_ids).items() if n > 1)
        if duplicates:
            errors.append(f"duplicate block ids: {', '.join(duplicates)}")

        known = set(block_ids)
        for block in self.blocks:
            if block.next is not None and block.next not in known:
                errors.append(f"block '{block.id}' has missing next block '{block.next}'")
            for slot, target in block.inputs.items():
                if target not in known:
                    errors.append(
                        f"block '{block.id}' input '{slot}' references missing block '{target}'"
                    )

        if errors:
            raise ValueError("; ".join(errors))
        return self


class WorkspaceBlock:
    """``BlockLike`` view over a ``BlockNode`` that resolves links through its graph."""

    def __init__(self, node: BlockNode, graph: WorkspaceGraph) -> None:
        self._node = node
        self._graph = graph

    @property
    def id(self) -> str:
        return self._node.id

    @property
    def type(self) -> str:
        return self._node.type

    def next_block(self) -> WorkspaceBlock | None:
        if self._node.next is None:
            return None
        return self._graph.get(self._node.next)

    def input_target(self, name: str) -> WorkspaceBlock | None:
        target = self._node.inputs.get(name)
        if target is None:
            return None
        return self._graph.get(target)

    def field_value(self, name: str) -> FieldValue:
        return self._node.fields.get(name)

    def __repr__(self) -> str:
        return f"WorkspaceBlock(id={self.id!r}, type={self.type!r})"


class WorkspaceGraph:
    """``BlockGraph`` backed by a validated ``WorkspaceFile``."""

    def __init__(self, workspace: WorkspaceFile) -> None:
        self.workspace = workspace
        self._blocks = {node.id: WorkspaceBlock(node, self) for node in workspace.blocks}

    def get(self, block_id: str) -> WorkspaceBlock | None:
        return self._blocks.get(block_id)

    def all_blocks(self) -> list[WorkspaceBlock]:
        return [self._blocks[node.id] for node in self.workspace.blocks]

    def top_blocks(self) -> list[BlockLike]:
        # Top-level blocks are the ones nothing else points at, in file order.
        referenced: set[str] = set()
        for node in self.workspace.blocks:
            if node.next is not None:
                referenced.add(node.next)
            referenced.update(node.inputs.values())
        return [
            self._blocks[node.id]
            for node in self.workspace.blocks
            if node.id not in referenced
        ]

    def block_types(self) -> list[str]:
        return [node.type for node in self.workspace.blocks]


def parse_workspace(data: object) -> WorkspaceGraph:
    """Validate a raw workspace payload and wrap it as a block graph."""
    if not isinstance(data, dict):
        raise WorkspaceFormatError("Workspace root must be a mapping/object.")
    try:
        workspace = WorkspaceFile.model_validate(data)
    except PydanticValidationError as exc:
        raise WorkspaceFormatError(str(exc)) from exc
    return WorkspaceGraph(workspace)


def load_workspace(path: Path) -> WorkspaceGraph:
    """Load a JSON workspace file from disk."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise WorkspaceFormatError(f"{path}: invalid JSON ({exc})") from exc
    return parse_workspace(payload)
