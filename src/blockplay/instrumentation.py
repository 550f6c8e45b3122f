"""Structured run traces written as paired text and JSONL logs."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from blockplay.program import LeafOp, Program


class StructuredLogger:
    """Dual logger that emits human-readable and JSON log events."""

    def __init__(self, text_log_path: Path, json_log_path: Path) -> None:
        self.text_log_path = text_log_path
        self.json_log_path = json_log_path
        self.text_log_path.parent.mkdir(parents=True, exist_ok=True)
        self.json_log_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def log(self, level: str, event: str, **payload: Any) -> None:
        timestamp = self._now()
        record = {
            "timestamp": timestamp,
            "level": level.upper(),
            "event": event,
            "payload": payload,
        }

        message = payload.get("message", "")
        with self.text_log_path.open("a", encoding="utf-8") as text_file:
            text_file.write(f"{timestamp} [{level.upper()}] {event} {message}\n")

        with self.json_log_path.open("a", encoding="utf-8") as json_file:
            json_file.write(json.dumps(record) + "\n")


class RunTrace:
    """Records the lifecycle of one program run."""

    def __init__(self, path: Path) -> None:
        json_path = path if path.suffix == ".jsonl" else path.with_suffix(".jsonl")
        self.logger = StructuredLogger(
            text_log_path=json_path.with_suffix(".log"),
            json_log_path=json_path,
        )

    @property
    def json_log_path(self) -> Path:
        return self.logger.json_log_path

    def run_started(self, program: Program) -> None:
        self.logger.log(
            level="info",
            event="run_started",
            message=f"{program.leaf_count()} leaf instructions",
            leaf_count=program.leaf_count(),
            expanded_steps=program.expanded_step_count(),
        )

    def step(self, index: int, op: LeafOp) -> None:
        self.logger.log(
            level="debug",
            event="step",
            message=f"{op.kind} ({op.block_id})",
            index=index,
            op=op.model_dump(mode="json"),
        )

    def run_finished(self, status: str, *, message: str | None = None, **payload: Any) -> None:
        level = "error" if status == "failed" else "info"
        self.logger.log(
            level=level,
            event="run_finished",
            message=message or status,
            status=status,
            **payload,
        )

    def read_events(self) -> list[dict[str, Any]]:
        if not self.json_log_path.exists():
            return []
        return [
            json.loads(line)
            for line in self.json_log_path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
