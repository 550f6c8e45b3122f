"""Error taxonomy shared by the compiler, validator, and host tooling."""

from __future__ import annotations


class BlockplayError(Exception):
    """Base class for errors raised before a program is allowed to run."""


class CompilationError(BlockplayError):
    """Raised when a block graph cannot be compiled into a program."""


class ValidationError(BlockplayError):
    """Raised when a compiled program is structurally unacceptable."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class WorkspaceFormatError(BlockplayError):
    """Raised when a workspace file does not describe a well-formed block graph."""


class ConfigValidationError(BlockplayError, ValueError):
    """Raised when a settings or level file does not validate."""


class ConstraintError(BlockplayError):
    """Raised when a workspace breaks the active level's constraints."""
