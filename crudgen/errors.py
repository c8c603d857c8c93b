# File: crudgen/errors.py
"""
crudgen - Exception Hierarchy
==============================
Every error raised deliberately by the generator derives from
``CrudgenError`` so the CLI can map it onto an exit code.  Where a builtin
exception already describes the failure (missing file, missing key) the
crudgen error also inherits from it, so callers catching the builtin keep
working.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

logger: logging.Logger = logging.getLogger("crudgen.errors")


class CrudgenError(Exception):
    """Base class for all crudgen errors."""


class SchemaNotFoundError(CrudgenError, FileNotFoundError):
    """The schema-definition file could not be read."""

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path: Path = path
        self.reason: str = reason
        message: str = f"Schema file not found or unreadable: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ModelNotFoundError(CrudgenError, LookupError):
    """A requested model has no ``model <Name> { ... }`` block."""

    def __init__(self, model_name: str, available: Sequence[str] = ()) -> None:
        self.model_name: str = model_name
        self.available: List[str] = list(available)
        message: str = f"Model '{model_name}' not found in schema."
        if self.available:
            message = f"{message} Available models: {', '.join(self.available)}."
        super().__init__(message)


class EmptySchemaError(CrudgenError):
    """The schema file declares no ``model`` blocks."""

    def __init__(self, path: Path) -> None:
        self.path: Path = path
        super().__init__(f"No models declared in {path}.")


class IncompleteGeneratedProjectError(CrudgenError):
    """Route, controller or service file missing for a generated model."""

    def __init__(self, model_name: str, missing: Sequence[Path]) -> None:
        self.model_name: str = model_name
        self.missing: List[Path] = list(missing)
        names: str = ", ".join(str(p) for p in self.missing)
        super().__init__(
            f"Generated files for model '{model_name}' are incomplete; missing: {names}"
        )


class ProjectNotInitializedError(CrudgenError):
    """The target directory has not been initialised with ``crudgen init``."""

    def __init__(self, project_root: Path, missing: Optional[Path] = None) -> None:
        self.project_root: Path = project_root
        self.missing: Optional[Path] = missing
        detail: str = f" (missing {missing})" if missing is not None else ""
        super().__init__(
            f"{project_root} is not a crudgen project{detail}. Run 'crudgen init' first."
        )


class ExternalCommandError(CrudgenError):
    """An external step (install, schema pull) exited unsuccessfully."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = "") -> None:
        self.command: List[str] = list(command)
        self.returncode: int = returncode
        self.output: str = output
        super().__init__(
            f"Command '{' '.join(self.command)}' failed with exit code {returncode}."
        )


__all__: List[str] = [
    "CrudgenError",
    "SchemaNotFoundError",
    "ModelNotFoundError",
    "EmptySchemaError",
    "IncompleteGeneratedProjectError",
    "ProjectNotInitializedError",
    "ExternalCommandError",
]

logger.debug("crudgen.errors loaded.")
