# File: crudgen/external.py
"""
crudgen - External Steps
=========================
Subprocess wrappers for the two steps ``init`` may delegate to other tools:

- installing the generated project's requirements;
- pulling models from an existing database into the schema file.

Each step is all-or-nothing: a non-zero exit, a missing executable or a
timeout raises ``ExternalCommandError`` and the calling command aborts.
Commands run without a shell.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from crudgen.errors import ExternalCommandError

logger: logging.Logger = logging.getLogger("crudgen.external")

DEFAULT_TIMEOUT_SECONDS: float = 600.0
SCHEMA_PULL_COMMAND: Sequence[str] = ("npx", "prisma", "db", "pull")


def run_command(
    command: Sequence[str],
    cwd: Path,
    *,
    env: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """
    Run *command* in *cwd* and return its combined output.

    Raises:
        ExternalCommandError: non-zero exit, executable not found, or timeout.
    """
    cmd: List[str] = list(command)
    logger.info("Running: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ExternalCommandError(cmd, 127, str(exc)) from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalCommandError(cmd, -1, f"timed out after {timeout:.0f}s") from exc

    output: str = (completed.stdout or "") + (completed.stderr or "")
    if completed.returncode != 0:
        logger.error("Command failed (%d): %s", completed.returncode, output.strip())
        raise ExternalCommandError(cmd, completed.returncode, output)
    logger.debug("Command output:\n%s", output)
    return output


def install_dependencies(project_root: Path) -> str:
    """``pip install -r requirements.txt`` with the running interpreter."""
    return run_command(
        [sys.executable, "-m", "pip", "install", "-r", "requirements.txt"],
        project_root,
    )


def pull_schema(project_root: Path, schema_relpath: str) -> str:
    """Introspect the configured database into the schema file."""
    return run_command([*SCHEMA_PULL_COMMAND, "--schema", schema_relpath], project_root)


__all__: List[str] = [
    "run_command",
    "install_dependencies",
    "pull_schema",
]

logger.debug("crudgen.external loaded.")
