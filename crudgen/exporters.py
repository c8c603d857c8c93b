# File: crudgen/exporters.py
"""
crudgen - Project Exporter (File-System Manager)
=================================================

Responsible for:
    1. Writing generated sources into the project, one atomic file at a time.
    2. Honouring a skip-existing set (used for preserved validation modules
       and user-owned files such as ``.env``).
    3. Writing project support files (requirements.txt, .env, .env.example,
       .gitignore, README.md, initial schema).
    4. Recording each write as a ``FileRecord`` with size, line count and
       checksum.

Writes are sequential.  A failed write is recorded and the batch continues;
files already written stay in place (there is no rollback).
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from crudgen.project import ProjectLayout, database_provider, to_schema_url
from crudgen.utils import Timer, count_lines, sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.exporters")


# ---------------------------------------------------------------------------
# Data classes for export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single exported file."""

    relative_path: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of one ``ProjectExporter.write`` batch."""

    files: Tuple[FileRecord, ...]
    skipped: Tuple[str, ...]
    errors: Tuple[str, ...]
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def written_paths(self) -> List[str]:
        return [r.relative_path for r in self.files]

    @property
    def total_bytes(self) -> int:
        return sum(r.size_bytes for r in self.files)


# ---------------------------------------------------------------------------
# Support-file content
# ---------------------------------------------------------------------------

_BASE_REQUIREMENTS: Tuple[str, ...] = (
    "fastapi>=0.100.0",
    "uvicorn>=0.20.0",
    "sqlalchemy>=2.0.0",
    "pydantic>=2.0.0",
    "python-jose>=3.3.0",
    "passlib>=1.7.4",
    "bcrypt>=4.0.0,<5.0.0",
    "python-multipart>=0.0.5",
    "python-dotenv>=1.0.0",
)

_DRIVER_REQUIREMENTS: Dict[str, str] = {
    "postgresql": "psycopg2-binary>=2.9.9",
    "mysql": "pymysql>=1.1.0",
}

DEFAULT_DATABASE_URL: str = "sqlite:///./app.db"


# ---------------------------------------------------------------------------
# ProjectExporter class
# ---------------------------------------------------------------------------


class ProjectExporter:
    """
    Writes generated content under a project root.

    Usage::

        exporter = ProjectExporter(layout, project_name="blog")
        result = exporter.write({"app/routes/post_route.py": source})

    Thread-safety: NOT thread-safe.  Use one exporter per project, serially.
    """

    def __init__(
        self,
        layout: ProjectLayout,
        *,
        project_name: str = "api",
        database_url: str = DEFAULT_DATABASE_URL,
    ) -> None:
        self._layout: ProjectLayout = layout
        self._project_name: str = project_name
        self._database_url: str = database_url
        logger.debug("ProjectExporter initialised: root=%s.", layout.root)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def write(
        self,
        files: Dict[str, str],
        skip_existing: Iterable[str] = (),
    ) -> ExportResult:
        """
        Write *files* (relative path → content) in order.

        Paths listed in *skip_existing* are left untouched when they already
        exist on disk.
        """
        keep: Set[str] = set(skip_existing)
        records: List[FileRecord] = []
        skipped: List[str] = []
        errors: List[str] = []

        with Timer("export") as timer:
            for rel_path, content in files.items():
                target: Path = self._layout.root / rel_path
                if rel_path in keep and target.exists():
                    logger.info("Keeping existing %s.", rel_path)
                    skipped.append(rel_path)
                    continue
                try:
                    records.append(self._write_single_file(target, content, rel_path))
                except OSError as exc:
                    error_msg: str = f"Failed to write {rel_path}: {type(exc).__name__}: {exc}"
                    errors.append(error_msg)
                    logger.error(error_msg)

        result: ExportResult = ExportResult(
            files=tuple(records),
            skipped=tuple(skipped),
            errors=tuple(errors),
            elapsed_seconds=timer.elapsed,
        )
        if result.success:
            logger.info(
                "Wrote %d file(s), %d bytes, skipped %d in %.3fs.",
                len(records),
                result.total_bytes,
                len(skipped),
                timer.elapsed,
            )
        else:
            logger.error("Export finished with %d error(s).", len(errors))
        return result

    def write_support_files(self) -> ExportResult:
        """
        Write the project support files and an initial schema.

        ``requirements.txt`` and ``.gitignore`` are always refreshed; ``.env``,
        ``README.md`` and the schema belong to the user once they exist.
        """
        files: Dict[str, str] = {
            "requirements.txt": self.render_requirements(),
            ".env": self.render_dotenv(),
            ".env.example": self.render_dotenv_example(),
            ".gitignore": self.render_gitignore(),
            "README.md": self.render_readme(),
            self._layout.schema_relpath: self.render_initial_schema(),
        }
        return self.write(
            files, skip_existing={".env", "README.md", self._layout.schema_relpath}
        )

    # -----------------------------------------------------------------
    # Internal: file writing
    # -----------------------------------------------------------------

    def _write_single_file(self, full_path: Path, content: str, rel_path: str) -> FileRecord:
        size_bytes: int = write_file(full_path, content)
        line_count: int = count_lines(content)
        logger.debug("Wrote file: %s (%d bytes, %d lines).", rel_path, size_bytes, line_count)
        return FileRecord(
            relative_path=rel_path,
            size_bytes=size_bytes,
            line_count=line_count,
            sha256=sha256_hex(content),
        )

    # -----------------------------------------------------------------
    # Support-file renderers
    # -----------------------------------------------------------------

    def render_requirements(self) -> str:
        lines: List[str] = ["# Generated by crudgen"]
        lines.extend(_BASE_REQUIREMENTS)
        driver: Optional[str] = _DRIVER_REQUIREMENTS.get(database_provider(self._database_url))
        if driver:
            lines.append(driver)
        return "\n".join(lines) + "\n"

    def _env_lines(self, database_url: str, jwt_secret: str) -> List[str]:
        schema_url: str = (
            to_schema_url(database_url, self._layout.schema_relpath) if database_url else ""
        )
        return [
            f'DATABASE_URL="{database_url}"',
            f'SCHEMA_DATABASE_URL="{schema_url}"',
            "",
            "PORT=8000",
            "",
            f'JWT_SECRET="{jwt_secret}"',
            "JWT_EXPIRES_MINUTES=1440",
            'AUTH_MODEL="user"',
            "",
            "MAX_FILE_SIZE=5242880",
            'ALLOWED_FILE_TYPES="image/jpeg,image/png,image/gif,application/pdf"',
            'UPLOAD_PATH="uploads"',
        ]

    def render_dotenv(self) -> str:
        lines: List[str] = [f"# Environment for {self._project_name}", ""]
        lines.extend(self._env_lines(self._database_url, secrets.token_hex(32)))
        return "\n".join(lines) + "\n"

    def render_dotenv_example(self) -> str:
        lines: List[str] = ["# Copy this file to .env and fill in values", ""]
        lines.extend(self._env_lines(DEFAULT_DATABASE_URL, "change-me"))
        return "\n".join(lines) + "\n"

    def render_gitignore(self) -> str:
        lines: List[str] = [
            "__pycache__/",
            "*.py[cod]",
            "",
            "venv/",
            ".venv/",
            "",
            ".env",
            "*.db",
            "uploads/",
            "",
            ".pytest_cache/",
            ".ruff_cache/",
            ".DS_Store",
        ]
        return "\n".join(lines) + "\n"

    def render_initial_schema(self) -> str:
        provider: str = database_provider(self._database_url)
        lines: List[str] = [
            "// Define your models here, then run: crudgen generate",
            "",
            "datasource db {",
            f'  provider = "{provider}"',
            '  url      = env("SCHEMA_DATABASE_URL")',
            "}",
            "",
        ]
        return "\n".join(lines)

    def render_readme(self) -> str:
        lines: List[str] = [
            f"# {self._project_name}",
            "",
            "FastAPI backend generated by crudgen.",
            "",
            "## Quick Start",
            "",
            "```bash",
            "python -m venv venv",
            "source venv/bin/activate",
            "pip install -r requirements.txt",
            "python -m app.server",
            "```",
            "",
            "## Workflow",
            "",
            "1. Describe models in `prisma/schema.prisma` (or pull them with `crudgen init --pull`).",
            "2. `crudgen generate` to add CRUD endpoints for new models.",
            "3. `crudgen refresh` after changing the schema of generated models.",
            "",
            "`api-collection.json` is a Postman collection covering every endpoint.",
            "",
            "## Endpoints",
            "",
            "- `GET /health`",
            "- `POST /api/auth/register`, `POST /api/auth/login`",
            "- `GET /api/metadata` lists every generated resource with its endpoints",
            "",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ProjectExporter",
    "ExportResult",
    "FileRecord",
    "DEFAULT_DATABASE_URL",
]

logger.debug("crudgen.exporters loaded.")
