# File: crudgen/project.py
"""
crudgen - Project Layout & Manifest Persistence
================================================
Fixes where every generated artifact lives and reads/writes the
``crudgen.json`` manifest.

Layout of a generated project::

    <root>/
        crudgen.json                  project manifest
        api-collection.json           request collection
        prisma/schema.prisma          schema definition
        app/
            routes/__init__.py        aggregate registry
            routes/<slug>_route.py
            controllers/<slug>_controller.py
            services/<slug>_service.py
            validation/<slug>.py
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from crudgen.errors import CrudgenError, ProjectNotInitializedError
from crudgen.models import ProjectManifest
from crudgen.utils import read_file, to_slug, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.project")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MANIFEST_FILENAME: str = "crudgen.json"
COLLECTION_FILENAME: str = "api-collection.json"
DEFAULT_SCHEMA_PATH: str = "prisma/schema.prisma"
APP_PACKAGE: str = "app"

ROUTE_SUFFIX: str = "_route.py"
CONTROLLER_SUFFIX: str = "_controller.py"
SERVICE_SUFFIX: str = "_service.py"


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProjectLayout:
    """Path conventions for one generated project."""

    root: Path
    schema_relpath: str = DEFAULT_SCHEMA_PATH

    @property
    def app_dir(self) -> Path:
        return self.root / APP_PACKAGE

    @property
    def routes_dir(self) -> Path:
        return self.app_dir / "routes"

    @property
    def controllers_dir(self) -> Path:
        return self.app_dir / "controllers"

    @property
    def services_dir(self) -> Path:
        return self.app_dir / "services"

    @property
    def validation_dir(self) -> Path:
        return self.app_dir / "validation"

    @property
    def registry_path(self) -> Path:
        return self.routes_dir / "__init__.py"

    @property
    def schema_path(self) -> Path:
        return self.root / self.schema_relpath

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def collection_path(self) -> Path:
        return self.root / COLLECTION_FILENAME

    # -- Per-model paths ---------------------------------------------------

    def route_path(self, model_name: str) -> Path:
        return self.routes_dir / f"{to_slug(model_name)}{ROUTE_SUFFIX}"

    def controller_path(self, model_name: str) -> Path:
        return self.controllers_dir / f"{to_slug(model_name)}{CONTROLLER_SUFFIX}"

    def service_path(self, model_name: str) -> Path:
        return self.services_dir / f"{to_slug(model_name)}{SERVICE_SUFFIX}"

    def validation_path(self, model_name: str) -> Path:
        return self.validation_dir / f"{to_slug(model_name)}.py"

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def with_schema(self, schema_relpath: Optional[str]) -> "ProjectLayout":
        if not schema_relpath:
            return self
        return ProjectLayout(root=self.root, schema_relpath=schema_relpath)


# ---------------------------------------------------------------------------
# Manifest persistence
# ---------------------------------------------------------------------------


def load_manifest(layout: ProjectLayout) -> Optional[ProjectManifest]:
    """
    Load ``crudgen.json`` if present.

    Returns ``None`` when the file does not exist.  A manifest that exists
    but does not validate is an error, never silently replaced.
    """
    path: Path = layout.manifest_path
    if not path.is_file():
        return None
    try:
        manifest: ProjectManifest = ProjectManifest.model_validate_json(read_file(path))
    except ValidationError as exc:
        raise CrudgenError(f"Invalid manifest {path}: {exc}") from exc
    logger.debug("Loaded manifest %s with %d model(s).", path, len(manifest.models))
    return manifest


def save_manifest(layout: ProjectLayout, manifest: ProjectManifest) -> Path:
    payload: str = json.dumps(manifest.model_dump(mode="json"), indent=2, ensure_ascii=False)
    write_file(layout.manifest_path, payload + "\n")
    logger.info("Saved manifest %s.", layout.manifest_path)
    return layout.manifest_path


def require_initialized(layout: ProjectLayout) -> ProjectManifest:
    """
    Return the manifest of an initialised project.

    Raises:
        ProjectNotInitializedError: manifest or registry module missing.
    """
    manifest: Optional[ProjectManifest] = load_manifest(layout)
    if manifest is None:
        raise ProjectNotInitializedError(layout.root, layout.manifest_path)
    if not layout.app_dir.is_dir():
        raise ProjectNotInitializedError(layout.root, layout.app_dir)
    return manifest


# ---------------------------------------------------------------------------
# Database URL helpers
# ---------------------------------------------------------------------------

_DRIVER_SUFFIX_RE: re.Pattern[str] = re.compile(r"^(\w+)\+\w+://")

_DEFAULT_PORTS = {"postgresql": 5432, "mysql": 3306}
_SQLALCHEMY_SCHEMES = {"postgresql": "postgresql", "mysql": "mysql+pymysql"}


def database_provider(url: str) -> str:
    """Provider name ('postgresql', 'mysql', 'sqlite') for a SQLAlchemy URL."""
    scheme: str = url.split(":", 1)[0].split("+", 1)[0].lower()
    if scheme in {"postgres", "postgresql"}:
        return "postgresql"
    if scheme in {"mysql", "mariadb"}:
        return "mysql"
    if scheme == "sqlite":
        return "sqlite"
    raise CrudgenError(f"Unsupported database URL scheme '{scheme}' in {url!r}.")


def to_schema_url(url: str, schema_relpath: str = DEFAULT_SCHEMA_PATH) -> str:
    """
    Convert a SQLAlchemy URL to the form the schema-pull tool expects.

    ``mysql+pymysql://u:p@h/db`` → ``mysql://u:p@h/db``;
    ``sqlite:///./app.db`` → ``file:../app.db`` for ``prisma/schema.prisma``.

    Relative SQLite paths are relative to the project root for the app but
    to the schema file's directory for the pull tool, so they are re-rooted.
    """
    if url.startswith("sqlite:///"):
        db_path: str = url[len("sqlite:///"):]
        if posixpath.isabs(db_path):
            return "file:" + db_path
        schema_dir: str = posixpath.dirname(schema_relpath) or "."
        rel: str = posixpath.relpath(db_path, schema_dir)
        if not rel.startswith("."):
            rel = "./" + rel
        return "file:" + rel
    return _DRIVER_SUFFIX_RE.sub(r"\1://", url)


def build_database_url(
    provider: str,
    host: str = "localhost",
    port: Optional[int] = None,
    database: str = "app",
    username: str = "",
    password: str = "",
) -> str:
    """Assemble a SQLAlchemy URL from the individual connection settings."""
    if provider == "sqlite":
        return f"sqlite:///./{database}.db"
    if provider not in _SQLALCHEMY_SCHEMES:
        raise CrudgenError(f"Unsupported database provider '{provider}'.")
    credentials: str = ""
    if username:
        credentials = username if not password else f"{username}:{password}"
        credentials += "@"
    port_value: int = port or _DEFAULT_PORTS[provider]
    return f"{_SQLALCHEMY_SCHEMES[provider]}://{credentials}{host}:{port_value}/{database}"


__all__: List[str] = [
    "MANIFEST_FILENAME",
    "COLLECTION_FILENAME",
    "DEFAULT_SCHEMA_PATH",
    "ROUTE_SUFFIX",
    "ProjectLayout",
    "load_manifest",
    "save_manifest",
    "require_initialized",
    "database_provider",
    "to_schema_url",
    "build_database_url",
]

logger.debug("crudgen.project loaded.")
