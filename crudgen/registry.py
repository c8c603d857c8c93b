# File: crudgen/registry.py
"""
crudgen - Route Registry Merger
================================
Maintains ``app/routes/__init__.py``, the aggregate module mounting every
generated resource router::

    from fastapi import APIRouter

    from app.routes.post_route import router as post_router

    router = APIRouter()

    router.include_router(post_router, prefix="/post")

    __all__ = ["router"]

Two ways to mutate it:

``add_route``
    Incremental, idempotent merge of one model, preserving every line it
    does not recognise.
``rebuild_from_directory``
    Wholesale regeneration from the ``*_route.py`` files on disk.

Both render through ``render_registry`` so they agree byte for byte when
routes were added in sorted order.  Mutations are read-modify-write with no
locking; callers run them one after another.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from crudgen.models import RegistryEntry
from crudgen.project import ROUTE_SUFFIX, ProjectLayout
from crudgen.utils import join_lines, read_file_if_exists, to_slug, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.registry")

# ---------------------------------------------------------------------------
# Line shapes
# ---------------------------------------------------------------------------

REGISTRY_DOCSTRING: str = '"""Aggregate router for every generated resource."""'
ROUTER_DECLARATION: str = "router = APIRouter()"
ROUTER_IMPORT: str = "from fastapi import APIRouter"
EXPORT_LINE: str = '__all__ = ["router"]'
MOUNT_MARKER: str = "router.include_router("

ROUTE_IMPORT_RE: re.Pattern[str] = re.compile(
    r"^from\s+app\.routes\.(\w+)_route\s+import\s+router\s+as\s+(\w+)_router\s*$"
)
MOUNT_RE: re.Pattern[str] = re.compile(
    r'^router\.include_router\(\s*(\w+)_router\s*,\s*prefix\s*=\s*"(/[^"]*)"\s*\)\s*$'
)

_UTILITY_ROUTE_FILES = frozenset({"__init__.py", "auth.py", "metadata.py"})


def import_line(slug: str) -> str:
    return f"from app.routes.{slug}_route import router as {slug}_router"


def mount_line(slug: str) -> str:
    return f'router.include_router({slug}_router, prefix="/{slug}")'


def render_registry(
    imports: Sequence[str],
    mounts: Sequence[str],
    extra: Sequence[str] = (),
) -> str:
    """
    Assemble registry source from its classified parts.

    Order: docstring, ``APIRouter`` import, route imports, router
    declaration, mounts, unrecognised lines, export.
    """
    lines: List[str] = [REGISTRY_DOCSTRING, "", ROUTER_IMPORT, ""]
    if imports:
        lines.extend(imports)
        lines.append("")
    lines.append(ROUTER_DECLARATION)
    lines.append("")
    if mounts:
        lines.extend(mounts)
        lines.append("")
    if extra:
        lines.extend(extra)
        lines.append("")
    lines.append(EXPORT_LINE)
    return join_lines(lines)


# ---------------------------------------------------------------------------
# RouteRegistry
# ---------------------------------------------------------------------------


class RouteRegistry:
    """Reads and rewrites the aggregate registry of one project."""

    def __init__(self, layout: ProjectLayout) -> None:
        self._layout: ProjectLayout = layout

    @property
    def path(self) -> Path:
        return self._layout.registry_path

    # -- Reading ------------------------------------------------------------

    def read(self) -> Optional[str]:
        return read_file_if_exists(self.path)

    def entries(self) -> List[RegistryEntry]:
        """Mounted routers in file order, deduplicated by slug."""
        source: Optional[str] = self.read()
        if source is None:
            return []
        result: List[RegistryEntry] = []
        seen: set = set()
        for line in source.splitlines():
            match = MOUNT_RE.match(line.strip())
            if match is None or match.group(1) in seen:
                continue
            seen.add(match.group(1))
            result.append(RegistryEntry(slug=match.group(1), mount_path=match.group(2)))
        return result

    def imported_slugs(self) -> List[str]:
        """Slugs named by route import lines, in file order."""
        source: Optional[str] = self.read()
        if source is None:
            return []
        slugs: List[str] = []
        for line in source.splitlines():
            match = ROUTE_IMPORT_RE.match(line.strip())
            if match is not None and match.group(1) not in slugs:
                slugs.append(match.group(1))
        return slugs

    # -- Writing ------------------------------------------------------------

    def initialize(self) -> Path:
        """Write an empty registry if none exists yet."""
        if not self.path.exists():
            write_file(self.path, render_registry([], []))
            logger.info("Created empty route registry %s.", self.path)
        return self.path

    def add_route(self, model_name: str) -> bool:
        """
        Merge the router for *model_name* into the registry.

        Returns ``False`` (and writes nothing) when the import line is
        already present.  Unrecognised lines are kept, in order, between
        the mounts and the export.
        """
        slug: str = to_slug(model_name)
        new_import: str = import_line(slug)
        source: str = self.read() or ""

        if new_import in (line.strip() for line in source.splitlines()):
            logger.debug("Route '%s' already registered; registry unchanged.", slug)
            return False

        imports: List[str] = []
        mounts: List[str] = []
        extra: List[str] = []
        for raw in source.splitlines():
            line: str = raw.rstrip()
            stripped: str = line.strip()
            if not stripped:
                continue
            if stripped in (REGISTRY_DOCSTRING, ROUTER_IMPORT, ROUTER_DECLARATION, EXPORT_LINE):
                continue
            if stripped.startswith(("from ", "import ")):
                imports.append(stripped)
            elif MOUNT_MARKER in stripped:
                mounts.append(stripped)
            elif stripped.startswith("__all__"):
                continue
            else:
                extra.append(line)

        imports.append(new_import)
        mounts.append(mount_line(slug))
        write_file(self.path, render_registry(imports, mounts, extra))
        logger.info("Registered route '/%s' in %s.", slug, self.path)
        return True

    def rebuild_from_directory(self, routes_dir: Optional[Path] = None) -> List[RegistryEntry]:
        """
        Regenerate the registry from the route files present on disk.

        Scans ``*_route.py`` (sorted by name), skipping the registry itself
        and utility modules; one entry per slug.
        """
        directory: Path = routes_dir or self._layout.routes_dir
        found: Dict[str, RegistryEntry] = {}
        for path in sorted(directory.glob(f"*{ROUTE_SUFFIX}")):
            if path.name in _UTILITY_ROUTE_FILES or path.name.startswith("_"):
                continue
            slug: str = path.name[: -len(ROUTE_SUFFIX)]
            if slug and slug not in found:
                found[slug] = RegistryEntry(slug=slug, mount_path=f"/{slug}")

        slugs: List[str] = list(found)
        write_file(
            self.path,
            render_registry([import_line(s) for s in slugs], [mount_line(s) for s in slugs]),
        )
        logger.info("Rebuilt route registry with %d route(s).", len(slugs))
        return list(found.values())


__all__: List[str] = [
    "RouteRegistry",
    "render_registry",
    "import_line",
    "mount_line",
    "ROUTE_IMPORT_RE",
    "MOUNT_RE",
]

logger.debug("crudgen.registry loaded.")
