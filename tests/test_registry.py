"""
tests/test_registry.py
Unit tests for crudgen.registry (RouteRegistry).

Tests cover:
- Empty registry initialisation
- Idempotent add_route (byte-identical second call)
- Preservation of unrecognised lines
- rebuild_from_directory scanning and its agreement with add_route
- The documented lost-update behaviour of unsynchronised writers
"""

from __future__ import annotations

import ast
import pathlib

import pytest

from crudgen.models import RegistryEntry
from crudgen.project import ProjectLayout
from crudgen.registry import (
    EXPORT_LINE,
    RouteRegistry,
    import_line,
    mount_line,
    render_registry,
)


@pytest.fixture()
def layout(tmp_path: pathlib.Path) -> ProjectLayout:
    return ProjectLayout(tmp_path)


@pytest.fixture()
def registry(layout: ProjectLayout) -> RouteRegistry:
    reg = RouteRegistry(layout)
    reg.initialize()
    return reg


def _touch_route(layout: ProjectLayout, name: str) -> None:
    path = layout.route_path(name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("router = None\n", encoding="utf-8")


# ===========================================================================
# Rendering
# ===========================================================================


class TestRenderRegistry:
    def test_empty_registry_is_valid_python(self) -> None:
        source = render_registry([], [])
        ast.parse(source)
        assert "router = APIRouter()" in source
        assert source.rstrip().endswith(EXPORT_LINE)

    def test_line_shapes(self) -> None:
        assert import_line("post") == "from app.routes.post_route import router as post_router"
        assert mount_line("post") == 'router.include_router(post_router, prefix="/post")'

    def test_section_order(self) -> None:
        source = render_registry([import_line("a")], [mount_line("a")], ["# custom"])
        lines = source.splitlines()
        assert lines.index(import_line("a")) < lines.index("router = APIRouter()")
        assert lines.index("router = APIRouter()") < lines.index(mount_line("a"))
        assert lines.index(mount_line("a")) < lines.index("# custom")
        assert lines.index("# custom") < lines.index(EXPORT_LINE)


# ===========================================================================
# Incremental merge
# ===========================================================================


class TestAddRoute:
    def test_initialize_creates_file_once(self, layout: ProjectLayout) -> None:
        reg = RouteRegistry(layout)
        path = reg.initialize()
        path.write_text(path.read_text() + "# keep me\n")
        reg.initialize()
        assert "# keep me" in path.read_text()

    def test_add_route_registers_model(self, registry: RouteRegistry) -> None:
        assert registry.add_route("Post") is True
        assert registry.entries() == [RegistryEntry(slug="post", mount_path="/post")]
        assert registry.imported_slugs() == ["post"]
        ast.parse(registry.read())

    def test_add_route_is_idempotent(self, registry: RouteRegistry) -> None:
        registry.add_route("Post")
        before = registry.path.read_bytes()
        assert registry.add_route("Post") is False
        assert registry.add_route("POST") is False
        assert registry.path.read_bytes() == before

    def test_routes_appended_in_call_order(self, registry: RouteRegistry) -> None:
        for name in ("Post", "Comment", "Author"):
            registry.add_route(name)
        assert [e.slug for e in registry.entries()] == ["post", "comment", "author"]

    def test_add_route_without_existing_file(self, layout: ProjectLayout) -> None:
        reg = RouteRegistry(layout)
        assert reg.add_route("Tag") is True
        assert reg.imported_slugs() == ["tag"]
        ast.parse(reg.read())

    def test_unrecognised_lines_preserved(self, registry: RouteRegistry) -> None:
        registry.add_route("Post")
        source = registry.read().replace(
            'router.include_router(post_router, prefix="/post")',
            'router.include_router(post_router, prefix="/post")\n'
            'router.add_api_route("/ping", lambda: "pong")',
        )
        registry.path.write_text(source)
        registry.add_route("Comment")
        updated = registry.read()
        assert 'router.add_api_route("/ping", lambda: "pong")' in updated
        assert import_line("comment") in updated
        ast.parse(updated)

    def test_hand_written_import_kept(self, registry: RouteRegistry) -> None:
        source = registry.read().replace(
            "from fastapi import APIRouter",
            "from fastapi import APIRouter\n\nfrom app.routes.legacy import router as legacy_router",
        )
        registry.path.write_text(source)
        registry.add_route("Post")
        assert "from app.routes.legacy import router as legacy_router" in registry.read()

    def test_duplicate_mounts_reported_once(self, registry: RouteRegistry) -> None:
        registry.add_route("Post")
        registry.path.write_text(registry.read() + mount_line("post") + "\n")
        assert [e.slug for e in registry.entries()] == ["post"]


# ===========================================================================
# Rebuild
# ===========================================================================


class TestRebuildFromDirectory:
    def test_rebuild_sorted_by_file_name(self, layout: ProjectLayout, registry: RouteRegistry) -> None:
        for name in ("Post", "Author", "Comment"):
            _touch_route(layout, name)
        entries = registry.rebuild_from_directory()
        assert [e.slug for e in entries] == ["author", "comment", "post"]
        assert registry.imported_slugs() == ["author", "comment", "post"]

    def test_rebuild_skips_utility_modules(self, layout: ProjectLayout, registry: RouteRegistry) -> None:
        routes = layout.routes_dir
        (routes / "auth.py").write_text("")
        (routes / "metadata.py").write_text("")
        (routes / "_private_route.py").write_text("")
        _touch_route(layout, "Post")
        assert [e.slug for e in registry.rebuild_from_directory()] == ["post"]

    def test_rebuild_drops_routes_without_files(
        self, layout: ProjectLayout, registry: RouteRegistry
    ) -> None:
        registry.add_route("Ghost")
        _touch_route(layout, "Post")
        registry.rebuild_from_directory()
        assert registry.imported_slugs() == ["post"]

    def test_rebuild_matches_sorted_incremental_adds(
        self, layout: ProjectLayout, registry: RouteRegistry
    ) -> None:
        for name in ("Author", "Comment", "Post"):
            _touch_route(layout, name)
            registry.add_route(name)
        incremental = registry.path.read_bytes()
        registry.rebuild_from_directory()
        assert registry.path.read_bytes() == incremental

    def test_rebuild_of_empty_directory(self, layout: ProjectLayout, registry: RouteRegistry) -> None:
        assert registry.rebuild_from_directory() == []
        assert registry.read() == render_registry([], [])


# ===========================================================================
# Concurrency
# ===========================================================================


class TestUnsynchronisedWriters:
    def test_interleaved_read_modify_write_loses_an_update(
        self, layout: ProjectLayout, registry: RouteRegistry
    ) -> None:
        """Two writers that both read before either writes: the first write is lost."""
        stale = registry.read()
        registry.add_route("Post")
        registry.path.write_text(stale)
        registry.add_route("Comment")
        assert registry.imported_slugs() == ["comment"]

        # A rebuild restores every route whose file exists.
        _touch_route(layout, "Post")
        _touch_route(layout, "Comment")
        registry.rebuild_from_directory()
        assert registry.imported_slugs() == ["comment", "post"]
