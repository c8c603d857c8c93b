"""
tests/test_inspector.py
Unit tests for crudgen.inspector (discovery of generated models).

Tests cover:
- Options recovered from the manifest
- Options sniffed from route text when the manifest has no entry
- Incomplete generated models skipped
- Models dropped from the schema reported as orphans
"""

from __future__ import annotations

import json
import pathlib
from typing import Callable

import pytest

from crudgen.generator import ProjectGenerator
from crudgen.inspector import discover_existing_models, sniff_options
from crudgen.models import GenerationOptions, ModelDescriptor, OptionsSource
from crudgen.project import MANIFEST_FILENAME, ProjectLayout
from crudgen.templates import TemplateGenerator


def _generate(root: pathlib.Path, **options: GenerationOptions) -> None:
    gen = ProjectGenerator(root)
    models = gen.select_models(gen.load_schema_models(), list(options))
    report = gen.generate(models, options)
    assert report.success, report.summary()


def _forget_manifest_models(root: pathlib.Path) -> None:
    path = root / MANIFEST_FILENAME
    data = json.loads(path.read_text())
    data["models"] = {}
    path.write_text(json.dumps(data))


# ===========================================================================
# sniff_options
# ===========================================================================


class TestSniffOptions:
    @pytest.mark.parametrize("auth", [False, True])
    @pytest.mark.parametrize("uploads", [False, True])
    def test_recovers_options_from_generated_route(
        self, post_model: ModelDescriptor, auth: bool, uploads: bool
    ) -> None:
        options = GenerationOptions(requires_auth=auth, has_file_uploads=uploads)
        route = TemplateGenerator().generate_route_module(post_model, options)
        assert sniff_options(route) == options

    def test_empty_text(self) -> None:
        assert sniff_options("") == GenerationOptions()


# ===========================================================================
# discover_existing_models
# ===========================================================================


class TestDiscovery:
    def test_nothing_generated(self, blog_project: pathlib.Path) -> None:
        result = discover_existing_models(blog_project)
        assert result.models == []
        assert result.skipped == []
        assert result.orphans == []

    def test_options_from_manifest(self, blog_project: pathlib.Path) -> None:
        _generate(
            blog_project,
            Post=GenerationOptions(requires_auth=True, has_file_uploads=True),
            User=GenerationOptions(),
        )
        result = discover_existing_models(blog_project)
        assert sorted(result.names) == ["Post", "User"]
        post = result.get("post")
        assert post is not None
        assert post.name == "Post"
        assert post.options_source == OptionsSource.MANIFEST
        assert post.options == GenerationOptions(requires_auth=True, has_file_uploads=True)
        assert post.descriptor.get_field("title") is not None

    def test_options_from_route_text_without_manifest_entry(
        self, blog_project: pathlib.Path
    ) -> None:
        _generate(blog_project, Post=GenerationOptions(requires_auth=True))
        _forget_manifest_models(blog_project)

        result = discover_existing_models(blog_project)
        post = result.get("Post")
        assert post is not None
        assert post.name == "Post"
        assert post.options_source == OptionsSource.ROUTE_TEXT
        assert post.options == GenerationOptions(requires_auth=True)

    def test_incomplete_model_skipped(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, Post=GenerationOptions(), User=GenerationOptions())
        ProjectLayout(blog_project).controller_path("User").unlink()

        result = discover_existing_models(blog_project)
        assert result.names == ["Post"]
        assert len(result.skipped) == 1
        assert result.skipped[0].model_name == "User"
        assert any("user_controller.py" in str(p) for p in result.skipped[0].missing)

    def test_model_removed_from_schema_is_orphan(
        self,
        blog_project: pathlib.Path,
        write_schema: Callable[[str], pathlib.Path],
        datasource_text: str,
    ) -> None:
        _generate(blog_project, Post=GenerationOptions(), User=GenerationOptions())
        write_schema(datasource_text + "\nmodel User {\n  id Int @id\n  email String\n}\n")

        result = discover_existing_models(blog_project)
        assert result.names == ["User"]
        assert result.orphans == ["Post"]
        # Orphaned files are left in place.
        assert ProjectLayout(blog_project).route_path("Post").is_file()

    def test_fresh_fields_come_from_schema_text(
        self, blog_project: pathlib.Path, blog_schema_text: str
    ) -> None:
        _generate(blog_project, Post=GenerationOptions())
        changed = blog_schema_text.replace("  title     String\n", "  title     String\n  subtitle  String?\n")
        result = discover_existing_models(blog_project, schema_text=changed)
        assert result.get("Post").descriptor.get_field("subtitle") is not None

    def test_unregistered_files_are_ignored(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, Post=GenerationOptions())
        stray = ProjectLayout(blog_project).route_path("Stray")
        stray.write_text("router = None\n")
        assert discover_existing_models(blog_project).names == ["Post"]
