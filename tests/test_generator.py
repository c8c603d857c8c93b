"""
tests/test_generator.py
Integration tests for crudgen.generator (ProjectGenerator pipeline).

Tests cover:
- init: skeleton, support files, manifest, empty registry, collection
- generate: per-model files, registry, manifest options, validation policy
- refresh: option reuse, schema changes, orphans, incomplete models
- Error paths: uninitialised project, unknown models, invalid models,
  failed writes, failed external steps
"""

from __future__ import annotations

import ast
import json
import pathlib
from typing import Callable, Dict, List

import pytest

from crudgen.errors import (
    ExternalCommandError,
    ModelNotFoundError,
    ProjectNotInitializedError,
    SchemaNotFoundError,
)
from crudgen.generator import GenerationReport, ProjectGenerator
from crudgen.models import GenerationOptions, ModelDescriptor, ValidationPolicy
from crudgen.project import ProjectLayout, load_manifest
from crudgen.registry import RouteRegistry


def _generate(
    root: pathlib.Path,
    options: Dict[str, GenerationOptions],
    policy: ValidationPolicy = ValidationPolicy.PRESERVE,
) -> GenerationReport:
    gen = ProjectGenerator(root)
    models = gen.select_models(gen.load_schema_models(), list(options))
    return gen.generate(models, options, policy)


def _collection(root: pathlib.Path) -> dict:
    return json.loads((root / "api-collection.json").read_text())


# ===========================================================================
# init
# ===========================================================================


class TestInitProject:
    def test_skeleton_written(self, project_root: pathlib.Path) -> None:
        for rel in (
            "app/main.py",
            "app/core/database.py",
            "app/routes/__init__.py",
            "app/routes/auth.py",
            "app/routes/metadata.py",
            "requirements.txt",
            ".env",
            ".env.example",
            ".gitignore",
            "README.md",
            "prisma/schema.prisma",
            "crudgen.json",
            "api-collection.json",
        ):
            assert (project_root / rel).is_file(), rel

    def test_every_python_file_parses(self, project_root: pathlib.Path) -> None:
        for path in (project_root / "app").rglob("*.py"):
            ast.parse(path.read_text(), filename=str(path))

    def test_manifest_contents(self, project_root: pathlib.Path) -> None:
        import crudgen

        manifest = load_manifest(ProjectLayout(project_root))
        assert manifest is not None
        assert manifest.project_name == "blog"
        assert manifest.schema_path == "prisma/schema.prisma"
        assert manifest.generator_version == crudgen.__version__
        assert manifest.models == {}

    def test_empty_registry(self, project_root: pathlib.Path) -> None:
        assert RouteRegistry(ProjectLayout(project_root)).imported_slugs() == []

    def test_collection_has_builtin_folders_only(self, project_root: pathlib.Path) -> None:
        assert [f["name"] for f in _collection(project_root)["item"]] == [
            "Authentication",
            "Metadata",
        ]

    def test_report(self, tmp_path: pathlib.Path) -> None:
        report = ProjectGenerator(tmp_path / "shop").init_project("shop")
        assert report.success
        assert report.command == "init"
        assert "app/main.py" in report.files_written
        assert "crudgen init: SUCCESS" in report.summary()

    def test_sqlite_env_urls(self, project_root: pathlib.Path) -> None:
        env = (project_root / ".env").read_text()
        assert 'DATABASE_URL="sqlite:///./app.db"' in env
        # The pull tool resolves file: paths from prisma/, the app from the root.
        assert 'SCHEMA_DATABASE_URL="file:../app.db"' in env

    def test_readme_lists_builtin_endpoints(self, project_root: pathlib.Path) -> None:
        readme = (project_root / "README.md").read_text()
        assert "crudgen generate" in readme
        assert "GET /api/metadata" in readme

    def test_postgres_requirements(self, tmp_path: pathlib.Path) -> None:
        root = tmp_path / "pg"
        ProjectGenerator(root).init_project(
            "pg", database_url="postgresql://app:secret@db:5432/pg"
        )
        assert "psycopg2-binary" in (root / "requirements.txt").read_text()
        assert 'provider = "postgresql"' in (root / "prisma/schema.prisma").read_text()
        assert 'DATABASE_URL="postgresql://app:secret@db:5432/pg"' in (root / ".env").read_text()

    def test_reinit_keeps_user_files_and_registry(
        self,
        blog_project: pathlib.Path,
        blog_schema_text: str,
    ) -> None:
        _generate(blog_project, {"Post": GenerationOptions(requires_auth=True)})
        env_before = (blog_project / ".env").read_text()

        report = ProjectGenerator(blog_project).init_project("renamed")
        assert report.success
        assert (blog_project / ".env").read_text() == env_before
        assert (blog_project / "prisma/schema.prisma").read_text() == blog_schema_text
        manifest = load_manifest(ProjectLayout(blog_project))
        assert manifest.project_name == "blog"
        assert "Post" in manifest.models
        assert RouteRegistry(ProjectLayout(blog_project)).imported_slugs() == ["post"]
        assert ".env" in report.files_skipped

    def test_external_steps_run_in_order(
        self, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: List[str] = []
        monkeypatch.setattr(
            "crudgen.generator.pull_schema", lambda root, rel: calls.append(f"pull {rel}") or ""
        )
        monkeypatch.setattr(
            "crudgen.generator.install_dependencies", lambda root: calls.append("install") or ""
        )
        report = ProjectGenerator(tmp_path / "p").init_project("p", pull=True, install=True)
        assert calls == ["pull prisma/schema.prisma", "install"]
        assert [s.step_name for s in report.step_metrics][2:4] == [
            "Pull schema",
            "Install dependencies",
        ]

    def test_failed_external_step_propagates(
        self, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _fail(root: pathlib.Path, rel: str) -> str:
            raise ExternalCommandError(["npx", "prisma", "db", "pull"], 1, "boom")

        monkeypatch.setattr("crudgen.generator.pull_schema", _fail)
        root = tmp_path / "p"
        with pytest.raises(ExternalCommandError):
            ProjectGenerator(root).init_project("p", pull=True)
        # Files written before the failure stay in place.
        assert (root / "app/main.py").is_file()


# ===========================================================================
# generate
# ===========================================================================


class TestGenerate:
    def test_generates_model_files(self, blog_project: pathlib.Path) -> None:
        report = _generate(blog_project, {"Post": GenerationOptions(requires_auth=True)})
        assert report.success, report.summary()
        assert report.models_processed == ["Post"]
        layout = ProjectLayout(blog_project)
        for path in (
            layout.validation_path("Post"),
            layout.route_path("Post"),
            layout.controller_path("Post"),
            layout.service_path("Post"),
        ):
            assert path.is_file()
            ast.parse(path.read_text())

    def test_registry_and_manifest_updated(self, blog_project: pathlib.Path) -> None:
        _generate(
            blog_project,
            {
                "Post": GenerationOptions(requires_auth=True, has_file_uploads=True),
                "User": GenerationOptions(),
            },
        )
        layout = ProjectLayout(blog_project)
        assert RouteRegistry(layout).imported_slugs() == ["post", "user"]
        manifest = load_manifest(layout)
        assert manifest.models["Post"].options == GenerationOptions(
            requires_auth=True, has_file_uploads=True
        )
        assert manifest.models["User"].options == GenerationOptions()

    def test_collection_updated(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"User": GenerationOptions(), "Post": GenerationOptions()})
        names = [f["name"] for f in _collection(blog_project)["item"]]
        assert names == ["User", "Post", "Authentication", "Metadata"]

    def test_regenerate_is_idempotent_for_registry(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        registry_path = ProjectLayout(blog_project).registry_path
        before = registry_path.read_bytes()
        _generate(blog_project, {"Post": GenerationOptions()})
        assert registry_path.read_bytes() == before

    def test_preserve_keeps_hand_edited_validation(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        validation = ProjectLayout(blog_project).validation_path("Post")
        validation.write_text(validation.read_text() + "\n# hand edit\n")

        report = _generate(blog_project, {"Post": GenerationOptions(requires_auth=True)})
        assert "# hand edit" in validation.read_text()
        assert "app/validation/post.py" in report.files_skipped
        assert "require_auth" in ProjectLayout(blog_project).route_path("Post").read_text()

    def test_overwrite_replaces_validation(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        validation = ProjectLayout(blog_project).validation_path("Post")
        validation.write_text("# hand edit\n")
        _generate(blog_project, {"Post": GenerationOptions()}, ValidationPolicy.OVERWRITE)
        assert "class PostCreate" in validation.read_text()

    def test_uninitialised_project(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ProjectNotInitializedError):
            ProjectGenerator(tmp_path).generate([], {})

    def test_missing_schema(self, project_root: pathlib.Path) -> None:
        (project_root / "prisma/schema.prisma").unlink()
        with pytest.raises(SchemaNotFoundError):
            ProjectGenerator(project_root).load_schema_models()

    def test_select_unknown_model(
        self, blog_project: pathlib.Path, blog_models: List[ModelDescriptor]
    ) -> None:
        gen = ProjectGenerator(blog_project)
        with pytest.raises(ModelNotFoundError):
            gen.select_models(blog_models, ["Comment"])

    def test_select_is_case_insensitive_fallback(
        self, blog_project: pathlib.Path, blog_models: List[ModelDescriptor]
    ) -> None:
        gen = ProjectGenerator(blog_project)
        assert [m.name for m in gen.select_models(blog_models, ["post", "Post"])] == ["Post"]

    def test_invalid_model_skipped_others_generated(
        self,
        project_root: pathlib.Path,
        write_schema: Callable[[str], pathlib.Path],
    ) -> None:
        write_schema(
            "model Auth {\n  id Int @id\n  token String\n}\n"
            "model Tag {\n  id Int @id\n  label String\n}\n"
        )
        gen = ProjectGenerator(project_root)
        report = gen.generate(gen.load_schema_models(), {})
        assert not report.success
        assert report.models_processed == ["Tag"]
        assert any("RESERVED_SLUG" in e for e in report.validation_errors)
        assert not ProjectLayout(project_root).route_path("Auth").exists()
        assert RouteRegistry(ProjectLayout(project_root)).imported_slugs() == ["tag"]

    def test_common_model_does_not_replace_shared_validation(
        self,
        project_root: pathlib.Path,
        write_schema: Callable[[str], pathlib.Path],
    ) -> None:
        write_schema(
            "model Common {\n  id Int @id @default(autoincrement())\n  label String\n}\n"
            "model Tag {\n  id Int @id @default(autoincrement())\n  label String\n}\n"
        )
        layout = ProjectLayout(project_root)
        shared = layout.validation_path("Common")
        before = shared.read_text()

        gen = ProjectGenerator(project_root)
        report = gen.generate(gen.load_schema_models(), {}, ValidationPolicy.OVERWRITE)
        assert not report.success
        assert report.models_processed == ["Tag"]
        assert any("RESERVED_SLUG" in e for e in report.validation_errors)
        assert shared.read_text() == before
        assert not layout.route_path("Common").exists()
        assert RouteRegistry(layout).imported_slugs() == ["tag"]

    def test_failed_write_leaves_model_unregistered(
        self, blog_project: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        import crudgen.exporters as exporters

        real_write = exporters.write_file

        def _flaky(path: pathlib.Path, content: str) -> int:
            if path.name == "post_controller.py":
                raise PermissionError("read-only")
            return real_write(path, content)

        monkeypatch.setattr(exporters, "write_file", _flaky)
        report = _generate(blog_project, {"Post": GenerationOptions()})
        assert not report.success
        assert report.export_errors
        assert report.models_processed == []
        assert RouteRegistry(ProjectLayout(blog_project)).imported_slugs() == []
        assert "Post" not in load_manifest(ProjectLayout(blog_project)).models


# ===========================================================================
# refresh
# ===========================================================================


class TestRefresh:
    def test_refresh_reuses_options(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions(requires_auth=True, has_file_uploads=True)})
        report = ProjectGenerator(blog_project).refresh()
        assert report.success, report.summary()
        assert report.models_processed == ["Post"]
        route = ProjectLayout(blog_project).route_path("Post").read_text()
        assert "Depends(require_auth)" in route
        assert "upload_single(" in route
        record = load_manifest(ProjectLayout(blog_project)).models["Post"]
        assert record.refreshed_at is not None

    def test_refresh_picks_up_new_field(
        self,
        blog_project: pathlib.Path,
        blog_schema_text: str,
        write_schema: Callable[[str], pathlib.Path],
    ) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        write_schema(
            blog_schema_text.replace("  title     String\n", "  title     String\n  subtitle  String?\n")
        )
        ProjectGenerator(blog_project).refresh()
        assert "subtitle" in ProjectLayout(blog_project).validation_path("Post").read_text()

    def test_refresh_preserve_policy(
        self,
        blog_project: pathlib.Path,
        blog_schema_text: str,
        write_schema: Callable[[str], pathlib.Path],
    ) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        write_schema(blog_schema_text.replace("  title     String\n", "  title     String\n  subtitle  String?\n"))
        ProjectGenerator(blog_project).refresh(policy=ValidationPolicy.PRESERVE)
        assert "subtitle" not in ProjectLayout(blog_project).validation_path("Post").read_text()

    def test_refresh_subset(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions(), "User": GenerationOptions()})
        report = ProjectGenerator(blog_project).refresh(["user"])
        assert report.models_processed == ["User"]

    def test_refresh_unknown_name(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions()})
        with pytest.raises(ModelNotFoundError):
            ProjectGenerator(blog_project).refresh(["Comment"])

    def test_refresh_rebuilds_registry_sorted(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"User": GenerationOptions(), "Post": GenerationOptions()})
        layout = ProjectLayout(blog_project)
        assert RouteRegistry(layout).imported_slugs() == ["user", "post"]
        ProjectGenerator(blog_project).refresh()
        assert RouteRegistry(layout).imported_slugs() == ["post", "user"]

    def test_orphans_reported_and_untouched(
        self,
        blog_project: pathlib.Path,
        datasource_text: str,
        write_schema: Callable[[str], pathlib.Path],
    ) -> None:
        _generate(blog_project, {"Post": GenerationOptions(requires_auth=True), "User": GenerationOptions()})
        layout = ProjectLayout(blog_project)
        route_before = layout.route_path("Post").read_text()
        write_schema(datasource_text + "\nmodel User {\n  id Int @id\n  email String\n}\n")

        report = ProjectGenerator(blog_project).refresh()
        assert report.success
        assert report.orphans == ["Post"]
        assert report.models_processed == ["User"]
        assert layout.route_path("Post").read_text() == route_before
        assert "post" in RouteRegistry(layout).imported_slugs()
        folders = [f["name"] for f in _collection(blog_project)["item"]]
        assert "Post" in folders
        assert "Orphaned models (untouched) (1):" in report.summary()

    def test_incomplete_model_reported(self, blog_project: pathlib.Path) -> None:
        _generate(blog_project, {"Post": GenerationOptions(), "User": GenerationOptions()})
        ProjectLayout(blog_project).service_path("User").unlink()
        report = ProjectGenerator(blog_project).refresh()
        assert report.models_processed == ["Post"]
        assert any("User" in w for w in report.warnings)

    def test_refresh_nothing_generated(self, blog_project: pathlib.Path) -> None:
        report = ProjectGenerator(blog_project).refresh()
        assert report.success
        assert report.models_processed == []
