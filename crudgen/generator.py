# File: crudgen/generator.py
"""
crudgen - Generation Pipeline (Orchestrator)
=============================================

Connects every stage for the three commands:

``init``
    skeleton files → empty registry → support files → manifest →
    optional schema pull / dependency install → collection.
``generate``
    schema → model validation → per-model synthesis → export →
    ``RouteRegistry.add_route`` → manifest → collection.
``refresh``
    inspector (registry + manifest / route text + fresh schema) →
    synthesis with recovered options → export →
    ``RouteRegistry.rebuild_from_directory`` → manifest → collection.

Error handling strategy:
    - Schema errors (``SchemaNotFoundError``, ``ModelNotFoundError``) and
      ``ProjectNotInitializedError`` propagate to the caller.
    - Model validation errors skip only the affected models.
    - Export errors are recorded per file; the model is not registered.
    - ``ExternalCommandError`` propagates; nothing already written is
      rolled back.

Every step runs sequentially; registry updates happen in model order.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from crudgen.collection import ModelEntry, write_collection
from crudgen.errors import ModelNotFoundError
from crudgen.exporters import DEFAULT_DATABASE_URL, ExportResult, ProjectExporter
from crudgen.external import install_dependencies, pull_schema
from crudgen.inspector import DiscoveredModel, DiscoveryResult, discover_existing_models, sniff_options
from crudgen.models import (
    GenerationOptions,
    ModelDescriptor,
    ProjectManifest,
    ValidationPolicy,
)
from crudgen.project import (
    ProjectLayout,
    load_manifest,
    require_initialized,
    save_manifest,
)
from crudgen.registry import RouteRegistry
from crudgen.schema import parse_models, read_schema_file
from crudgen.templates import ModelSources, TemplateGenerator
from crudgen.utils import Timer, read_file_if_exists
from crudgen.validators import ValidationResult, validate_models

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.generator")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Outcome of one ``init`` / ``generate`` / ``refresh`` run."""

    command: str = ""
    project_root: str = ""
    success: bool = False
    total_elapsed_seconds: float = 0.0

    models_processed: List[str] = field(default_factory=list)
    files_written: List[str] = field(default_factory=list)
    files_skipped: List[str] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return self.validation_errors + self.generation_errors + self.export_errors

    def add_step(self, name: str, timer: Timer, detail: str = "", success: bool = True) -> None:
        self.step_metrics.append(
            GenerationStepMetric(
                step_name=name,
                success=success,
                elapsed_seconds=timer.elapsed,
                detail=detail,
            )
        )

    def record_export(self, result: ExportResult) -> None:
        self.files_written.extend(result.written_paths)
        self.files_skipped.extend(result.skipped)
        self.export_errors.extend(result.errors)

    def summary(self) -> str:
        """Human-readable summary."""
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        lines.append("=" * 60)
        lines.append(f"  crudgen {self.command}: {status}")
        lines.append("=" * 60)
        lines.append(f"  Project:        {self.project_root}")
        lines.append(f"  Models:         {', '.join(self.models_processed) or '-'}")
        lines.append(f"  Files written:  {len(self.files_written)}")
        lines.append(f"  Files kept:     {len(self.files_skipped)}")
        lines.append(f"  Total time:     {self.total_elapsed_seconds:.3f}s")

        if self.step_metrics:
            lines.append("-" * 60)
            for step in self.step_metrics:
                icon: str = "ok" if step.success else "!!"
                lines.append(
                    f"  {icon} {step.step_name:<24s} {step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        sections: List[Tuple[str, List[str]]] = [
            ("Kept files", self.files_skipped),
            ("Orphaned models (untouched)", self.orphans),
            ("Warnings", self.warnings),
            ("Validation errors", self.validation_errors),
            ("Generation errors", self.generation_errors),
            ("Export errors", self.export_errors),
        ]
        for title, items in sections:
            if items:
                lines.append("-" * 60)
                lines.append(f"  {title} ({len(items)}):")
                lines.extend(f"    - {item}" for item in items)

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# ProjectGenerator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """
    Runs the generator commands against one project directory.

    Usage::

        gen = ProjectGenerator(Path("blog"))
        gen.init_project("blog")
        models = gen.load_schema_models()
        report = gen.generate(models, {"Post": GenerationOptions(requires_auth=True)})
        print(report.summary())
    """

    def __init__(self, project_root: Path, *, schema_path: Optional[str] = None) -> None:
        self.root: Path = Path(project_root).resolve()
        layout: ProjectLayout = ProjectLayout(self.root)
        manifest: Optional[ProjectManifest] = load_manifest(layout)
        if schema_path:
            layout = layout.with_schema(schema_path)
        elif manifest is not None:
            layout = layout.with_schema(manifest.schema_path)
        self.layout: ProjectLayout = layout
        self.registry: RouteRegistry = RouteRegistry(layout)
        logger.debug("ProjectGenerator for %s (schema %s).", self.root, layout.schema_relpath)

    # -----------------------------------------------------------------
    # Schema access
    # -----------------------------------------------------------------

    def read_schema(self) -> str:
        return read_schema_file(self.layout.schema_path)

    def load_schema_models(self) -> List[ModelDescriptor]:
        return parse_models(self.read_schema())

    def select_models(
        self, models: Sequence[ModelDescriptor], names: Sequence[str]
    ) -> List[ModelDescriptor]:
        """
        Pick *names* out of *models*, matching exactly, then case-insensitively.

        Raises:
            ModelNotFoundError: a name matches no model.
        """
        selected: List[ModelDescriptor] = []
        for name in names:
            match: Optional[ModelDescriptor] = next((m for m in models if m.name == name), None)
            if match is None:
                match = next((m for m in models if m.slug == name.lower()), None)
            if match is None:
                raise ModelNotFoundError(name, [m.name for m in models])
            if match not in selected:
                selected.append(match)
        return selected

    # -----------------------------------------------------------------
    # init
    # -----------------------------------------------------------------

    def init_project(
        self,
        project_name: str,
        *,
        database_url: str = DEFAULT_DATABASE_URL,
        base_url: str = "http://localhost:8000",
        pull: bool = False,
        install: bool = False,
    ) -> GenerationReport:
        """
        Lay down the application skeleton.

        Re-running ``init`` refreshes the skeleton and support files but
        keeps the manifest's model records, the registry and user-owned
        files (``.env``, README, schema).
        """
        import crudgen

        report: GenerationReport = GenerationReport(command="init", project_root=str(self.root))
        start: float = time.perf_counter()

        manifest: Optional[ProjectManifest] = load_manifest(self.layout)
        if manifest is None:
            manifest = ProjectManifest(
                project_name=project_name,
                schema_path=self.layout.schema_relpath,
                base_url=base_url,
            )
        else:
            logger.info("Project already initialised; refreshing skeleton files.")
        manifest.generator_version = crudgen.__version__

        exporter: ProjectExporter = ProjectExporter(
            self.layout, project_name=manifest.project_name, database_url=database_url
        )
        templates: TemplateGenerator = TemplateGenerator(
            manifest.project_name, manifest.project_version
        )

        with Timer("skeleton") as t:
            result: ExportResult = exporter.write(templates.generate_base_files())
            self.registry.initialize()
        report.record_export(result)
        report.add_step("Write skeleton", t, f"{len(result.files)} files", result.success)

        with Timer("support") as t:
            support: ExportResult = exporter.write_support_files()
        report.record_export(support)
        report.add_step("Write support files", t, f"{len(support.files)} files", support.success)

        save_manifest(self.layout, manifest)

        if pull:
            with Timer("pull") as t:
                pull_schema(self.root, self.layout.schema_relpath)
            report.add_step("Pull schema", t)

        if install:
            with Timer("install") as t:
                install_dependencies(self.root)
            report.add_step("Install dependencies", t)

        self._write_collection(manifest, report)
        return self._finalise_report(report, time.perf_counter() - start)

    # -----------------------------------------------------------------
    # generate
    # -----------------------------------------------------------------

    def generate(
        self,
        models: Sequence[ModelDescriptor],
        options_by_model: Mapping[str, GenerationOptions],
        policy: ValidationPolicy = ValidationPolicy.PRESERVE,
    ) -> GenerationReport:
        """
        Generate CRUD sources for *models* and register their routes.

        Models missing from *options_by_model* use default options.

        Raises:
            ProjectNotInitializedError: ``init`` has not been run here.
        """
        report: GenerationReport = GenerationReport(command="generate", project_root=str(self.root))
        start: float = time.perf_counter()
        manifest: ProjectManifest = require_initialized(self.layout)

        valid: List[ModelDescriptor] = self._step_validate(models, report)
        templates: TemplateGenerator = TemplateGenerator(
            manifest.project_name, manifest.project_version
        )

        with Timer("generate") as t:
            for model in valid:
                options: GenerationOptions = options_by_model.get(model.name, GenerationOptions())
                if self._emit_model(templates, model, options, policy, report):
                    self.registry.add_route(model.name)
                    manifest.record_generation(model.name, options)
                    report.models_processed.append(model.name)
        report.add_step(
            "Generate models",
            t,
            f"{len(report.models_processed)} of {len(models)} model(s)",
            not report.export_errors,
        )

        save_manifest(self.layout, manifest)
        self._write_collection(manifest, report)
        return self._finalise_report(report, time.perf_counter() - start)

    # -----------------------------------------------------------------
    # refresh
    # -----------------------------------------------------------------

    def discover(self, schema_text: Optional[str] = None) -> DiscoveryResult:
        require_initialized(self.layout)
        return discover_existing_models(self.root, schema_text, layout=self.layout)

    def refresh(
        self,
        names: Optional[Sequence[str]] = None,
        policy: ValidationPolicy = ValidationPolicy.OVERWRITE,
        discovery: Optional[DiscoveryResult] = None,
    ) -> GenerationReport:
        """
        Regenerate previously generated models from the current schema.

        *names* limits the refresh to those models (all discovered models
        when ``None``).  Options are reused, never re-asked.
        """
        report: GenerationReport = GenerationReport(command="refresh", project_root=str(self.root))
        start: float = time.perf_counter()
        manifest: ProjectManifest = require_initialized(self.layout)

        with Timer("discover") as t:
            found: DiscoveryResult = discovery or self.discover()
        report.orphans.extend(found.orphans)
        report.warnings.extend(str(err) for err in found.skipped)
        report.add_step(
            "Discover models",
            t,
            f"{len(found.models)} found, {len(found.skipped)} skipped, {len(found.orphans)} orphan(s)",
        )

        targets: List[DiscoveredModel] = self._select_discovered(found, names)
        valid: List[ModelDescriptor] = self._step_validate([m.descriptor for m in targets], report)
        valid_names: Set[str] = {m.name for m in valid}
        templates: TemplateGenerator = TemplateGenerator(
            manifest.project_name, manifest.project_version
        )

        with Timer("refresh") as t:
            for item in targets:
                if item.descriptor.name not in valid_names:
                    continue
                if self._emit_model(templates, item.descriptor, item.options, policy, report):
                    manifest.record_generation(item.name, item.options, refreshed=True)
                    report.models_processed.append(item.name)
            self.registry.rebuild_from_directory()
        report.add_step(
            "Refresh models",
            t,
            f"{len(report.models_processed)} of {len(targets)} model(s)",
            not report.export_errors,
        )

        save_manifest(self.layout, manifest)
        self._write_collection(manifest, report)
        return self._finalise_report(report, time.perf_counter() - start)

    # -----------------------------------------------------------------
    # Internal steps
    # -----------------------------------------------------------------

    def _select_discovered(
        self, found: DiscoveryResult, names: Optional[Sequence[str]]
    ) -> List[DiscoveredModel]:
        if names is None:
            return list(found.models)
        selected: List[DiscoveredModel] = []
        for name in names:
            item: Optional[DiscoveredModel] = found.get(name)
            if item is None:
                raise ModelNotFoundError(name, found.names)
            if item not in selected:
                selected.append(item)
        return selected

    def _step_validate(
        self, models: Sequence[ModelDescriptor], report: GenerationReport
    ) -> List[ModelDescriptor]:
        with Timer("validation") as t:
            result: ValidationResult = validate_models(models)
        report.validation_errors.extend(str(e) for e in result.errors)
        report.warnings.extend(str(w) for w in result.warnings)

        blocked: Set[str] = result.invalid_models
        for err in result.errors:
            logger.error("  %s", err)
        report.add_step(
            "Validate models",
            t,
            f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)",
            result.is_valid,
        )
        return [m for m in models if m.name not in blocked]

    def _emit_model(
        self,
        templates: TemplateGenerator,
        model: ModelDescriptor,
        options: GenerationOptions,
        policy: ValidationPolicy,
        report: GenerationReport,
    ) -> bool:
        """Synthesize and write one model's sources; True when every write succeeded."""
        sources: ModelSources = templates.synthesize(model, options)
        layout: ProjectLayout = self.layout
        validation_rel: str = layout.relative(layout.validation_path(model.name))
        files: Dict[str, str] = {
            validation_rel: sources.validation,
            layout.relative(layout.route_path(model.name)): sources.route,
            layout.relative(layout.controller_path(model.name)): sources.controller,
            layout.relative(layout.service_path(model.name)): sources.service,
        }
        keep: Set[str] = set()
        if ValidationPolicy(policy) == ValidationPolicy.PRESERVE:
            keep.add(validation_rel)

        exporter: ProjectExporter = ProjectExporter(layout)
        result: ExportResult = exporter.write(files, skip_existing=keep)
        report.record_export(result)
        if not result.success:
            logger.error("Model '%s' was not fully written; it is not registered.", model.name)
        return result.success

    def _collection_entries(self, manifest: ProjectManifest) -> List[ModelEntry]:
        schema_text: Optional[str] = read_file_if_exists(self.layout.schema_path)
        if schema_text is None:
            return []
        found: DiscoveryResult = discover_existing_models(self.root, schema_text, layout=self.layout)
        entries: List[ModelEntry] = [(m.descriptor, m.options) for m in found.models]
        for name in found.orphans:
            record = manifest.find_model(name)
            if record is not None:
                options: GenerationOptions = record[1].options
            else:
                options = sniff_options(read_file_if_exists(self.layout.route_path(name)) or "")
            entries.append((ModelDescriptor(name=name), options))
        return entries

    def _write_collection(self, manifest: ProjectManifest, report: GenerationReport) -> None:
        with Timer("collection") as t:
            entries: List[ModelEntry] = self._collection_entries(manifest)
            path: Path = write_collection(
                self.layout, manifest.project_name, entries, base_url=manifest.base_url
            )
        report.files_written.append(self.layout.relative(path))
        report.add_step("Write collection", t, f"{len(entries)} model folder(s)")

    def _finalise_report(self, report: GenerationReport, total_elapsed: float) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not report.errors
        logger.info(
            "%s finished: %s in %.3fs.",
            report.command,
            "success" if report.success else "with errors",
            total_elapsed,
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ProjectGenerator",
    "GenerationReport",
    "GenerationStepMetric",
]

logger.debug("crudgen.generator loaded.")
