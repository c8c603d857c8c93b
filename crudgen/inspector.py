# File: crudgen/inspector.py
"""
crudgen - Project-State Inspector
==================================
Works out which models a project has already generated and how, so that
``refresh`` can regenerate them against the current schema without asking
the user again.

Sources, in order of authority:

1. the route registry (which models are mounted);
2. ``crudgen.json`` (declared name and generation options);
3. the route module text (options, for projects without a manifest entry);
4. the current schema (field lists).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from crudgen.errors import IncompleteGeneratedProjectError
from crudgen.models import (
    GenerationOptions,
    ModelDescriptor,
    ModelRecord,
    OptionsSource,
    ProjectManifest,
)
from crudgen.project import ProjectLayout, load_manifest
from crudgen.registry import RouteRegistry
from crudgen.schema import parse_models, read_schema_file
from crudgen.templates import AUTH_GUARD_TOKEN, UPLOAD_TOKEN
from crudgen.utils import read_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.inspector")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DiscoveredModel:
    """A generated model ready to be refreshed."""

    name: str
    options: GenerationOptions
    options_source: OptionsSource
    descriptor: ModelDescriptor

    @property
    def slug(self) -> str:
        return self.descriptor.slug


@dataclass(slots=True)
class DiscoveryResult:
    models: List[DiscoveredModel] = field(default_factory=list)
    skipped: List[IncompleteGeneratedProjectError] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [m.name for m in self.models]

    def get(self, name: str) -> Optional[DiscoveredModel]:
        wanted: str = name.lower()
        for model in self.models:
            if model.name.lower() == wanted:
                return model
        return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sniff_options(route_source: str) -> GenerationOptions:
    """Recover generation options from the text of a generated route module."""
    return GenerationOptions(
        requires_auth=AUTH_GUARD_TOKEN in route_source,
        has_file_uploads=UPLOAD_TOKEN in route_source,
    )


def _resolve_name(
    slug: str,
    manifest: Optional[ProjectManifest],
    schema_models: List[ModelDescriptor],
) -> Tuple[str, Optional[ModelRecord]]:
    if manifest is not None:
        found = manifest.find_model(slug)
        if found is not None:
            return found
    for model in schema_models:
        if model.slug == slug:
            return model.name, None
    return slug, None


def _missing_artifacts(layout: ProjectLayout, name: str) -> List[str]:
    required: List[Path] = [
        layout.route_path(name),
        layout.controller_path(name),
        layout.service_path(name),
    ]
    return [layout.relative(p) for p in required if not p.is_file()]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def discover_existing_models(
    project_root: Path,
    schema_text: Optional[str] = None,
    layout: Optional[ProjectLayout] = None,
) -> DiscoveryResult:
    """
    Enumerate generated models and pair them with fresh schema fields.

    Args:
        project_root: root of the generated project.
        schema_text:  current schema; read from the project when omitted.
        layout:       path conventions; derived from the manifest when omitted.

    Models with a missing route, controller or service file are recorded in
    ``skipped``.  Models no longer declared in the schema are recorded in
    ``orphans`` and left alone.

    Raises:
        SchemaNotFoundError: *schema_text* omitted and the schema file is unreadable.
    """
    root: Path = Path(project_root)
    manifest: Optional[ProjectManifest] = load_manifest(layout or ProjectLayout(root))
    if layout is None:
        layout = ProjectLayout(root)
        if manifest is not None:
            layout = layout.with_schema(manifest.schema_path)

    if schema_text is None:
        schema_text = read_schema_file(layout.schema_path)
    schema_models: List[ModelDescriptor] = parse_models(schema_text)
    by_name = {m.name: m for m in schema_models}

    result: DiscoveryResult = DiscoveryResult()
    for slug in RouteRegistry(layout).imported_slugs():
        name, record = _resolve_name(slug, manifest, schema_models)

        missing: List[str] = _missing_artifacts(layout, name)
        if missing:
            error = IncompleteGeneratedProjectError(name, missing)
            logger.warning("Skipping '%s': %s", name, error)
            result.skipped.append(error)
            continue

        descriptor: Optional[ModelDescriptor] = by_name.get(name)
        if descriptor is None:
            descriptor = next((m for m in schema_models if m.slug == slug), None)
        if descriptor is None:
            logger.warning(
                "Model '%s' is registered but no longer in the schema; leaving it untouched.",
                name,
            )
            result.orphans.append(name)
            continue

        if record is not None:
            options: GenerationOptions = record.options
            source: OptionsSource = OptionsSource.MANIFEST
        else:
            options = sniff_options(read_file(layout.route_path(name)))
            source = OptionsSource.ROUTE_TEXT
            logger.info(
                "Recovered options for '%s' from route text (auth=%s, uploads=%s).",
                name,
                options.requires_auth,
                options.has_file_uploads,
            )

        result.models.append(
            DiscoveredModel(
                name=name, options=options, options_source=source, descriptor=descriptor
            )
        )

    logger.info(
        "Discovered %d model(s), %d skipped, %d orphan(s).",
        len(result.models),
        len(result.skipped),
        len(result.orphans),
    )
    return result


__all__: List[str] = [
    "DiscoveredModel",
    "DiscoveryResult",
    "sniff_options",
    "discover_existing_models",
]

logger.debug("crudgen.inspector loaded.")
