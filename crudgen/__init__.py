# File: crudgen/__init__.py
"""
crudgen - Schema-Driven FastAPI CRUD Scaffolder
================================================

Reads a Prisma-style schema and generates a runnable FastAPI + SQLAlchemy
2.0 + Pydantic v2 backend: per-model CRUD routes, JWT auth guards, request
validation schemas and a Postman request collection.  Generated models can
be refreshed against a changed schema without losing their options.

Architecture overview::

    ┌──────────────┐     ┌──────────────────┐     ┌───────────────────┐
    │  CLI / Entry │────▶│ ProjectGenerator │────▶│ TemplateGenerator │
    │   (cli.py)   │     │  (generator.py)  │     │  (templates.py)   │
    └──────────────┘     └────────┬─────────┘     └───────────────────┘
                                  │
          ┌───────────┬───────────┼───────────┬────────────┐
          ▼           ▼           ▼           ▼            ▼
     ┌────────┐ ┌──────────┐ ┌──────────┐ ┌─────────┐ ┌────────────┐
     │ schema │ │ registry │ │inspector │ │exporters│ │ collection │
     └────────┘ └──────────┘ └──────────┘ └─────────┘ └────────────┘

Usage::

    # As a library
    from crudgen import ProjectGenerator, GenerationOptions
    gen = ProjectGenerator(Path("blog"))
    gen.init_project("blog")
    gen.generate(gen.load_schema_models(), {"Post": GenerationOptions(requires_auth=True)})

    # From the command line
    crudgen init -C blog --yes
    crudgen generate -C blog --all --auth
    crudgen refresh -C blog --all
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from crudgen.errors import (
    CrudgenError,
    ExternalCommandError,
    IncompleteGeneratedProjectError,
    ModelNotFoundError,
    ProjectNotInitializedError,
    SchemaNotFoundError,
)
from crudgen.models import (
    FieldDescriptor,
    GenerationOptions,
    ModelDescriptor,
    ProjectManifest,
    RegistryEntry,
    SemanticType,
    ValidationPolicy,
)
from crudgen.schema import parse_fields, parse_models, read_schema_file, to_semantic_type
from crudgen.templates import ModelSources, TemplateGenerator
from crudgen.registry import RouteRegistry
from crudgen.inspector import DiscoveryResult, discover_existing_models
from crudgen.validators import ValidationResult, validate_models
from crudgen.exporters import ExportResult, ProjectExporter
from crudgen.generator import GenerationReport, ProjectGenerator

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestrator
    "ProjectGenerator",
    "GenerationReport",
    # Models
    "FieldDescriptor",
    "GenerationOptions",
    "ModelDescriptor",
    "ProjectManifest",
    "RegistryEntry",
    "SemanticType",
    "ValidationPolicy",
    # Schema
    "parse_models",
    "parse_fields",
    "read_schema_file",
    "to_semantic_type",
    # Synthesis & registry
    "TemplateGenerator",
    "ModelSources",
    "RouteRegistry",
    "discover_existing_models",
    "DiscoveryResult",
    # Validation & export
    "validate_models",
    "ValidationResult",
    "ProjectExporter",
    "ExportResult",
    # Errors
    "CrudgenError",
    "SchemaNotFoundError",
    "ModelNotFoundError",
    "IncompleteGeneratedProjectError",
    "ProjectNotInitializedError",
    "ExternalCommandError",
]
