# File: crudgen/models.py
"""
crudgen - Core Data Models
===========================
Pydantic V2 models shared by every stage of the pipeline:

    Schema Reader → Template Synthesizer → Exporter → Route Registry

Descriptors produced by the schema reader are frozen: each read of the
schema produces fresh, independent instances and nothing downstream
mutates them.  The project manifest (``crudgen.json``) is the one mutable
model; it records the per-model generation options so that a refresh can
restore them without re-prompting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SemanticType(str, Enum):
    """Closed set of generator-level field types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"


class ValidationPolicy(str, Enum):
    """What to do with an already existing validation module."""

    PRESERVE = "preserve"
    OVERWRITE = "overwrite"


class OptionsSource(str, Enum):
    """Where the inspector recovered a model's generation options from."""

    MANIFEST = "manifest"
    ROUTE_TEXT = "route_text"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Schema descriptors
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """One attribute of a model as declared in the schema source."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Field name as declared.")
    source_type: str = Field(
        ..., min_length=1, description="Native schema type tag, e.g. 'String'."
    )
    semantic_type: SemanticType = Field(
        default=SemanticType.STRING, description="Generator-level type."
    )
    is_required: bool = Field(
        default=True, description="False when the schema marks the field optional."
    )
    is_list: bool = Field(default=False, description="Type token ends with '[]'.")
    is_relation: bool = Field(
        default=False,
        description="Type names another model; not a column of this model.",
    )
    is_generated: bool = Field(
        default=False,
        description="Value produced by the database: '@default(fn())' or '@updatedAt'.",
    )

    def __repr__(self) -> str:
        marker: str = "" if self.is_required else "?"
        return f"<Field {self.name}: {self.source_type}{marker} ({self.semantic_type})>"


class ModelDescriptor(BaseModel):
    """One ``model <Name> { ... }`` block, fields kept in source order."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Model name, case preserved.")
    fields: Tuple[FieldDescriptor, ...] = Field(default_factory=tuple)

    @computed_field  # type: ignore[misc]
    @property
    def slug(self) -> str:
        return self.name.lower()

    @computed_field  # type: ignore[misc]
    @property
    def mount_path(self) -> str:
        return f"/{self.name.lower()}"

    @property
    def body_fields(self) -> List[FieldDescriptor]:
        """Fields clients may send: relations and database-generated columns excluded."""
        return [
            f
            for f in self.fields
            if not f.is_relation and not f.is_generated
        ]

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return f"<Model {self.name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Generation options & registry entries
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Per-model switches captured when the model is first generated."""

    model_config = _FROZEN_CONFIG

    requires_auth: bool = Field(
        default=False, description="Gate every endpoint behind the JWT check."
    )
    has_file_uploads: bool = Field(
        default=False, description="Accept a single 'file' field on create/update."
    )


class RegistryEntry(BaseModel):
    """A single mounted router in the aggregate registry module."""

    model_config = _FROZEN_CONFIG

    slug: str = Field(..., min_length=1)
    mount_path: str = Field(..., pattern=r"^/[a-z0-9_]+$")


# ---------------------------------------------------------------------------
# Project manifest (crudgen.json)
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelRecord(BaseModel):
    """Manifest entry for one generated model."""

    model_config = _SHARED_CONFIG

    requires_auth: bool = False
    has_file_uploads: bool = False
    generated_at: datetime = Field(default_factory=_utcnow)
    refreshed_at: Optional[datetime] = None

    @property
    def options(self) -> GenerationOptions:
        return GenerationOptions(
            requires_auth=self.requires_auth,
            has_file_uploads=self.has_file_uploads,
        )


class ProjectManifest(BaseModel):
    """
    Structured project state persisted next to the generated code.

    Holds project metadata used by the templates and collection generator,
    and the options each model was generated with.
    """

    model_config = _SHARED_CONFIG

    project_name: str = Field(..., min_length=1, max_length=128)
    project_version: str = Field(default="0.1.0")
    schema_path: str = Field(
        default="prisma/schema.prisma",
        description="Schema file path, relative to the project root.",
    )
    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL written into the request collection.",
    )
    generator_version: str = Field(default="")
    models: Dict[str, ModelRecord] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def find_model(self, name_or_slug: str) -> Optional[Tuple[str, ModelRecord]]:
        """Look a model up by exact name first, then case-insensitively."""
        if name_or_slug in self.models:
            return name_or_slug, self.models[name_or_slug]
        wanted: str = name_or_slug.lower()
        for name, record in self.models.items():
            if name.lower() == wanted:
                return name, record
        return None

    def record_generation(
        self,
        model_name: str,
        options: GenerationOptions,
        *,
        refreshed: bool = False,
    ) -> ModelRecord:
        """Insert or update the entry for *model_name*."""
        existing = self.find_model(model_name)
        now: datetime = _utcnow()
        if existing is not None:
            old_name, record = existing
            if old_name != model_name:
                del self.models[old_name]
            record.requires_auth = options.requires_auth
            record.has_file_uploads = options.has_file_uploads
            if refreshed:
                record.refreshed_at = now
            else:
                record.generated_at = now
        else:
            record = ModelRecord(
                requires_auth=options.requires_auth,
                has_file_uploads=options.has_file_uploads,
                generated_at=now,
            )
        self.models[model_name] = record
        return record


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "SemanticType",
    "ValidationPolicy",
    "OptionsSource",
    "FieldDescriptor",
    "ModelDescriptor",
    "GenerationOptions",
    "RegistryEntry",
    "ModelRecord",
    "ProjectManifest",
]

logger.debug("crudgen.models loaded: %d public symbols.", len(__all__))
