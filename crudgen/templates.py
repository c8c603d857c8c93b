# File: crudgen/templates.py
"""
crudgen - Code Template Engine
===============================
Turns ``ModelDescriptor`` + ``GenerationOptions`` into the source text of a
FastAPI resource, and produces the fixed application skeleton written by
``crudgen init``.

Per-model output (``TemplateGenerator.synthesize``):
    1. ``app/validation/<slug>.py``        pydantic Create / Update schemas
    2. ``app/routes/<slug>_route.py``      APIRouter with five CRUD endpoints
    3. ``app/controllers/<slug>_controller.py``
    4. ``app/services/<slug>_service.py``

Every template builds a ``List[str]`` and joins it once.  Template methods
hold no mutable state; the same generator may render any number of models.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from crudgen.models import FieldDescriptor, GenerationOptions, ModelDescriptor, SemanticType
from crudgen.utils import (
    build_import_block,
    join_lines,
    safe_field_name,
    to_title_human,
    wrap_in_quotes,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "
_DOUBLE_INDENT: str = _INDENT * 2

# Tokens the route template emits; the inspector sniffs for the same strings.
AUTH_GUARD_TOKEN: str = "Depends(require_auth)"
UPLOAD_TOKEN: str = "upload_single("
UPLOAD_FIELD_NAME: str = "file"

STRING_MIN_LENGTH: int = 1
STRING_MAX_LENGTH: int = 255

_INTEGER_SOURCE_TYPES = frozenset({"Int"})

_ANNOTATION_MAP: Dict[str, str] = {
    "string": "str",
    "number": "float",
    "boolean": "bool",
    "date": "datetime",
    "object": "Dict[str, Any]",
}


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ModelSources:
    """The four source files synthesized for one model."""

    model_name: str
    validation: str
    route: str
    controller: str
    service: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "validation": self.validation,
            "route": self.route,
            "controller": self.controller,
            "service": self.service,
        }


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def python_annotation(field: FieldDescriptor) -> Tuple[str, Dict[str, Set[str]]]:
    """Python type annotation for *field* and the imports it needs."""
    imports: Dict[str, Set[str]] = {}
    if field.semantic_type == SemanticType.NUMBER and field.source_type in _INTEGER_SOURCE_TYPES:
        annotation: str = "int"
    else:
        annotation = _ANNOTATION_MAP.get(SemanticType(field.semantic_type).value, "str")

    if annotation == "datetime":
        imports.setdefault("datetime", set()).add("datetime")
    elif annotation.startswith("Dict"):
        imports.setdefault("typing", set()).update({"Any", "Dict"})

    if field.is_list:
        annotation = f"List[{annotation}]"
        imports.setdefault("typing", set()).add("List")
    return annotation, imports


def field_constraints(field: FieldDescriptor) -> List[str]:
    """Validator keyword arguments derived from the semantic type."""
    if field.is_list:
        return []
    if field.semantic_type == SemanticType.STRING:
        return [f"min_length={STRING_MIN_LENGTH}", f"max_length={STRING_MAX_LENGTH}"]
    if field.semantic_type == SemanticType.NUMBER:
        return ["ge=0"]
    return []


def id_annotation(model: ModelDescriptor) -> str:
    """Type of the ``item_id`` path parameter."""
    id_field: Optional[FieldDescriptor] = model.get_field("id")
    if id_field is not None and id_field.semantic_type == SemanticType.STRING:
        return "str"
    return "int"


# ---------------------------------------------------------------------------
# TemplateGenerator
# ---------------------------------------------------------------------------


class TemplateGenerator:
    """
    Stateless source-code renderer.

    ``synthesize`` covers the per-model files; ``generate_base_files``
    returns the application skeleton keyed by path relative to the project
    root.
    """

    def __init__(self, project_name: str = "api", project_version: str = "0.1.0") -> None:
        self._project_name: str = project_name
        self._project_version: str = project_version
        logger.debug("TemplateGenerator initialised for project '%s'.", project_name)

    # ===================================================================
    # Per-model synthesis
    # ===================================================================

    def synthesize(self, model: ModelDescriptor, options: GenerationOptions) -> ModelSources:
        """Render all four per-model sources."""
        sources: ModelSources = ModelSources(
            model_name=model.name,
            validation=self.generate_validation_module(model),
            route=self.generate_route_module(model, options),
            controller=self.generate_controller_module(model),
            service=self.generate_service_module(model),
        )
        logger.debug(
            "Synthesized sources for '%s' (auth=%s, uploads=%s, %d field(s)).",
            model.name,
            options.requires_auth,
            options.has_file_uploads,
            len(model.fields),
        )
        return sources

    # -- 1. Validation ------------------------------------------------------

    def generate_validation_module(self, model: ModelDescriptor) -> str:
        """
        Pydantic request schemas.

        ``<Name>Create`` requires every required field; ``<Name>Update`` is
        the same shape with every field optional, so a PATCH never re-imposes
        required-ness.
        """
        body_fields: List[FieldDescriptor] = model.body_fields
        imports: Dict[str, Set[str]] = {"pydantic": {"BaseModel", "ConfigDict", "Field"}}
        for f in body_fields:
            for module, names in python_annotation(f)[1].items():
                imports.setdefault(module, set()).update(names)
        if body_fields:
            imports.setdefault("typing", set()).add("Optional")

        create_name: str = f"{model.name}Create"
        update_name: str = f"{model.name}Update"

        lines: List[str] = []
        lines.append('"""')
        lines.append(f"Request validation schemas for {model.name}.")
        lines.append("")
        lines.append("Generated by crudgen.  Hand edits survive regeneration while the")
        lines.append("validation policy is 'preserve'.")
        lines.append('"""')
        lines.append("")
        lines.append(build_import_block(imports))
        lines.append("")
        lines.append("")
        lines.extend(
            self._schema_class(
                create_name,
                f"Body accepted when creating a {model.name}.",
                body_fields,
                partial=False,
            )
        )
        lines.append("")
        lines.append("")
        lines.extend(
            self._schema_class(
                update_name,
                f"Partial body accepted when updating a {model.name}; every field is optional.",
                body_fields,
                partial=True,
            )
        )
        lines.append("")
        lines.append("")
        lines.append(f"CreateSchema = {create_name}")
        lines.append(f"UpdateSchema = {update_name}")
        lines.append("")
        lines.append(
            f'__all__ = ["{create_name}", "{update_name}", "CreateSchema", "UpdateSchema"]'
        )
        return join_lines(lines)

    def _schema_class(
        self,
        class_name: str,
        doc: str,
        fields: List[FieldDescriptor],
        *,
        partial: bool,
    ) -> List[str]:
        lines: List[str] = [f"class {class_name}(BaseModel):"]
        lines.append(f'{_INDENT}"""{doc}"""')
        lines.append("")
        lines.append(f'{_INDENT}model_config = ConfigDict(populate_by_name=True, extra="ignore")')
        if fields:
            lines.append("")
            for f in fields:
                lines.append(f"{_INDENT}{self._field_declaration(f, partial=partial)}")
        return lines

    def _field_declaration(self, field: FieldDescriptor, *, partial: bool) -> str:
        annotation, _ = python_annotation(field)
        attr: str = safe_field_name(field.name)
        optional: bool = partial or not field.is_required
        if optional:
            annotation = f"Optional[{annotation}]"

        args: List[str] = ["default=None" if optional else "..."]
        if attr != field.name:
            args.append(f"alias={wrap_in_quotes(field.name)}")
        args.extend(field_constraints(field))

        if len(args) == 1:
            if optional:
                return f"{attr}: {annotation} = None"
            return f"{attr}: {annotation}"
        return f"{attr}: {annotation} = Field({', '.join(args)})"

    # -- 2. Route -----------------------------------------------------------

    def generate_route_module(self, model: ModelDescriptor, options: GenerationOptions) -> str:
        """
        APIRouter declaring list, get, create, update and delete, in that
        order.  Guards are route-level dependencies so they run before the
        body is read or validated.
        """
        slug: str = model.slug
        name: str = model.name
        id_type: str = id_annotation(model)

        imports: Dict[str, Set[str]] = {
            "typing": {"Any", "Dict"},
            "fastapi": {"APIRouter", "Depends"},
            f"app.controllers.{slug}_controller": {f"{name}Controller"},
            "app.middleware.validate": {"validate_body"},
            "app.validation.common": {"PaginationParams", "pagination_params"},
            f"app.validation.{slug}": {f"{name}Create", f"{name}Update"},
        }
        read_guards: List[str] = []
        if options.requires_auth:
            imports["app.middleware.auth"] = {"require_auth"}
            read_guards.append(AUTH_GUARD_TOKEN)
        write_guards: List[str] = list(read_guards)
        if options.has_file_uploads:
            imports["app.middleware.upload"] = {"upload_single"}
            write_guards.append(f'Depends(upload_single("{UPLOAD_FIELD_NAME}"))')

        stdlib_imports: Dict[str, Set[str]] = {"typing": imports.pop("typing")}
        third_party: Dict[str, Set[str]] = {"fastapi": imports.pop("fastapi")}

        lines: List[str] = []
        lines.append('"""')
        lines.append(f"HTTP routes for the {name} resource.")
        lines.append("")
        lines.append("Generated by crudgen; regenerated on every refresh.")
        lines.append('"""')
        lines.append("")
        lines.append(build_import_block(stdlib_imports))
        lines.append("")
        lines.append(build_import_block(third_party))
        lines.append("")
        lines.append(build_import_block(imports))
        lines.append("")
        lines.append(f"REQUIRES_AUTH = {options.requires_auth}")
        lines.append(f"HAS_FILE_UPLOADS = {options.has_file_uploads}")
        lines.append("")
        lines.append(f'router = APIRouter(tags=["{to_title_human(name) or name}"])')
        lines.append(f"controller = {name}Controller()")
        lines.append("")
        lines.append("")

        # list
        lines.extend(self._decorator("get", '""', read_guards))
        lines.append(f"def list_{slug}(params: PaginationParams = Depends(pagination_params)):")
        lines.append(f'{_INDENT}"""List {name} records with pagination, sorting and search."""')
        lines.append(f"{_INDENT}return controller.get_all(params)")
        lines.append("")
        lines.append("")

        # get one
        lines.extend(self._decorator("get", '"/{item_id}"', read_guards))
        lines.append(f"def get_{slug}(item_id: {id_type}):")
        lines.append(f"{_INDENT}return controller.get_one(item_id)")
        lines.append("")
        lines.append("")

        # create
        lines.extend(self._decorator("post", '""', write_guards, status_code=201))
        lines.append(f"def create_{slug}(")
        lines.append(f"{_INDENT}data: Dict[str, Any] = Depends(validate_body({name}Create)),")
        lines.append("):")
        lines.append(f"{_INDENT}return controller.create(data)")
        lines.append("")
        lines.append("")

        # update
        lines.extend(self._decorator("patch", '"/{item_id}"', write_guards))
        lines.append(f"def update_{slug}(")
        lines.append(f"{_INDENT}item_id: {id_type},")
        lines.append(f"{_INDENT}data: Dict[str, Any] = Depends(validate_body({name}Update)),")
        lines.append("):")
        lines.append(f"{_INDENT}return controller.update(item_id, data)")
        lines.append("")
        lines.append("")

        # delete
        lines.extend(self._decorator("delete", '"/{item_id}"', read_guards, status_code=204))
        lines.append(f"def delete_{slug}(item_id: {id_type}):")
        lines.append(f"{_INDENT}return controller.delete(item_id)")
        return join_lines(lines)

    @staticmethod
    def _decorator(
        method: str,
        path: str,
        guards: List[str],
        status_code: Optional[int] = None,
    ) -> List[str]:
        args: List[str] = [path]
        if status_code is not None:
            args.append(f"status_code={status_code}")
        if guards:
            args.append(f"dependencies=[{', '.join(guards)}]")

        single: str = f"@router.{method}({', '.join(args)})"
        if len(single) <= 88:
            return [single]
        lines: List[str] = [f"@router.{method}("]
        lines.extend(f"{_INDENT}{arg}," for arg in args)
        lines.append(")")
        return lines

    # -- 3. Controller ------------------------------------------------------

    def generate_controller_module(self, model: ModelDescriptor) -> str:
        name: str = model.name
        slug: str = model.slug
        id_type: str = id_annotation(model)

        lines: List[str] = []
        lines.append(f'"""Request handlers for the {name} resource."""')
        lines.append("")
        lines.append("from typing import Any, Dict, Optional")
        lines.append("")
        lines.append("from fastapi import Response")
        lines.append("from fastapi.responses import JSONResponse")
        lines.append("")
        lines.append(f"from app.services.{slug}_service import {name}Service")
        lines.append("from app.utils.response import paginated, success")
        lines.append("from app.validation.common import PaginationParams")
        lines.append("")
        lines.append("")
        lines.append(f"class {name}Controller:")
        lines.append(f'{_INDENT}"""Shapes HTTP responses around ``{name}Service``."""')
        lines.append("")
        lines.append(f"{_INDENT}def __init__(self, service: Optional[{name}Service] = None) -> None:")
        lines.append(f"{_DOUBLE_INDENT}self.service = service or {name}Service()")
        lines.append("")
        lines.append(f"{_INDENT}def get_all(self, params: PaginationParams) -> JSONResponse:")
        lines.append(f"{_DOUBLE_INDENT}result = self.service.find_all(")
        lines.append(f"{_DOUBLE_INDENT}{_INDENT}page=params.page,")
        lines.append(f"{_DOUBLE_INDENT}{_INDENT}limit=params.limit,")
        lines.append(f"{_DOUBLE_INDENT}{_INDENT}sort_by=params.sortBy,")
        lines.append(f"{_DOUBLE_INDENT}{_INDENT}sort_order=params.sortOrder,")
        lines.append(f"{_DOUBLE_INDENT}{_INDENT}search=params.search,")
        lines.append(f"{_DOUBLE_INDENT})")
        lines.append(
            f'{_DOUBLE_INDENT}return paginated(result["data"], params.page, params.limit, result["total"])'
        )
        lines.append("")
        lines.append(f"{_INDENT}def get_one(self, item_id: {id_type}) -> JSONResponse:")
        lines.append(f"{_DOUBLE_INDENT}return success(self.service.find_by_id(item_id))")
        lines.append("")
        lines.append(f"{_INDENT}def create(self, data: Dict[str, Any]) -> JSONResponse:")
        lines.append(f"{_DOUBLE_INDENT}return success(self.service.create(data), status_code=201)")
        lines.append("")
        lines.append(
            f"{_INDENT}def update(self, item_id: {id_type}, data: Dict[str, Any]) -> JSONResponse:"
        )
        lines.append(f"{_DOUBLE_INDENT}return success(self.service.update(item_id, data))")
        lines.append("")
        lines.append(f"{_INDENT}def delete(self, item_id: {id_type}) -> Response:")
        lines.append(f"{_DOUBLE_INDENT}self.service.delete(item_id)")
        lines.append(f"{_DOUBLE_INDENT}return Response(status_code=204)")
        return join_lines(lines)

    # -- 4. Service ---------------------------------------------------------

    def generate_service_module(self, model: ModelDescriptor) -> str:
        lines: List[str] = []
        lines.append(f'"""Persistence operations for the {model.name} resource."""')
        lines.append("")
        lines.append("from app.services.base import BaseService")
        lines.append("")
        lines.append("")
        lines.append(f"class {model.name}Service(BaseService):")
        lines.append(f"{_INDENT}def __init__(self) -> None:")
        lines.append(f'{_DOUBLE_INDENT}super().__init__("{model.slug}")')
        return join_lines(lines)

    # ===================================================================
    # Application skeleton
    # ===================================================================

    def generate_base_files(self) -> Dict[str, str]:
        """Every skeleton module, keyed by path relative to the project root."""
        files: Dict[str, str] = {
            "app/__init__.py": f'"""{self._project_name} API package."""\n',
            "app/main.py": self.generate_main_app(),
            "app/server.py": self.generate_server(),
            "app/core/__init__.py": '"""Configuration, database and error handling."""\n',
            "app/core/config.py": self.generate_config(),
            "app/core/database.py": self.generate_database(),
            "app/core/errors.py": self.generate_errors(),
            "app/middleware/__init__.py": '"""Request dependencies: auth, uploads, validation."""\n',
            "app/middleware/auth.py": self.generate_auth_middleware(),
            "app/middleware/upload.py": self.generate_upload_middleware(),
            "app/middleware/validate.py": self.generate_validate_middleware(),
            "app/utils/__init__.py": "",
            "app/utils/jwt.py": self.generate_jwt_util(),
            "app/utils/password.py": self.generate_password_util(),
            "app/utils/response.py": self.generate_response_util(),
            "app/validation/__init__.py": "",
            "app/validation/common.py": self.generate_common_validation(),
            "app/services/__init__.py": "",
            "app/services/base.py": self.generate_base_service(),
            "app/controllers/__init__.py": "",
            "app/routes/auth.py": self.generate_auth_routes(),
            "app/routes/metadata.py": self.generate_metadata_route(),
        }
        logger.debug("Rendered %d skeleton file(s).", len(files))
        return files

    def generate_main_app(self) -> str:
        lines: List[str] = [
            '"""',
            f"{self._project_name} API application.",
            "",
            "Run with ``python -m app.server`` or ``uvicorn app.main:app --reload``.",
            '"""',
            "",
            "from datetime import datetime, timezone",
            "from typing import Any, Dict",
            "",
            "from fastapi import FastAPI",
            "from fastapi.middleware.cors import CORSMiddleware",
            "",
            "from app.core.config import settings",
            "from app.core.errors import register_exception_handlers",
            "from app.routes import router as api_router",
            "from app.routes.auth import router as auth_router",
            "from app.routes.metadata import router as metadata_router",
            "",
            f"app = FastAPI(title=settings.app_name, version={wrap_in_quotes(self._project_version)})",
            "",
            "app.add_middleware(",
            "    CORSMiddleware,",
            "    allow_origins=settings.cors_origins,",
            "    allow_credentials=True,",
            '    allow_methods=["*"],',
            '    allow_headers=["*"],',
            ")",
            "",
            "register_exception_handlers(app)",
            "",
            'app.include_router(auth_router, prefix="/api/auth")',
            'app.include_router(metadata_router, prefix="/api/metadata")',
            'app.include_router(api_router, prefix="/api")',
            "",
            "",
            '@app.get("/health", tags=["System"])',
            "def health() -> Dict[str, Any]:",
            '    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}',
        ]
        return join_lines(lines)

    def generate_server(self) -> str:
        lines: List[str] = [
            '"""Development server: ``python -m app.server``."""',
            "",
            "import uvicorn",
            "",
            "from app.core.config import settings",
            "",
            "",
            "def main() -> None:",
            '    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)',
            "",
            "",
            'if __name__ == "__main__":',
            "    main()",
        ]
        return join_lines(lines)

    def generate_config(self) -> str:
        lines: List[str] = [
            '"""Application settings read from the environment and a local .env file."""',
            "",
            "import os",
            "from dataclasses import dataclass",
            "from typing import List",
            "",
            "from dotenv import load_dotenv",
            "",
            "load_dotenv()",
            "",
            "DEFAULT_ALLOWED_FILE_TYPES = \"image/jpeg,image/png,image/gif,application/pdf\"",
            "",
            "",
            "def _env_list(name: str, default: str) -> List[str]:",
            '    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]',
            "",
            "",
            "def _env_bool(name: str, default: bool = False) -> bool:",
            "    value = os.getenv(name)",
            "    if value is None:",
            "        return default",
            '    return value.strip().lower() in {"1", "true", "yes", "on"}',
            "",
            "",
            "@dataclass(frozen=True)",
            "class Settings:",
            "    app_name: str",
            "    database_url: str",
            "    host: str",
            "    port: int",
            "    debug: bool",
            "    jwt_secret: str",
            "    jwt_expires_minutes: int",
            "    upload_path: str",
            "    max_file_size: int",
            "    allowed_file_types: List[str]",
            "    auth_model: str",
            "    cors_origins: List[str]",
            "",
            "    @classmethod",
            '    def from_env(cls) -> "Settings":',
            "        return cls(",
            f'            app_name=os.getenv("APP_NAME", {wrap_in_quotes(self._project_name)}),',
            '            database_url=os.getenv("DATABASE_URL", "sqlite:///./app.db"),',
            '            host=os.getenv("HOST", "127.0.0.1"),',
            '            port=int(os.getenv("PORT", "8000")),',
            '            debug=_env_bool("DEBUG"),',
            '            jwt_secret=os.getenv("JWT_SECRET", "change-me"),',
            '            jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", "1440")),',
            '            upload_path=os.getenv("UPLOAD_PATH", "uploads"),',
            '            max_file_size=int(os.getenv("MAX_FILE_SIZE", "5242880")),',
            '            allowed_file_types=_env_list("ALLOWED_FILE_TYPES", DEFAULT_ALLOWED_FILE_TYPES),',
            '            auth_model=os.getenv("AUTH_MODEL", "user"),',
            '            cors_origins=_env_list("CORS_ORIGINS", "*"),',
            "        )",
            "",
            "",
            "settings = Settings.from_env()",
        ]
        return join_lines(lines)

    def generate_database(self) -> str:
        lines: List[str] = [
            '"""',
            "Database engine and table lookup.",
            "",
            "Tables are reflected from the live database the first time a resource",
            "needs them and matched to the resource name case-insensitively.",
            '"""',
            "",
            "from threading import Lock",
            "",
            "from sqlalchemy import MetaData, Table, create_engine, inspect",
            "",
            "from app.core.config import settings",
            "from app.core.errors import AppError",
            "",
            "engine = create_engine(settings.database_url, pool_pre_ping=True)",
            "metadata = MetaData()",
            "_reflect_lock = Lock()",
            "",
            "",
            "def get_table(resource: str) -> Table:",
            "    wanted = resource.lower()",
            "    with _reflect_lock:",
            "        for name, table in metadata.tables.items():",
            "            if name.lower() == wanted:",
            "                return table",
            "        for name in inspect(engine).get_table_names():",
            "            if name.lower() == wanted:",
            "                return Table(name, metadata, autoload_with=engine)",
            '    raise AppError(f"No table found for resource \'{resource}\'", 500)',
        ]
        return join_lines(lines)

    def generate_errors(self) -> str:
        lines: List[str] = [
            '"""Application errors and the JSON error envelope."""',
            "",
            "from typing import Any, Dict, List, Sequence",
            "",
            "from fastapi import FastAPI, Request",
            "from fastapi.exceptions import RequestValidationError",
            "from fastapi.responses import JSONResponse",
            "from starlette.exceptions import HTTPException as StarletteHTTPException",
            "",
            '_LOCATION_PREFIXES = {"body", "query", "path", "header"}',
            "",
            "",
            "class AppError(Exception):",
            '    """An error with an HTTP status, rendered as {status: "error", message}."""',
            "",
            "    def __init__(self, message: str, status_code: int = 500) -> None:",
            "        super().__init__(message)",
            "        self.message = message",
            "        self.status_code = status_code",
            "",
            "",
            "def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:",
            "    formatted: List[Dict[str, Any]] = []",
            "    for error in errors:",
            '        location = list(error.get("loc", ()))',
            "        if location and location[0] in _LOCATION_PREFIXES:",
            "            location = location[1:]",
            "        formatted.append(",
            "            {",
            '                "field": ".".join(str(part) for part in location),',
            '                "message": error.get("msg", ""),',
            '                "type": error.get("type", ""),',
            "            }",
            "        )",
            "    return formatted",
            "",
            "",
            "def error_body(message: str, **extra: Any) -> Dict[str, Any]:",
            '    body: Dict[str, Any] = {"status": "error", "message": message}',
            "    body.update(extra)",
            "    return body",
            "",
            "",
            "def register_exception_handlers(app: FastAPI) -> None:",
            "    @app.exception_handler(AppError)",
            "    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:",
            "        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))",
            "",
            "    @app.exception_handler(RequestValidationError)",
            "    async def handle_validation_error(",
            "        request: Request, exc: RequestValidationError",
            "    ) -> JSONResponse:",
            "        return JSONResponse(",
            "            status_code=400,",
            "            content=error_body(",
            '                "Validation failed", errors=format_validation_errors(exc.errors())',
            "            ),",
            "        )",
            "",
            "    @app.exception_handler(StarletteHTTPException)",
            "    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:",
            '        message = "Route not found" if exc.status_code == 404 else str(exc.detail)',
            "        return JSONResponse(status_code=exc.status_code, content=error_body(message))",
        ]
        return join_lines(lines)

    def generate_auth_middleware(self) -> str:
        lines: List[str] = [
            '"""Bearer-token authentication dependency."""',
            "",
            "from typing import Any, Dict",
            "",
            "from fastapi import Request",
            "",
            "from app.core.errors import AppError",
            "from app.utils.jwt import verify_token",
            "",
            "",
            "async def require_auth(request: Request) -> Dict[str, Any]:",
            '    """Reject the request with 401 unless it carries a valid bearer token."""',
            '    scheme, _, token = request.headers.get("authorization", "").partition(" ")',
            '    if scheme.lower() != "bearer" or not token.strip():',
            '        raise AppError("No token provided", 401)',
            "    payload = verify_token(token.strip())",
            "    request.state.user = payload",
            "    return payload",
        ]
        return join_lines(lines)

    def generate_upload_middleware(self) -> str:
        lines: List[str] = [
            '"""Single-file multipart upload dependency."""',
            "",
            "import time",
            "import uuid",
            "from dataclasses import dataclass",
            "from pathlib import Path",
            "from typing import Awaitable, Callable, Optional",
            "",
            "from fastapi import Request",
            "from starlette.datastructures import UploadFile",
            "",
            "from app.core.config import settings",
            "from app.core.errors import AppError",
            "",
            "",
            "@dataclass(frozen=True)",
            "class StoredFile:",
            "    field_name: str",
            "    filename: str",
            "    original_name: str",
            "    content_type: str",
            "    size: int",
            "    path: str",
            "",
            "",
            "def build_filename(field_name: str, original_name: str) -> str:",
            "    suffix = Path(original_name).suffix",
            '    return f"{field_name}-{int(time.time() * 1000)}-{uuid.uuid4().int % 10**9}{suffix}"',
            "",
            "",
            "def upload_single(field_name: str) -> Callable[[Request], Awaitable[Optional[StoredFile]]]:",
            '    """Store the file sent in *field_name*, if any, before the body is validated."""',
            "",
            "    async def dependency(request: Request) -> Optional[StoredFile]:",
            '        if not request.headers.get("content-type", "").startswith("multipart/form-data"):',
            "            return None",
            "        form = await request.form()",
            "        upload = form.get(field_name)",
            "        if not isinstance(upload, UploadFile):",
            "            return None",
            '        content_type = upload.content_type or ""',
            "        if content_type not in settings.allowed_file_types:",
            '            raise AppError(f"Invalid file type: {content_type or \'unknown\'}", 400)',
            "        data = await upload.read()",
            "        if len(data) > settings.max_file_size:",
            '            raise AppError("File too large", 400)',
            '        filename = build_filename(field_name, upload.filename or "")',
            "        destination = Path(settings.upload_path) / filename",
            "        destination.parent.mkdir(parents=True, exist_ok=True)",
            "        destination.write_bytes(data)",
            "        stored = StoredFile(",
            "            field_name=field_name,",
            "            filename=filename,",
            '            original_name=upload.filename or "",',
            "            content_type=content_type,",
            "            size=len(data),",
            "            path=str(destination),",
            "        )",
            "        request.state.uploaded_file = stored",
            "        return stored",
            "",
            "    return dependency",
        ]
        return join_lines(lines)

    def generate_validate_middleware(self) -> str:
        lines: List[str] = [
            '"""Request-body validation dependency."""',
            "",
            "import json",
            "from typing import Any, Awaitable, Callable, Dict, Type",
            "",
            "from fastapi import Request",
            "from fastapi.exceptions import RequestValidationError",
            "from pydantic import BaseModel, ValidationError",
            "from starlette.datastructures import UploadFile",
            "",
            "from app.core.errors import AppError",
            "",
            '_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")',
            "",
            "",
            "async def read_body(request: Request) -> Dict[str, Any]:",
            '    """Body as a plain dict, from JSON or form data (uploaded files excluded)."""',
            '    content_type = request.headers.get("content-type", "")',
            "    if content_type.startswith(_FORM_CONTENT_TYPES):",
            "        form = await request.form()",
            "        return {",
            "            key: value for key, value in form.items() if not isinstance(value, UploadFile)",
            "        }",
            "    raw = await request.body()",
            "    if not raw.strip():",
            "        return {}",
            "    try:",
            "        payload = json.loads(raw)",
            "    except ValueError:",
            '        raise AppError("Malformed JSON body", 400) from None',
            "    if not isinstance(payload, dict):",
            '        raise AppError("Request body must be a JSON object", 400)',
            "    return payload",
            "",
            "",
            "def validate_body(",
            "    schema: Type[BaseModel],",
            ") -> Callable[[Request], Awaitable[Dict[str, Any]]]:",
            '    """Dependency returning the validated body, keyed by the schema\'s field aliases."""',
            "",
            "    async def dependency(request: Request) -> Dict[str, Any]:",
            "        payload = await read_body(request)",
            "        try:",
            "            model = schema.model_validate(payload)",
            "        except ValidationError as exc:",
            "            raise RequestValidationError(exc.errors()) from exc",
            "        return model.model_dump(exclude_unset=True, by_alias=True)",
            "",
            "    return dependency",
        ]
        return join_lines(lines)

    def generate_jwt_util(self) -> str:
        lines: List[str] = [
            '"""JSON Web Token helpers (HS256)."""',
            "",
            "from datetime import datetime, timedelta, timezone",
            "from typing import Any, Dict, Optional",
            "",
            "from jose import JWTError, jwt",
            "",
            "from app.core.config import settings",
            "from app.core.errors import AppError",
            "",
            'ALGORITHM = "HS256"',
            "",
            "",
            "def generate_token(payload: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:",
            "    claims = dict(payload)",
            "    lifetime = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)",
            '    claims["exp"] = datetime.now(timezone.utc) + lifetime',
            "    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)",
            "",
            "",
            "def verify_token(token: str) -> Dict[str, Any]:",
            "    try:",
            "        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])",
            "    except JWTError as exc:",
            '        raise AppError("Invalid token", 401) from exc',
        ]
        return join_lines(lines)

    def generate_password_util(self) -> str:
        lines: List[str] = [
            '"""Password hashing."""',
            "",
            "from passlib.context import CryptContext",
            "",
            '_context = CryptContext(schemes=["bcrypt"], deprecated="auto")',
            "",
            "",
            "def hash_password(password: str) -> str:",
            "    return _context.hash(password)",
            "",
            "",
            "def verify_password(password: str, hashed: str) -> bool:",
            "    if not hashed:",
            "        return False",
            "    return _context.verify(password, hashed)",
        ]
        return join_lines(lines)

    def generate_response_util(self) -> str:
        lines: List[str] = [
            '"""Success envelopes shared by every controller."""',
            "",
            "import math",
            "from typing import Any, Dict, Optional",
            "",
            "from fastapi.encoders import jsonable_encoder",
            "from fastapi.responses import JSONResponse",
            "",
            "",
            "def success(data: Any = None, status_code: int = 200, message: Optional[str] = None) -> JSONResponse:",
            '    content: Dict[str, Any] = {"status": "success", "data": jsonable_encoder(data)}',
            "    if message:",
            '        content["message"] = message',
            "    return JSONResponse(status_code=status_code, content=content)",
            "",
            "",
            "def paginated(data: Any, page: int, limit: int, total: int) -> JSONResponse:",
            "    total_pages = math.ceil(total / limit) if limit else 0",
            "    return JSONResponse(",
            "        content={",
            '            "status": "success",',
            '            "data": jsonable_encoder(data),',
            '            "pagination": {',
            '                "page": page,',
            '                "limit": limit,',
            '                "totalPages": total_pages,',
            '                "totalItems": total,',
            "            },",
            "        }",
            "    )",
        ]
        return join_lines(lines)

    def generate_common_validation(self) -> str:
        lines: List[str] = [
            '"""Query parameters shared by every list endpoint."""',
            "",
            "from typing import Literal, Optional",
            "",
            "from fastapi import Query",
            "from pydantic import BaseModel, Field",
            "",
            "",
            "class PaginationParams(BaseModel):",
            "    page: int = Field(default=1, ge=1)",
            "    limit: int = Field(default=10, ge=1, le=100)",
            "    sortBy: Optional[str] = None",
            '    sortOrder: Literal["asc", "desc"] = "asc"',
            "    search: Optional[str] = None",
            "",
            "",
            "def pagination_params(",
            "    page: int = Query(1, ge=1),",
            "    limit: int = Query(10, ge=1, le=100),",
            "    sortBy: Optional[str] = Query(None),",
            '    sortOrder: Literal["asc", "desc"] = Query("asc"),',
            "    search: Optional[str] = Query(None),",
            ") -> PaginationParams:",
            "    return PaginationParams(",
            "        page=page, limit=limit, sortBy=sortBy, sortOrder=sortOrder, search=search",
            "    )",
        ]
        return join_lines(lines)

    def generate_base_service(self) -> str:
        lines: List[str] = [
            '"""',
            "Generic persistence operations shared by every generated resource.",
            "",
            "A service is parameterized only by the lowercased resource name; the",
            "backing table is reflected on first use.",
            '"""',
            "",
            "from typing import Any, Dict, Optional",
            "",
            "import sqlalchemy as sa",
            "",
            "from app.core.database import engine, get_table",
            "from app.core.errors import AppError",
            "",
            "",
            "class BaseService:",
            "    def __init__(self, model: str) -> None:",
            "        self.model = model",
            "        self._table: Optional[sa.Table] = None",
            "",
            "    @property",
            "    def table(self) -> sa.Table:",
            "        if self._table is None:",
            "            self._table = get_table(self.model)",
            "        return self._table",
            "",
            "    @property",
            "    def primary_key(self) -> sa.Column:",
            "        columns = list(self.table.primary_key.columns)",
            "        if columns:",
            "            return columns[0]",
            '        if "id" in self.table.c:',
            '            return self.table.c["id"]',
            '        raise AppError(f"Table for \'{self.model}\' has no primary key", 500)',
            "",
            "    def _known_columns(self, data: Dict[str, Any]) -> Dict[str, Any]:",
            "        return {key: value for key, value in data.items() if key in self.table.c}",
            "",
            "    def find_all(",
            "        self,",
            "        page: int = 1,",
            "        limit: int = 10,",
            "        sort_by: Optional[str] = None,",
            '        sort_order: str = "asc",',
            "        search: Optional[str] = None,",
            "    ) -> Dict[str, Any]:",
            "        query = sa.select(self.table)",
            "        count_query = sa.select(sa.func.count()).select_from(self.table)",
            "",
            "        if search:",
            '            pattern = f"%{search}%"',
            "            clauses = [",
            "                column.ilike(pattern)",
            "                for column in self.table.columns",
            "                if isinstance(column.type, sa.String)",
            "            ]",
            "            if clauses:",
            "                condition = sa.or_(*clauses)",
            "                query = query.where(condition)",
            "                count_query = count_query.where(condition)",
            "",
            "        if sort_by:",
            "            if sort_by not in self.table.c:",
            '                raise AppError(f"Cannot sort by unknown field \'{sort_by}\'", 400)',
            "            column = self.table.c[sort_by]",
            '            query = query.order_by(column.desc() if sort_order == "desc" else column.asc())',
            "",
            "        query = query.offset((page - 1) * limit).limit(limit)",
            "",
            "        with engine.connect() as connection:",
            "            rows = [dict(row._mapping) for row in connection.execute(query)]",
            "            total = connection.execute(count_query).scalar_one()",
            '        return {"data": rows, "total": total}',
            "",
            "    def find_by_id(self, item_id: Any) -> Dict[str, Any]:",
            "        query = sa.select(self.table).where(self.primary_key == item_id)",
            "        with engine.connect() as connection:",
            "            row = connection.execute(query).first()",
            "        if row is None:",
            '            raise AppError("Item not found", 404)',
            "        return dict(row._mapping)",
            "",
            "    def find_one_by(self, column: str, value: Any) -> Optional[Dict[str, Any]]:",
            "        if column not in self.table.c:",
            '            raise AppError(f"Unknown field \'{column}\' on \'{self.model}\'", 500)',
            "        query = sa.select(self.table).where(self.table.c[column] == value).limit(1)",
            "        with engine.connect() as connection:",
            "            row = connection.execute(query).first()",
            "        return dict(row._mapping) if row is not None else None",
            "",
            "    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:",
            "        values = self._known_columns(data)",
            "        with engine.begin() as connection:",
            "            result = connection.execute(sa.insert(self.table).values(**values))",
            "            key = result.inserted_primary_key",
            "        if key is not None and len(key) and key[0] is not None:",
            "            return self.find_by_id(key[0])",
            "        return values",
            "",
            "    def update(self, item_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:",
            "        values = self._known_columns(data)",
            "        if values:",
            "            statement = (",
            "                sa.update(self.table).where(self.primary_key == item_id).values(**values)",
            "            )",
            "            with engine.begin() as connection:",
            "                affected = connection.execute(statement).rowcount",
            "            if affected == 0:",
            '                raise AppError("Item not found", 404)',
            "        return self.find_by_id(item_id)",
            "",
            "    def delete(self, item_id: Any) -> None:",
            "        statement = sa.delete(self.table).where(self.primary_key == item_id)",
            "        with engine.begin() as connection:",
            "            affected = connection.execute(statement).rowcount",
            "        if affected == 0:",
            '            raise AppError("Item not found", 404)',
        ]
        return join_lines(lines)

    def generate_auth_routes(self) -> str:
        lines: List[str] = [
            '"""Registration and login against the table named by AUTH_MODEL."""',
            "",
            "from typing import Any, Dict, Optional",
            "",
            "from fastapi import APIRouter, Depends",
            "from pydantic import BaseModel, Field",
            "",
            "from app.core.config import settings",
            "from app.core.errors import AppError",
            "from app.middleware.validate import validate_body",
            "from app.services.base import BaseService",
            "from app.utils.jwt import generate_token",
            "from app.utils.password import hash_password, verify_password",
            "from app.utils.response import success",
            "",
            'router = APIRouter(tags=["Authentication"])',
            "users = BaseService(settings.auth_model)",
            "",
            "",
            "class RegisterSchema(BaseModel):",
            "    email: str = Field(..., min_length=3, max_length=255)",
            "    password: str = Field(..., min_length=6, max_length=128)",
            "    name: Optional[str] = Field(default=None, min_length=1, max_length=255)",
            "",
            "",
            "class LoginSchema(BaseModel):",
            "    email: str = Field(..., min_length=3, max_length=255)",
            "    password: str = Field(..., min_length=1)",
            "",
            "",
            "def _public(user: Dict[str, Any]) -> Dict[str, Any]:",
            '    return {key: value for key, value in user.items() if key != "password"}',
            "",
            "",
            "def _issue_token(user: Dict[str, Any]) -> str:",
            '    return generate_token({"sub": str(user.get("id", "")), "email": user.get("email")})',
            "",
            "",
            '@router.post("/register", status_code=201)',
            "def register(data: Dict[str, Any] = Depends(validate_body(RegisterSchema))):",
            '    if users.find_one_by("email", data["email"]) is not None:',
            '        raise AppError("Email already registered", 409)',
            '    data["password"] = hash_password(data["password"])',
            "    user = _public(users.create(data))",
            '    return success({"user": user, "token": _issue_token(user)}, status_code=201)',
            "",
            "",
            '@router.post("/login")',
            "def login(data: Dict[str, Any] = Depends(validate_body(LoginSchema))):",
            '    user = users.find_one_by("email", data["email"])',
            '    if user is None or not verify_password(data["password"], user.get("password") or ""):',
            '        raise AppError("Invalid email or password", 401)',
            "    public = _public(user)",
            '    return success({"user": public, "token": _issue_token(public)})',
        ]
        return join_lines(lines)

    def generate_metadata_route(self) -> str:
        lines: List[str] = [
            '"""',
            "API metadata endpoint.",
            "",
            "Describes every mounted resource: endpoints, auth requirement and the",
            "JSON schema of its request bodies.  The description is cached as an",
            "explicit snapshot and rebuilt once it is older than CACHE_TTL_SECONDS.",
            '"""',
            "",
            "import importlib",
            "import time",
            "from dataclasses import dataclass",
            "from pathlib import Path",
            "from typing import Any, Dict, List, Optional",
            "",
            "from fastapi import APIRouter",
            "",
            'router = APIRouter(tags=["Metadata"])',
            "",
            "CACHE_TTL_SECONDS = 300.0",
            "ROUTES_DIR = Path(__file__).resolve().parent",
            'ROUTE_SUFFIX = "_route.py"',
            "",
            "",
            "@dataclass(frozen=True)",
            "class MetadataSnapshot:",
            "    payload: Dict[str, Any]",
            "    created_at: float",
            "",
            "    def is_fresh(self, now: float, ttl: float = CACHE_TTL_SECONDS) -> bool:",
            "        return 0 <= now - self.created_at < ttl",
            "",
            "",
            "def _endpoints(base: str) -> List[Dict[str, str]]:",
            "    item = base + \"/{id}\"",
            "    return [",
            '        {"method": "GET", "path": base, "description": "List records (page, limit, sortBy, sortOrder, search)"},',
            '        {"method": "GET", "path": item, "description": "Get one record"},',
            '        {"method": "POST", "path": base, "description": "Create a record"},',
            '        {"method": "PATCH", "path": item, "description": "Update a record"},',
            '        {"method": "DELETE", "path": item, "description": "Delete a record"},',
            "    ]",
            "",
            "",
            "def describe_resource(slug: str) -> Dict[str, Any]:",
            '    route_module = importlib.import_module(f"app.routes.{slug}_route")',
            '    validation = importlib.import_module(f"app.validation.{slug}")',
            '    base = f"/api/{slug}"',
            "    return {",
            '        "name": slug,',
            '        "path": base,',
            '        "requiresAuth": bool(getattr(route_module, "REQUIRES_AUTH", False)),',
            '        "hasFileUploads": bool(getattr(route_module, "HAS_FILE_UPLOADS", False)),',
            '        "endpoints": _endpoints(base),',
            '        "schemas": {',
            '            "create": validation.CreateSchema.model_json_schema(),',
            '            "update": validation.UpdateSchema.model_json_schema(),',
            "        },",
            "    }",
            "",
            "",
            "def build_snapshot(now: float) -> MetadataSnapshot:",
            "    slugs = sorted(",
            "        path.name[: -len(ROUTE_SUFFIX)] for path in ROUTES_DIR.glob(f\"*{ROUTE_SUFFIX}\")",
            "    )",
            "    payload = {",
            '        "status": "success",',
            '        "data": {',
            '            "generatedAt": now,',
            '            "resources": [describe_resource(slug) for slug in slugs],',
            "        },",
            "    }",
            "    return MetadataSnapshot(payload=payload, created_at=now)",
            "",
            "",
            "def get_or_refresh(snapshot: Optional[MetadataSnapshot], now: float) -> MetadataSnapshot:",
            '    """Return *snapshot* while it is fresh, otherwise a newly built one."""',
            "    if snapshot is not None and snapshot.is_fresh(now):",
            "        return snapshot",
            "    return build_snapshot(now)",
            "",
            "",
            "class MetadataCache:",
            "    def __init__(self) -> None:",
            "        self.snapshot: Optional[MetadataSnapshot] = None",
            "",
            "    def get(self, now: float) -> MetadataSnapshot:",
            "        self.snapshot = get_or_refresh(self.snapshot, now)",
            "        return self.snapshot",
            "",
            "",
            "cache = MetadataCache()",
            "",
            "",
            '@router.get("")',
            "def get_metadata() -> Dict[str, Any]:",
            "    return cache.get(time.time()).payload",
        ]
        return join_lines(lines)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "AUTH_GUARD_TOKEN",
    "UPLOAD_TOKEN",
    "UPLOAD_FIELD_NAME",
    "ModelSources",
    "TemplateGenerator",
    "python_annotation",
    "field_constraints",
    "id_annotation",
]

logger.debug("crudgen.templates loaded: %d public symbols.", len(__all__))
