# File: crudgen/collection.py
"""
crudgen - Request Collection Generator
=======================================
Builds ``api-collection.json``, a Postman v2.1 collection with one folder
per generated model plus the authentication and metadata endpoints.

The collection is rebuilt from scratch every time; only its ``_postman_id``
is carried over from an existing file so that clients importing it again
update the same collection.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from crudgen.models import FieldDescriptor, GenerationOptions, ModelDescriptor, SemanticType
from crudgen.project import ProjectLayout
from crudgen.utils import read_file_if_exists, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.collection")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

POSTMAN_SCHEMA_URL: str = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
BASE_URL_VARIABLE: str = "baseUrl"
AUTH_TOKEN_VARIABLE: str = "authToken"
LEGACY_COLLECTION_SUFFIX: str = "-api-collection.json"

ModelEntry = Tuple[ModelDescriptor, GenerationOptions]


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------


def sample_value(field: FieldDescriptor, now: Optional[datetime] = None) -> Any:
    """Placeholder value for *field* in a sample request body."""
    semantic: SemanticType = SemanticType(field.semantic_type)
    if semantic == SemanticType.NUMBER:
        return 123 if field.source_type == "Int" else 12.5
    if semantic == SemanticType.BOOLEAN:
        return True
    if semantic == SemanticType.DATE:
        return (now or datetime.now(timezone.utc)).isoformat()
    if semantic == SemanticType.OBJECT:
        return {"key": "value"}
    return "sample text"


def sample_body(model: ModelDescriptor, now: Optional[datetime] = None) -> Dict[str, Any]:
    """A body the generated create validator accepts: every client-supplied field."""
    body: Dict[str, Any] = {}
    for f in model.body_fields:
        value: Any = sample_value(f, now)
        body[f.name] = [value] if f.is_list else value
    return body


def _auth_header() -> Dict[str, str]:
    return {
        "key": "Authorization",
        "value": f"Bearer {{{{{AUTH_TOKEN_VARIABLE}}}}}",
        "type": "text",
    }


def _json_header() -> Dict[str, str]:
    return {"key": "Content-Type", "value": "application/json", "type": "text"}


def _url(path: Sequence[str], query: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    host: str = f"{{{{{BASE_URL_VARIABLE}}}}}"
    raw: str = f"{host}/{'/'.join(path)}"
    url: Dict[str, Any] = {"raw": raw, "host": [host], "path": list(path)}
    if query:
        url["raw"] = raw + "?" + "&".join(f"{k}={v}" for k, v in query.items())
        url["query"] = [{"key": k, "value": v} for k, v in query.items()]
    return url


def _request(
    name: str,
    method: str,
    path: Sequence[str],
    *,
    description: str = "",
    auth: bool = False,
    body: Optional[Dict[str, Any]] = None,
    query: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    headers: List[Dict[str, str]] = [_auth_header()] if auth else []
    request: Dict[str, Any] = {
        "method": method,
        "header": headers,
        "url": _url(path, query),
    }
    if body is not None:
        headers.append(_json_header())
        request["body"] = {
            "mode": "raw",
            "raw": json.dumps(body, indent=2),
            "options": {"raw": {"language": "json"}},
        }
    if description:
        request["description"] = description
    return {"id": str(uuid.uuid4()), "name": name, "request": request, "response": []}


def model_folder(
    model: ModelDescriptor,
    options: GenerationOptions,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Folder with the five CRUD requests for *model*."""
    name: str = model.name
    base: List[str] = ["api", model.slug]
    item: List[str] = base + ["1"]
    auth: bool = options.requires_auth
    body: Dict[str, Any] = sample_body(model, now)
    requests: List[Dict[str, Any]] = [
        _request(
            f"Get All {name}",
            "GET",
            base,
            description=f"Get all {name} records with pagination",
            auth=auth,
            query={"page": "1", "limit": "10"},
        ),
        _request(
            f"Get {name} by ID",
            "GET",
            item,
            description=f"Get a single {name} record by ID",
            auth=auth,
        ),
        _request(
            f"Create {name}",
            "POST",
            base,
            description=f"Create a new {name} record",
            auth=auth,
            body=body,
        ),
        _request(
            f"Update {name}",
            "PATCH",
            item,
            description=f"Update an existing {name} record",
            auth=auth,
            body=body,
        ),
        _request(
            f"Delete {name}",
            "DELETE",
            item,
            description=f"Delete a {name} record",
            auth=auth,
        ),
    ]
    return {"name": name, "item": requests}


def auth_folder() -> Dict[str, Any]:
    return {
        "name": "Authentication",
        "item": [
            _request(
                "Register",
                "POST",
                ["api", "auth", "register"],
                body={"email": "user@example.com", "password": "password123", "name": "John Doe"},
            ),
            _request(
                "Login",
                "POST",
                ["api", "auth", "login"],
                body={"email": "user@example.com", "password": "password123"},
            ),
        ],
    }


def metadata_folder() -> Dict[str, Any]:
    return {
        "name": "Metadata",
        "item": [
            _request(
                "Get API Metadata",
                "GET",
                ["api", "metadata"],
                description="Retrieve metadata about all available API endpoints",
            )
        ],
    }


# ---------------------------------------------------------------------------
# Collection assembly
# ---------------------------------------------------------------------------


def build_collection(
    project_name: str,
    models: Sequence[ModelEntry],
    base_url: str = "http://localhost:8000",
    collection_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assemble the full collection document."""
    folders: List[Dict[str, Any]] = [model_folder(m, o, now) for m, o in models]
    folders.append(auth_folder())
    folders.append(metadata_folder())
    return {
        "info": {
            "_postman_id": collection_id or str(uuid.uuid4()),
            "name": f"{project_name} API",
            "description": f"API collection for {project_name}",
            "schema": POSTMAN_SCHEMA_URL,
        },
        "variable": [
            {"key": BASE_URL_VARIABLE, "value": base_url},
            {"key": AUTH_TOKEN_VARIABLE, "value": ""},
        ],
        "item": folders,
    }


def _existing_collection_id(path: Path) -> Optional[str]:
    text: Optional[str] = read_file_if_exists(path)
    if not text:
        return None
    try:
        data: Any = json.loads(text)
    except ValueError:
        logger.warning("Existing collection %s is not valid JSON; replacing it.", path)
        return None
    if isinstance(data, dict):
        info: Any = data.get("info")
        if isinstance(info, dict) and isinstance(info.get("_postman_id"), str):
            return info["_postman_id"]
    return None


def remove_legacy_collections(root: Path) -> List[Path]:
    """Delete ``<name>-api-collection.json`` files left by older versions."""
    removed: List[Path] = []
    for path in sorted(root.glob(f"*{LEGACY_COLLECTION_SUFFIX}")):
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not remove old collection file %s: %s", path, exc)
            continue
        logger.info("Removed old collection file %s.", path.name)
        removed.append(path)
    return removed


def write_collection(
    layout: ProjectLayout,
    project_name: str,
    models: Sequence[ModelEntry],
    base_url: str = "http://localhost:8000",
) -> Path:
    """Regenerate ``api-collection.json`` for *models* and return its path."""
    remove_legacy_collections(layout.root)
    collection: Dict[str, Any] = build_collection(
        project_name,
        models,
        base_url=base_url,
        collection_id=_existing_collection_id(layout.collection_path),
    )
    write_file(layout.collection_path, json.dumps(collection, indent=2) + "\n")
    logger.info(
        "Wrote request collection %s (%d model folder(s)).",
        layout.collection_path,
        len(models),
    )
    return layout.collection_path


__all__: List[str] = [
    "POSTMAN_SCHEMA_URL",
    "sample_value",
    "sample_body",
    "model_folder",
    "build_collection",
    "remove_legacy_collections",
    "write_collection",
]

logger.debug("crudgen.collection loaded.")
