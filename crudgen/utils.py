# File: crudgen/utils.py
"""
crudgen - Utility Functions & Helpers
======================================
String transformation, identifier sanitising, file I/O and timing helpers
used throughout the generation pipeline.

- String-conversion helpers are ``@lru_cache`` decorated; the same model and
  field names are converted many times per run.
- ``write_file`` writes to a temporary sibling then renames it over the
  target, so an interrupted run never leaves a half-written module behind.
"""

from __future__ import annotations

import functools
import hashlib
import keyword
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Attribute names a pydantic BaseModel field must not shadow
_BASEMODEL_RESERVED: FrozenSet[str] = frozenset({
    "construct", "copy", "dict", "fields", "from_orm", "json",
    "parse_file", "parse_obj", "parse_raw", "schema", "schema_json",
    "update_forward_refs", "validate",
})


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """
    Convert an identifier to a human-readable title.

    Examples:
        >>> to_title_human("BlogPost")
        'Blog Post'
        >>> to_title_human("order_item")
        'Order Item'
    """
    if not name:
        return ""
    return " ".join(w.capitalize() for w in _extract_words(name))


@functools.lru_cache(maxsize=None)
def to_slug(name: str) -> str:
    """Lowercased model name used for file names and mount paths."""
    return name.lower()


def is_identifier(name: str) -> bool:
    """True for names usable as Python identifiers (keywords included)."""
    return bool(_IDENTIFIER_RE.match(name))


@functools.lru_cache(maxsize=None)
def safe_field_name(name: str) -> str:
    """
    Return a pydantic-safe attribute name for a schema field.

    Schema names are kept verbatim whenever possible because they double as
    JSON keys and column names.  Keywords, names shadowing ``BaseModel``
    attributes, ``model_``-prefixed and underscore-prefixed names get a
    trailing underscore; anything that is not an identifier is rebuilt from
    its alphanumeric parts.  Callers alias the result back to *name*.
    """
    result: str = name
    if not is_identifier(result):
        result = _NON_ALPHANUM_RE.sub("_", result).strip("_") or "field"
        if result[0].isdigit():
            result = f"f_{result}"
    if result.startswith("_"):
        result = f"f{result}"
    if (
        keyword.iskeyword(result)
        or result in _BASEMODEL_RESERVED
        or result.startswith("model_")
    ):
        result = f"{result}_"
    return result


def wrap_in_quotes(value: str) -> str:
    """Wrap a string value in double quotes, escaping internals."""
    escaped: str = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# Import statement builder
# ---------------------------------------------------------------------------


def build_import_block(imports: Dict[str, Set[str]]) -> str:
    """
    Build a sorted, de-duplicated import block from a mapping of
    module → set of names.

    Example:
        >>> build_import_block({"typing": {"List", "Optional"}, "datetime": {"datetime"}})
        'from datetime import datetime\\nfrom typing import List, Optional'
    """
    lines: List[str] = []
    for module in sorted(imports.keys()):
        names: List[str] = sorted(imports[module])
        if names:
            lines.append(f"from {module} import {', '.join(names)}")
        else:
            lines.append(f"import {module}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str) -> int:
    """
    Write *content* to *path* atomically.

    The data goes to a temporary file in the same directory which is then
    renamed over the target with ``os.replace``.  Returns the number of
    bytes written.
    """
    ensure_directory(path.parent)
    encoded: bytes = content.encode("utf-8")

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path) -> str:
    """Read a file and return its content as a string."""
    return path.read_text(encoding="utf-8")


def read_file_if_exists(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return read_file(path)


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


def join_lines(lines: Sequence[str]) -> str:
    """Join generated lines into file content with exactly one trailing newline."""
    return "\n".join(lines).rstrip("\n") + "\n"


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("synthesize Post") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_title_human",
    "to_slug",
    "is_identifier",
    "safe_field_name",
    "wrap_in_quotes",
    "build_import_block",
    "ensure_directory",
    "write_file",
    "read_file",
    "read_file_if_exists",
    "sha256_hex",
    "count_lines",
    "join_lines",
    "Timer",
]

logger.debug("crudgen.utils loaded: %d public symbols.", len(__all__))
