# File: crudgen/schema.py
"""
crudgen - Schema Reader & Field Type Mapper
=============================================
Reads a Prisma-style schema definition::

    model Post {
      id        Int      @id @default(autoincrement())
      title     String
      body      String?
      author    User     @relation(fields: [authorId], references: [id])
      authorId  Int
      @@index([authorId])
    }

into ordered ``ModelDescriptor`` / ``FieldDescriptor`` values.

The reader is a small line-oriented tokenizer rather than a single regular
expression over the whole text:

- comments (``//`` and ``///``) are stripped per line;
- a top-level block opens on ``<keyword> <Name> {`` and closes on the first
  line starting with ``}`` so braces inside string defaults
  (``@default("{}")``) never end a block early;
- inside a ``model`` block each non-blank line that does not start with an
  attribute marker (``@`` / ``@@``) is a field declaration.

Only the first two tokens of a field line are interpreted (name and type).
The remaining attributes are scanned for one thing: whether the database
generates the value (``@default(fn())`` or ``@updatedAt``), in which case the
field stays out of request bodies.  All functions here are pure except
``read_schema_file``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, List, Optional, Set

from crudgen.errors import ModelNotFoundError, SchemaNotFoundError
from crudgen.models import FieldDescriptor, ModelDescriptor, SemanticType

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.schema")

# ---------------------------------------------------------------------------
# Field Type Mapper
# ---------------------------------------------------------------------------

_SEMANTIC_TYPE_MAP: Dict[str, SemanticType] = {
    "String": SemanticType.STRING,
    "Int": SemanticType.NUMBER,
    "Float": SemanticType.NUMBER,
    "Boolean": SemanticType.BOOLEAN,
    "DateTime": SemanticType.DATE,
    "Json": SemanticType.OBJECT,
}


def base_type_name(source_type: str) -> str:
    """Strip the optional (``?``) and list (``[]``) markers from a type token."""
    name: str = source_type.strip()
    if name.endswith("?"):
        name = name[:-1]
    if name.endswith("[]"):
        name = name[:-2]
    return name


def to_semantic_type(source_type: str) -> SemanticType:
    """
    Map a schema type tag to its ``SemanticType``.

    Total: anything outside the fixed table (``Decimal``, ``BigInt``, enum
    names, model names, empty input) falls back to ``SemanticType.STRING``.
    """
    mapped: Optional[SemanticType] = _SEMANTIC_TYPE_MAP.get(base_type_name(source_type))
    if mapped is None:
        return SemanticType.STRING
    return mapped


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_BLOCK_KEYWORDS: FrozenSet[str] = frozenset(
    {"model", "enum", "type", "view", "datasource", "generator"}
)
_BLOCK_HEADER_RE: re.Pattern[str] = re.compile(r"^(\w+)\s+(\w+)\s*\{(.*)$")
_COMMENT_RE: re.Pattern[str] = re.compile(r"(^|\s)//.*$")
# @default(autoincrement()), @default(now()), @updatedAt ...
_GENERATED_VALUE_RE: re.Pattern[str] = re.compile(r"@updatedAt\b|@default\(\s*\w+\(")


@dataclass(slots=True)
class _Block:
    keyword: str
    name: str
    lines: List[str] = field(default_factory=list)
    line_number: int = 0


def _strip_comment(line: str) -> str:
    return _COMMENT_RE.sub("", line).rstrip()


def _split_inline_fields(text: str) -> List[str]:
    """Split ``a Int, b String @default(1, 2)`` on top-level commas only."""
    parts: List[str] = []
    depth: int = 0
    quoted: bool = False
    start: int = 0
    for i, ch in enumerate(text):
        if ch == '"':
            quoted = not quoted
        elif quoted:
            continue
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    parts.append(text[start:].strip())
    return [p for p in parts if p]


def _iter_blocks(schema_text: str) -> Iterator[_Block]:
    """Yield every top-level block in order of appearance."""
    current: Optional[_Block] = None

    for number, raw_line in enumerate(schema_text.splitlines(), start=1):
        line: str = _strip_comment(raw_line).strip()

        if current is None:
            match = _BLOCK_HEADER_RE.match(line)
            if match is None or match.group(1) not in _BLOCK_KEYWORDS:
                continue
            current = _Block(keyword=match.group(1), name=match.group(2), line_number=number)
            rest: str = match.group(3).strip()
            # Single-line block: "model Tag { id Int, label String }"
            closed: bool = rest.endswith("}")
            if closed:
                rest = rest[:-1].strip()
            if rest:
                current.lines.extend(_split_inline_fields(rest))
            if closed:
                yield current
                current = None
            continue

        if line.startswith("}"):
            yield current
            current = None
            continue

        current.lines.append(line)

    if current is not None:
        logger.warning(
            "Unterminated %s block '%s' starting at line %d; using lines up to EOF.",
            current.keyword,
            current.name,
            current.line_number,
        )
        yield current


def _model_blocks(schema_text: str) -> List[_Block]:
    return [b for b in _iter_blocks(schema_text) if b.keyword == "model"]


def _parse_field_line(line: str, model_names: Set[str]) -> Optional[FieldDescriptor]:
    if not line or line.startswith("@"):
        return None

    tokens: List[str] = line.split()
    if len(tokens) < 2:
        logger.debug("Skipping malformed field line: %r", line)
        return None

    name: str = tokens[0]
    type_token: str = tokens[1]
    optional: bool = type_token.endswith("?") or "?" in line
    base: str = base_type_name(type_token)
    attributes: str = " ".join(tokens[2:])

    return FieldDescriptor(
        name=name,
        source_type=base,
        semantic_type=to_semantic_type(type_token),
        is_required=not optional,
        is_list=type_token.rstrip("?").endswith("[]"),
        is_relation=base in model_names,
        is_generated=_GENERATED_VALUE_RE.search(attributes) is not None,
    )


def _fields_of(block: _Block, model_names: Set[str]) -> List[FieldDescriptor]:
    fields: List[FieldDescriptor] = []
    for line in block.lines:
        descriptor: Optional[FieldDescriptor] = _parse_field_line(line, model_names)
        if descriptor is not None:
            fields.append(descriptor)
    return fields


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def list_model_names(schema_text: str) -> List[str]:
    """Names of every ``model`` block, in source order."""
    return [b.name for b in _model_blocks(schema_text)]


def parse_models(schema_text: str) -> List[ModelDescriptor]:
    """
    Parse every ``model`` block of *schema_text*.

    Returns one ``ModelDescriptor`` per block in order of appearance.
    """
    blocks: List[_Block] = _model_blocks(schema_text)
    model_names: Set[str] = {b.name for b in blocks}
    models: List[ModelDescriptor] = [
        ModelDescriptor(name=b.name, fields=tuple(_fields_of(b, model_names)))
        for b in blocks
    ]
    logger.debug("Parsed %d model(s) from schema text.", len(models))
    return models


def parse_fields(schema_text: str, model_name: str) -> List[FieldDescriptor]:
    """
    Parse the fields of the single model named *model_name*.

    Raises:
        ModelNotFoundError: no block with that exact name exists.
    """
    blocks: List[_Block] = _model_blocks(schema_text)
    model_names: Set[str] = {b.name for b in blocks}
    for block in blocks:
        if block.name == model_name:
            return _fields_of(block, model_names)
    raise ModelNotFoundError(model_name, [b.name for b in blocks])


def parse_model(schema_text: str, model_name: str) -> ModelDescriptor:
    """Convenience wrapper returning a full descriptor for one model."""
    return ModelDescriptor(
        name=model_name, fields=tuple(parse_fields(schema_text, model_name))
    )


def read_schema_file(path: Path) -> str:
    """
    Read the schema file at *path*.

    Raises:
        SchemaNotFoundError: the file is missing or cannot be decoded.
    """
    try:
        text: str = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SchemaNotFoundError(path, type(exc).__name__) from exc
    logger.info("Read schema file %s (%d bytes).", path, len(text))
    return text


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "base_type_name",
    "to_semantic_type",
    "list_model_names",
    "parse_models",
    "parse_fields",
    "parse_model",
    "read_schema_file",
]

logger.debug("crudgen.schema loaded.")
