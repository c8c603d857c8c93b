"""
tests/conftest.py
Shared fixtures for the crudgen test suite.

Real file I/O is performed inside temporary directories managed by
pytest's tmp_path fixture; generated projects are initialised through the
public ``ProjectGenerator`` API.
"""

from __future__ import annotations

import logging
import pathlib
import textwrap
from typing import Callable, Iterator, List

import pytest

from crudgen.generator import ProjectGenerator
from crudgen.models import ModelDescriptor
from crudgen.schema import parse_models


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_crudgen_logging() -> Iterator[None]:
    """Undo handler and level changes made by cli.run between tests."""
    yield
    crudgen_logger = logging.getLogger("crudgen")
    crudgen_logger.handlers.clear()
    crudgen_logger.setLevel(logging.NOTSET)
    crudgen_logger.propagate = True
    logging.disable(logging.NOTSET)


# ---------------------------------------------------------------------------
# Schema text fixtures
# ---------------------------------------------------------------------------

DATASOURCE: str = textwrap.dedent(
    """\
    datasource db {
      provider = "sqlite"
      url      = env("SCHEMA_DATABASE_URL")
    }
    """
)

BLOG_SCHEMA: str = DATASOURCE + textwrap.dedent(
    """\

    // Blog users
    model User {
      id        Int      @id @default(autoincrement())
      email     String   @unique
      password  String
      name      String?
      posts     Post[]
    }

    /// A blog post
    model Post {
      id        Int      @id @default(autoincrement())
      title     String
      body      String?
      published Boolean  @default(false)
      views     Int      @default(0)
      rating    Float?
      meta      Json?
      createdAt DateTime @default(now())
      author    User     @relation(fields: [authorId], references: [id])
      authorId  Int
      @@index([authorId])
    }
    """
)


@pytest.fixture()
def datasource_text() -> str:
    return DATASOURCE


@pytest.fixture()
def blog_schema_text() -> str:
    return BLOG_SCHEMA


@pytest.fixture()
def blog_models() -> List[ModelDescriptor]:
    return parse_models(BLOG_SCHEMA)


@pytest.fixture()
def post_model(blog_models: List[ModelDescriptor]) -> ModelDescriptor:
    return next(m for m in blog_models if m.name == "Post")


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def project_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """An initialised project (SQLite, no external steps) with an empty schema."""
    root = tmp_path / "blog"
    ProjectGenerator(root).init_project("blog")
    return root


@pytest.fixture()
def write_schema(project_root: pathlib.Path) -> Callable[[str], pathlib.Path]:
    """Replace the project's schema file with the given text."""

    def _write(text: str) -> pathlib.Path:
        path = project_root / "prisma" / "schema.prisma"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def blog_project(
    project_root: pathlib.Path, write_schema: Callable[[str], pathlib.Path]
) -> pathlib.Path:
    """Initialised project whose schema declares User and Post."""
    write_schema(BLOG_SCHEMA)
    return project_root
