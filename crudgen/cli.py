# File: crudgen/cli.py
"""
crudgen - Command-Line Interface
=================================

argparse front end for the three generator commands.

Usage examples::

    # Scaffold a project in ./blog (SQLite, no prompts)
    crudgen init -C blog --name blog --yes

    # Generate CRUD endpoints for two models, auth on, uploads off
    crudgen generate -C blog --model Post --model Comment --auth --no-uploads

    # Regenerate every generated model from the current schema
    crudgen refresh -C blog --all

    # Keep hand-edited validation modules during a refresh
    crudgen refresh -C blog --all --validation-policy preserve

Questions not answered by flags are asked interactively; ``--yes`` takes
the defaults instead (auth on, uploads off, every model).

Exit codes:
    0 - success
    1 - schema or model error
    2 - generation error
    3 - export error
    4 - input/argument error (including an uninitialised project)
    5 - external command failed
    6 - model validation error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Sequence

from crudgen.errors import (
    CrudgenError,
    EmptySchemaError,
    ExternalCommandError,
    ModelNotFoundError,
    ProjectNotInitializedError,
    SchemaNotFoundError,
)
from crudgen.generator import GenerationReport, ProjectGenerator
from crudgen.inspector import DiscoveryResult
from crudgen.models import GenerationOptions, ModelDescriptor, ProjectManifest, ValidationPolicy
from crudgen.project import build_database_url, require_initialized
from crudgen.prompts import Prompter, RichPrompter, StaticPrompter

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_SCHEMA_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4
EXIT_EXTERNAL_ERROR: int = 5
EXIT_VALIDATION_ERROR: int = 6


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``crudgen`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("crudgen")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _common_options() -> argparse.ArgumentParser:
    common: argparse.ArgumentParser = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-C", "--directory",
        default=".",
        metavar="DIR",
        help="Project root (default: current directory).",
    )
    common.add_argument(
        "--schema",
        default=None,
        metavar="PATH",
        help="Schema file relative to the project root (default: prisma/schema.prisma).",
    )
    common.add_argument(
        "-y", "--yes",
        action="store_true",
        default=False,
        help="Do not prompt; use defaults for every unanswered question.",
    )
    verbosity = common.add_argument_group("verbosity")
    verbosity.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all log output.",
    )
    return common


def _add_model_selection(parser: argparse.ArgumentParser, verb: str) -> None:
    parser.add_argument(
        "-m", "--model",
        action="append",
        default=None,
        metavar="NAME",
        help=f"Model to {verb} (repeatable).",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        help=f"{verb.capitalize()} every eligible model.",
    )


def _add_policy(parser: argparse.ArgumentParser, default: ValidationPolicy) -> None:
    parser.add_argument(
        "--validation-policy",
        choices=[p.value for p in ValidationPolicy],
        default=default.value,
        help=f"Existing validation modules: keep or rewrite (default: {default.value}).",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from crudgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="crudgen",
        description=(
            "crudgen - scaffold FastAPI CRUD backends from a Prisma-style schema.\n\n"
            "Run 'init' once, describe models in the schema, then 'generate' new\n"
            "models and 'refresh' generated ones after schema changes."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"crudgen v{__version__}")

    common: argparse.ArgumentParser = _common_options()
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    init = commands.add_parser("init", parents=[common], help="Create the application skeleton.")
    init.add_argument("--name", default=None, help="Project name (default: directory name).")
    init.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: prompt, or SQLite with --yes).",
    )
    init.add_argument(
        "--base-url",
        default="http://localhost:8000",
        metavar="URL",
        help="Base URL written into the request collection.",
    )
    init.add_argument(
        "--install",
        action="store_true",
        default=False,
        help="pip install the generated requirements.",
    )
    init.add_argument(
        "--pull",
        action="store_true",
        default=False,
        help="Pull models from the existing database into the schema.",
    )

    generate = commands.add_parser(
        "generate", parents=[common], help="Generate CRUD sources for schema models."
    )
    _add_model_selection(generate, "generate")
    generate.add_argument(
        "--auth",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Protect the endpoints with JWT authentication.",
    )
    generate.add_argument(
        "--uploads",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Accept a single 'file' upload on create and update.",
    )
    _add_policy(generate, ValidationPolicy.PRESERVE)

    refresh = commands.add_parser(
        "refresh", parents=[common], help="Regenerate generated models from the current schema."
    )
    _add_model_selection(refresh, "refresh")
    _add_policy(refresh, ValidationPolicy.OVERWRITE)

    return parser


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

_DATABASE_PROVIDERS: List[str] = ["sqlite", "postgresql", "mysql"]


def _ask_database_url(prompter: Prompter, project_name: str) -> str:
    provider: str = prompter.select("Database provider", _DATABASE_PROVIDERS, default="sqlite")
    if provider == "sqlite":
        return build_database_url("sqlite", database=prompter.text("Database file name", default="app"))
    host: str = prompter.text("Database host", default="localhost")
    port_text: str = prompter.text("Database port", default="")
    database: str = prompter.text("Database name", default=project_name)
    username: str = prompter.text("Database user", default="")
    password: str = prompter.text("Database password", default="")
    return build_database_url(
        provider,
        host=host,
        port=int(port_text) if port_text.strip().isdigit() else None,
        database=database,
        username=username,
        password=password,
    )


def _run_init(args: argparse.Namespace, prompter: Prompter) -> GenerationReport:
    root: Path = Path(args.directory).resolve()
    name: str = args.name or prompter.text("Project name", default=root.name)
    database_url: str = args.database_url or _ask_database_url(prompter, name)
    pull: bool = args.pull or (
        not args.yes and prompter.confirm("Pull models from an existing database?", default=False)
    )
    install: bool = args.install or (
        not args.yes and prompter.confirm("Install Python dependencies now?", default=False)
    )
    generator: ProjectGenerator = ProjectGenerator(root, schema_path=args.schema)
    return generator.init_project(
        name,
        database_url=database_url,
        base_url=args.base_url,
        pull=pull,
        install=install,
    )


def _choose_names(
    args: argparse.Namespace,
    prompter: Prompter,
    available: Sequence[str],
    message: str,
    defaults: Sequence[str] = (),
) -> List[str]:
    if args.model:
        return list(args.model)
    if args.all:
        return list(available)
    return prompter.checkbox(message, available, defaults)


def _resolve_options(
    args: argparse.Namespace,
    prompter: Prompter,
    model: ModelDescriptor,
    manifest: Optional[ProjectManifest],
) -> GenerationOptions:
    previous: GenerationOptions = GenerationOptions(requires_auth=True)
    if manifest is not None:
        found = manifest.find_model(model.name)
        if found is not None:
            previous = found[1].options

    auth: bool = args.auth
    if auth is None:
        auth = prompter.confirm(
            f"Require authentication for {model.name}?", default=previous.requires_auth
        )
    uploads: bool = args.uploads
    if uploads is None:
        uploads = prompter.confirm(
            f"Enable file uploads for {model.name}?", default=previous.has_file_uploads
        )
    return GenerationOptions(requires_auth=auth, has_file_uploads=uploads)


def _run_generate(args: argparse.Namespace, prompter: Prompter) -> GenerationReport:
    generator: ProjectGenerator = ProjectGenerator(Path(args.directory), schema_path=args.schema)
    manifest: ProjectManifest = require_initialized(generator.layout)
    models: List[ModelDescriptor] = generator.load_schema_models()
    if not models:
        raise EmptySchemaError(generator.layout.schema_path)

    names: List[str] = _choose_names(
        args, prompter, [m.name for m in models], "Select models to generate"
    )
    selected: List[ModelDescriptor] = generator.select_models(models, names)
    options: Dict[str, GenerationOptions] = {
        m.name: _resolve_options(args, prompter, m, manifest) for m in selected
    }
    return generator.generate(selected, options, ValidationPolicy(args.validation_policy))


def _run_refresh(args: argparse.Namespace, prompter: Prompter) -> GenerationReport:
    generator: ProjectGenerator = ProjectGenerator(Path(args.directory), schema_path=args.schema)
    discovery: DiscoveryResult = generator.discover()
    if not discovery.models:
        logger.warning("No generated models to refresh.")
        for name in discovery.orphans:
            logger.warning("Orphaned model left untouched: %s", name)
        return generator.refresh([], ValidationPolicy(args.validation_policy), discovery=discovery)

    names: List[str] = _choose_names(
        args, prompter, discovery.names, "Select models to refresh", defaults=discovery.names
    )
    return generator.refresh(names, ValidationPolicy(args.validation_policy), discovery=discovery)


_HANDLERS = {
    "init": _run_init,
    "generate": _run_generate,
    "refresh": _run_refresh,
}


def _exit_code_for(report: GenerationReport) -> int:
    if report.success:
        return EXIT_SUCCESS
    if report.validation_errors:
        return EXIT_VALIDATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None, prompter: Optional[Prompter] = None) -> int:
    """
    Parse *argv*, run the command and return its exit code.

    *prompter* overrides how questions are answered; by default questions
    go to the terminal, or to scripted defaults with ``--yes``.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        logging.disable(logging.CRITICAL)
    _setup_logging(args.verbose)

    if prompter is None:
        prompter = StaticPrompter() if args.yes else RichPrompter()

    try:
        report: GenerationReport = _HANDLERS[args.command](args, prompter)
    except (SchemaNotFoundError, ModelNotFoundError, EmptySchemaError) as exc:
        logger.error("%s", exc)
        return EXIT_SCHEMA_ERROR
    except ProjectNotInitializedError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except ExternalCommandError as exc:
        logger.error("%s", exc)
        if exc.output:
            logger.error("%s", exc.output.strip())
        return EXIT_EXTERNAL_ERROR
    except CrudgenError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except OSError as exc:
        logger.error("File system error: %s: %s", type(exc).__name__, exc)
        return EXIT_EXPORT_ERROR
    except Exception as exc:
        logger.error(
            "Unexpected error: %s: %s", type(exc).__name__, exc, exc_info=args.verbose >= 2
        )
        return EXIT_GENERATION_ERROR

    print(report.summary())
    exit_code: int = _exit_code_for(report)
    if exit_code != EXIT_SUCCESS:
        logger.error("%s failed with exit code %d.", args.command, exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Entry point for ``python -m crudgen``: run and exit with the command's code."""
    sys.exit(run(argv))


def main() -> NoReturn:
    """Console-script entry point."""
    cli_main()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "run",
    "cli_main",
    "main",
    "EXIT_SUCCESS",
    "EXIT_SCHEMA_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_EXTERNAL_ERROR",
    "EXIT_VALIDATION_ERROR",
]

logger.debug("crudgen.cli loaded.")
