# File: tablegen/cli.py
"""
TableGen - Command-Line Interface
==================================

Sub-commands::

    tablegen crud sys_user --dsn "sqlite:./app.db" --features list,add,edit
    tablegen backend sys_user sys_role -m sys -o ./server
    tablegen frontend sys_user -w ./web/src
    tablegen preview sys_user --template backend/handler
    tablegen tables
    tablegen history --table sys_user
    tablegen rollback gen_1718000000000000000 --yes
    tablegen delete-history gen_1718000000000000000
    tablegen serve --port 8080

Global options (``--config``, ``--dsn``, ``--driver``, ``-v``/``-q``) go
before the sub-command.

Exit codes:
    0 — success
    1 — input / configuration error
    2 — connection / introspection error
    3 — generation / render error
    4 — history error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, NoReturn, Optional, Sequence

import yaml

from tablegen import errors
from tablegen.config import GeneratorSettings, default_settings, load_settings
from tablegen.models import ColumnOverride, GenerationRequest, LayerMode

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_INPUT_ERROR: int = 1
EXIT_CONNECTION_ERROR: int = 2
EXIT_GENERATION_ERROR: int = 3
EXIT_HISTORY_ERROR: int = 4

# Checked in order, first isinstance match wins.
_EXIT_CODES: List[tuple] = [
    (errors.ConfigError, EXIT_INPUT_ERROR),
    (errors.UnknownFeatureError, EXIT_INPUT_ERROR),
    (errors.ConnectionError, EXIT_CONNECTION_ERROR),
    (errors.TableNotFoundError, EXIT_CONNECTION_ERROR),
    (errors.IntrospectionError, EXIT_CONNECTION_ERROR),
    (errors.TemplateNotFoundError, EXIT_GENERATION_ERROR),
    (errors.TemplateSyntaxError, EXIT_GENERATION_ERROR),
    (errors.RenderError, EXIT_GENERATION_ERROR),
    (errors.RecordNotFoundError, EXIT_HISTORY_ERROR),
    (errors.JournalCorruptError, EXIT_HISTORY_ERROR),
    (errors.JournalLockError, EXIT_HISTORY_ERROR),
    (errors.DriftDetectedError, EXIT_HISTORY_ERROR),
]


def exit_code_for(exc: BaseException) -> int:
    """Map a tablegen error to its process exit code."""
    for exc_type, code in _EXIT_CODES:
        if isinstance(exc, exc_type):
            return code
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root tablegen logger based on verbosity level.

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
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("tablegen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_generation_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by crud / backend / frontend / preview."""
    parser.add_argument(
        "tables",
        nargs="+",
        metavar="TABLE",
        help="Table name(s) to generate for.",
    )

    target = parser.add_argument_group("targets")
    target.add_argument("-m", "--module", default="sys", help="Module name (default: sys).")
    target.add_argument(
        "-o", "--output", default=None, metavar="DIR", help="Backend output root."
    )
    target.add_argument(
        "-w", "--web-output", default=None, metavar="DIR", help="Frontend output root."
    )
    target.add_argument("--package", default=None, help="Backend package name.")

    options = parser.add_argument_group("generation options")
    options.add_argument(
        "-f", "--features",
        default=None,
        metavar="LIST",
        help="Comma-separated features (list,add,edit,delete,view,export,import,batch-delete).",
    )
    options.add_argument(
        "--layer-mode",
        default=None,
        choices=[m.value for m in LayerMode],
        help="Backend layering; 'standard' adds a service module.",
    )
    options.add_argument(
        "--with-test",
        dest="with_test",
        action="store_true",
        default=None,
        help="Emit a backend test module.",
    )
    options.add_argument(
        "--no-test",
        dest="with_test",
        action="store_false",
        help="Skip the backend test module.",
    )
    options.add_argument(
        "--no-doc",
        dest="with_doc",
        action="store_false",
        default=None,
        help="Omit field descriptions from generated models.",
    )
    options.add_argument(
        "--overrides",
        default=None,
        metavar="PATH",
        help="YAML/JSON mapping of column name to field overrides.",
    )
    options.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Introspection deadline per table.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from tablegen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="tablegen",
        description=(
            "TableGen — CRUD scaffolding from live database tables.\n\n"
            "Reads a table's catalog metadata and renders backend handlers, "
            "frontend views and menu provisioning scripts."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"TableGen v{__version__}"
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        metavar="PATH",
        help="Settings file (YAML or JSON).",
    )

    db_group = parser.add_argument_group("data source")
    db_group.add_argument("--dsn", default=None, help="Connection string, optionally 'driver:'-prefixed.")
    db_group.add_argument(
        "--driver", default=None, choices=["mysql", "postgres", "sqlite"], help="Database driver."
    )

    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    for name, help_text in (
        ("crud", "Generate backend and frontend artifacts."),
        ("backend", "Generate backend artifacts only."),
        ("frontend", "Generate frontend artifacts only."),
    ):
        _add_generation_arguments(sub.add_parser(name, help=help_text))

    preview = sub.add_parser("preview", help="Render artifacts to stdout without writing.")
    _add_generation_arguments(preview)
    preview.add_argument(
        "--template",
        default=None,
        metavar="KEY",
        help="Only print the artifact rendered from this template key.",
    )

    sub.add_parser("tables", help="List tables in the data source.")

    history = sub.add_parser("history", help="List generation records.")
    history.add_argument("--table", default=None, help="Only records for this table.")

    rollback = sub.add_parser("rollback", help="Restore the files of one record.")
    rollback.add_argument("record_id", metavar="ID")
    rollback.add_argument(
        "-y", "--yes", action="store_true", default=False, help="Skip the confirmation prompt."
    )
    rollback.add_argument(
        "--check-drift",
        action="store_true",
        default=False,
        help="Refuse if any file was edited after generation.",
    )

    delete = sub.add_parser("delete-history", help="Delete one record, or all with --all.")
    delete.add_argument("record_id", nargs="?", metavar="ID")
    delete.add_argument("--all", action="store_true", default=False, help="Clear the journal.")

    serve = sub.add_parser("serve", help="Run the HTTP front end.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)

    return parser


# ---------------------------------------------------------------------------
# Request builder
# ---------------------------------------------------------------------------


def _split_features(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


def _load_overrides(path: Optional[str]) -> Dict[str, ColumnOverride]:
    if path is None:
        return {}
    source: Path = Path(path)
    try:
        data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise errors.ConfigError(f"Cannot read overrides {source}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise errors.ConfigError(f"Invalid overrides {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise errors.ConfigError(f"Overrides {source} must be a mapping of column names")
    try:
        return {str(k): ColumnOverride.model_validate(v or {}) for k, v in data.items()}
    except ValueError as exc:
        raise errors.ConfigError(f"Invalid overrides {source}: {exc}") from exc


def build_request(
    args: argparse.Namespace, settings: GeneratorSettings, table: str
) -> GenerationRequest:
    """
    Merge CLI flags over settings into a ``GenerationRequest``.

    Raises:
        ConfigError: Both backend and frontend are disabled, or the
            overrides file is unusable.
    """
    backend = settings.generator.backend
    frontend = settings.generator.frontend

    only_backend: bool = args.command == "backend"
    only_frontend: bool = args.command == "frontend"
    if args.command in ("crud", "preview"):
        if not backend.enabled and not frontend.enabled:
            raise errors.ConfigError("Both backend and frontend generation are disabled")
        only_backend = not frontend.enabled
        only_frontend = not backend.enabled

    features: Optional[List[str]] = _split_features(args.features)
    try:
        return GenerationRequest(
            table=table,
            module=args.module,
            output=args.output or backend.output,
            web_output=args.web_output or frontend.output,
            package=args.package if args.package is not None else backend.package,
            features=features if features is not None else settings.default_features,
            with_test=args.with_test if args.with_test is not None else backend.with_test,
            with_doc=args.with_doc if args.with_doc is not None else backend.with_doc,
            layer_mode=args.layer_mode or backend.layer_mode,
            preview=args.command == "preview",
            only_backend=only_backend,
            only_frontend=only_frontend,
            overrides=_load_overrides(args.overrides),
        )
    except ValueError as exc:
        raise errors.ConfigError(f"Invalid generation request: {exc}") from exc


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _make_generator(args: argparse.Namespace, settings: GeneratorSettings):
    from tablegen.generator import CodeGenerator, connection_for

    return CodeGenerator.from_settings(
        settings, connection_for(settings, args.dsn, args.driver)
    )


def _cmd_generate(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    from tablegen.generator import GenerationReport

    request: GenerationRequest = build_request(args, settings, args.tables[0])
    with _make_generator(args, settings) as generator:
        report: GenerationReport = generator.generate_batch(
            args.tables, request, timeout=args.timeout
        )
    print(report.summary())
    return EXIT_SUCCESS if report.success else EXIT_CONNECTION_ERROR


def _cmd_preview(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    with _make_generator(args, settings) as generator:
        for table in args.tables:
            request: GenerationRequest = build_request(args, settings, table)
            artifacts = generator.preview(
                request, timeout=args.timeout, strict_overrides=len(args.tables) == 1
            )
            for artifact in artifacts:
                if args.template and artifact.template_key != args.template.strip("/"):
                    continue
                print(f"──── {artifact.path} ({artifact.template_key})")
                print(artifact.content)
    return EXIT_SUCCESS


def _cmd_tables(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    with _make_generator(args, settings) as generator:
        tables = generator.introspector.list_tables()
    width: int = max((len(t.name) for t in tables), default=0)
    for table in tables:
        print(f"  {table.name:<{width}}  {table.comment}".rstrip())
    return EXIT_SUCCESS


def _cmd_history(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    from tablegen.history import HistoryJournal

    journal = HistoryJournal(settings.history_dir)
    records = journal.records_for_table(args.table) if args.table else journal.list()
    if not records:
        print("No generation records.")
        return EXIT_SUCCESS
    for record in records:
        print(
            f"  {record.id}  {record.generated_at:%Y-%m-%d %H:%M:%S}  "
            f"{record.module}/{record.table}  {record.file_count} files"
        )
    return EXIT_SUCCESS


def _confirm(prompt: str) -> bool:
    try:
        answer: str = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _cmd_rollback(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    from tablegen.history import HistoryJournal

    journal = HistoryJournal(settings.history_dir)
    record = journal.get(args.record_id)
    if not args.yes:
        print(f"Rollback {record.id} will overwrite {record.file_count} file(s):")
        for f in record.files:
            print(f"    {f.path}")
        if not _confirm("Continue?"):
            print("Aborted.")
            return EXIT_SUCCESS
    restored: List[str] = journal.rollback(record.id, check_drift=args.check_drift)
    print(f"  ✓ Restored {len(restored)} file(s) from {record.id}")
    return EXIT_SUCCESS


def _cmd_delete_history(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    from tablegen.history import HistoryJournal

    journal = HistoryJournal(settings.history_dir)
    if args.all:
        print(f"  ✓ Cleared {journal.clear()} record(s)")
        return EXIT_SUCCESS
    if not args.record_id:
        raise errors.ConfigError("delete-history needs a record id or --all")
    journal.delete(args.record_id)
    print(f"  ✓ Deleted {args.record_id}")
    return EXIT_SUCCESS


def _cmd_serve(args: argparse.Namespace, settings: GeneratorSettings) -> int:
    import uvicorn

    from tablegen.web import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return EXIT_SUCCESS


_COMMANDS: Dict[str, Callable[[argparse.Namespace, GeneratorSettings], int]] = {
    "crud": _cmd_generate,
    "backend": _cmd_generate,
    "frontend": _cmd_generate,
    "preview": _cmd_preview,
    "tables": _cmd_tables,
    "history": _cmd_history,
    "rollback": _cmd_rollback,
    "delete-history": _cmd_delete_history,
    "serve": _cmd_serve,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv*, run one command and return its exit code."""
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
        logging.disable(logging.NOTSET)
    _setup_logging(verbosity)

    try:
        settings: GeneratorSettings = (
            load_settings(args.config) if args.config else default_settings()
        )
        if args.dsn is not None:
            settings.database.dsn = args.dsn
        return _COMMANDS[args.command](args, settings)
    except errors.TablegenError as exc:
        logger.error("%s", exc)
        print(f"  ✗ {exc}", file=sys.stderr)
        return exit_code_for(exc)
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return EXIT_INPUT_ERROR


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    sys.exit(run(argv))


logger.debug("tablegen.cli module loaded.")
