"""
Beatmap importer CLI - thin entrypoint for operator commands.

Commands:
- run: watch the downloads folder (optionally serving the control API)
- import: one-shot import of the given archives
- check-config: validate the configuration file

The CLI is a dispatcher only. Import logic lives in the pipeline; errors are
surfaced verbatim.

Exit Codes:
===========
- 0: Success
- 1: Validation error
- 2: Execution error
- 3: Partial completion
- 4: System error (file not found, permissions, etc.)
"""

import argparse
import sys
import threading
from pathlib import Path
from typing import List, NoReturn, Optional

from .config.errors import ConfigError
from .config.settings import ImporterConfig, default_config_path, load_config, load_startup_config
from .observability.logs import configure_logging
from .persistence.errors import PersistenceError
from .pipeline.engine import IngestionPipeline
from .pipeline.errors import CommandRejected
from .pipeline.models import ImportStatus

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_EXECUTION = 2
EXIT_PARTIAL = 3
EXIT_SYSTEM = 4

SUCCESS_STATES = frozenset({ImportStatus.COMPLETED, ImportStatus.DUPLICATE})


def _load_startup(config_path: Path) -> ImporterConfig:
    """Load config for a session or exit 1."""
    try:
        config, warning = load_startup_config(config_path)
    except ConfigError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)
    if warning:
        print(f"WARNING: {warning}. Automatic import and deletion are disabled.", file=sys.stderr)
    return config


def _build_pipeline(config: ImporterConfig) -> IngestionPipeline:
    try:
        return IngestionPipeline(config)
    except (OSError, PersistenceError) as e:
        print(f"FATAL: Cannot open importer state: {e}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)


def cmd_check_config(args: argparse.Namespace) -> NoReturn:
    """
    Validate the configuration file.

    Exit codes:
        0: Configuration is valid and the folders do not overlap
        1: Invalid configuration or overlapping folders
    """
    config_path = Path(args.config)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)

    print(f"Config: {config_path}{'' if config_path.is_file() else ' (not found, using defaults)'}")
    print(f"  Downloads: {config.downloads_dir}")
    print(f"  Library:   {config.library_dir}")
    print(f"  Data:      {config.resolved_data_dir}")

    conflict = config.folder_conflict()
    if conflict is not None:
        print(f"✗ {conflict}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)

    print("✓ Configuration is valid")
    sys.exit(EXIT_OK)


def cmd_import(args: argparse.Namespace) -> NoReturn:
    """
    Import the given archives once and print a summary.

    Exit codes:
        0: Every archive completed or was already imported
        1: Invalid configuration
        2: Every archive failed
        3: Some archives failed
        4: Archive not found, or state directory unusable
    """
    files = [Path(f).resolve() for f in args.files]
    missing = [f for f in files if not f.is_file()]
    if missing:
        for f in missing:
            print(f"ERROR: File not found: {f}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)

    config = _load_startup(Path(args.config))
    configure_logging(config.logs_dir, level=args.log_level)

    pipeline = _build_pipeline(config)
    pipeline.set_auto_import(False)
    pipeline.start(watch=False)
    try:
        items = [pipeline.enqueue(f) for f in files]
        pipeline.wait_idle()
        if config.folder_conflict() is None:
            pipeline.trigger_import_now()
            pipeline.wait_idle()
        results = [pipeline.get_item(item.id) for item in items]
    finally:
        pipeline.stop()

    succeeded = 0
    for item in results:
        if item.status in SUCCESS_STATES:
            succeeded += 1
            print(f"✓ {item.source_name}: {item.status.value} -> {item.destination}")
        elif item.status == ImportStatus.FAILED:
            print(f"✗ {item.source_name}: {item.error_summary} ({item.error_detail})", file=sys.stderr)
        else:
            print(f"✗ {item.source_name}: not imported ({item.message})", file=sys.stderr)

    print(f"{succeeded}/{len(results)} archive(s) imported or already present")
    if succeeded == len(results):
        sys.exit(EXIT_OK)
    if succeeded == 0:
        sys.exit(EXIT_EXECUTION)
    sys.exit(EXIT_PARTIAL)


def cmd_run(args: argparse.Namespace) -> NoReturn:
    """
    Watch the downloads folder until interrupted.

    Exit codes:
        0: Shutdown via Ctrl-C (normal)
        1: Invalid configuration
        4: State directory unusable
    """
    config = _load_startup(Path(args.config))
    configure_logging(config.logs_dir, level=args.log_level)

    pipeline = _build_pipeline(config)
    pipeline.start()
    if pipeline.watch_error:
        print(f"WARNING: {pipeline.watch_error}. Add archives manually.", file=sys.stderr)

    try:
        if args.serve:
            import uvicorn

            from .main import create_app

            print(f"Serving control API on http://{args.host}:{args.port}")
            uvicorn.run(create_app(pipeline), host=args.host, port=args.port)
        else:
            print(f"Watching {config.downloads_dir} (Ctrl-C to stop)")
            threading.Event().wait()
    except KeyboardInterrupt:
        print("\nImporter stopped by user.", file=sys.stderr)
    finally:
        pipeline.stop()
    sys.exit(EXIT_OK)


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="beatmap-importer",
        description="Watch a downloads folder and import beatmap archives into a library",
    )
    parser.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to config JSON (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    parser_run = subparsers.add_parser("run", help="Watch the downloads folder")
    parser_run.add_argument("--serve", action="store_true", help="Also serve the control API")
    parser_run.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    parser_run.add_argument("--port", type=int, default=8086, help="Bind port (default: 8086)")
    parser_run.set_defaults(func=cmd_run)

    parser_import = subparsers.add_parser("import", help="Import archives once and exit")
    parser_import.add_argument("files", nargs="+", help="Archive files (.osz)")
    parser_import.set_defaults(func=cmd_import)

    parser_check = subparsers.add_parser("check-config", help="Validate the configuration file")
    parser_check.set_defaults(func=cmd_check_config)

    args = parser.parse_args(argv)
    try:
        args.func(args)
    except CommandRejected as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_EXECUTION)


if __name__ == "__main__":
    main()
