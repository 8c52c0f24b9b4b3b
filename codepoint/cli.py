"""CLI entrypoint for the Code-Point Open postcode importer and lookup API."""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path

from codepoint.common.config_loader import Settings, load_settings
from codepoint.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from codepoint.common.errors import ExtractionError, PipelineError, UpstreamError
from codepoint.common.http import HttpClient
from codepoint.common.ids import generate_run_id
from codepoint.common.logging import build_logger, log_event
from codepoint.importer.ingest import ingest_csv_file
from codepoint.importer.orchestrator import STATUS_ALREADY_IMPORTED, run_import
from codepoint.importer.tasks import ThreadPoolTaskQueue
from codepoint.store.db import build_engine, build_session_factory, create_schema


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument(
        "--use-previous",
        action="store_true",
        help="Skip downloading new postcode data and use the previously stored archive",
    )
    parser.add_argument("--force", action="store_true", help="Import even if this archive was imported before")
    parser.add_argument("--file", default=None, help="CSV filename to ingest (ingest command)")
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", default=8000, type=int)
    return parser.parse_args(argv)


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def _import(args: argparse.Namespace, settings: Settings, logger: logging.Logger) -> int:
    session_factory = build_session_factory(build_engine(settings.database_url))
    handler = partial(
        ingest_csv_file,
        csv_dir=settings.storage.csv_dir,
        session_factory=session_factory,
        batch_size=settings.batch_size,
        logger=logger,
    )

    with HttpClient() as http_client, ThreadPoolTaskQueue(
        handler, max_workers=settings.workers, logger=logger
    ) as queue:
        try:
            result = run_import(
                settings,
                http_client=http_client,
                session_factory=session_factory,
                queue=queue,
                use_previous=args.use_previous,
                force=args.force,
                logger=logger,
            )
        except UpstreamError as exc:
            print(str(exc))
            return EXIT_HARD_FAIL
        except ExtractionError as exc:
            print(str(exc))
            return EXIT_HARD_FAIL

        if result.status == STATUS_ALREADY_IMPORTED:
            print("This data has already been imported")
            return EXIT_SUCCESS

        print(f"{result.extracted} CSV {_plural(result.extracted, 'file')} extracted")
        if result.extracted == 0:
            return EXIT_PARTIAL

    if queue.failures:
        print(f"{len(queue.failures)} CSV {_plural(len(queue.failures), 'file')} failed to import")
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def _ingest(args: argparse.Namespace, settings: Settings, logger: logging.Logger) -> int:
    if not args.file:
        print("--file is required for the ingest command")
        return EXIT_HARD_FAIL
    session_factory = build_session_factory(build_engine(settings.database_url))
    stats = ingest_csv_file(
        args.file,
        csv_dir=settings.storage.csv_dir,
        session_factory=session_factory,
        batch_size=settings.batch_size,
        logger=logger,
    )
    print(f"{stats.filename}: {stats.inserted} inserted, {stats.updated} updated, {stats.invalid} skipped")
    return EXIT_SUCCESS


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from codepoint.api.app import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    settings = load_settings(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    logger = build_logger(run_id, log_dir=settings.storage.log_dir, level=args.log_level)

    log_event(logger, "command start", run_id=run_id, stage=args.command, event="COMMAND_START", status="ok")
    try:
        if args.command == "init-db":
            create_schema(build_engine(settings.database_url))
            print("Database schema created")
            exit_code = EXIT_SUCCESS
        elif args.command == "import":
            exit_code = _import(args, settings, logger)
        elif args.command == "ingest":
            exit_code = _ingest(args, settings, logger)
        elif args.command == "serve":
            exit_code = _serve(args, settings)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    except PipelineError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            stage=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        print(str(exc))
        return EXIT_HARD_FAIL

    log_event(logger, "command end", run_id=run_id, stage=args.command, event="COMMAND_END", status="ok")
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
