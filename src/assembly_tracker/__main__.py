"""
Main entrypoint.

Usage:
    python -m assembly_tracker init-db                  # create tables, run migrations
    python -m assembly_tracker ingest dump.json ...     # load property dumps
    python -m assembly_tracker stats PROJECT [--model MODEL]
    python -m assembly_tracker serve                    # starts API under uvicorn
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from assembly_tracker.config import get_settings

logger = logging.getLogger(__name__)


def _init_db() -> None:
    from assembly_tracker.db.engine import get_engine

    get_engine()
    logger.info("Database ready at %s", get_settings().database_url)


def _ingest(paths) -> None:
    from assembly_tracker.scripts.ingest import ingest_files

    total = asyncio.run(ingest_files(paths))
    logger.info("Done: %d parts", total)


def _stats(project_id: str, model_id=None) -> None:
    from assembly_tracker.db.engine import get_engine
    from assembly_tracker.services.statistics import StatisticsScope, get_statistics

    stats = get_statistics(get_engine(), StatisticsScope(project_id=project_id, model_id=model_id))
    print(json.dumps(stats.as_dict(), indent=2))


def _serve() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("assembly_tracker.api.main:app", host=settings.api_host, port=settings.api_port)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="assembly_tracker")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("init-db", help="create tables and run migrations")
    ingest = commands.add_parser("ingest", help="load viewer property dumps")
    ingest.add_argument("paths", nargs="+", type=Path)
    stats = commands.add_parser("stats", help="print status counts for a project")
    stats.add_argument("project_id")
    stats.add_argument("--model", dest="model_id", default=None)
    commands.add_parser("serve", help="run the HTTP API")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "init-db":
        _init_db()
    elif args.command == "ingest":
        _ingest(args.paths)
    elif args.command == "stats":
        _stats(args.project_id, args.model_id)
    elif args.command == "serve":
        _serve()
    return 0


if __name__ == "__main__":
    sys.exit(main())
