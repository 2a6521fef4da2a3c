"""
Ingest script: load a recorded property dump into the store.

Usage:
    python -m assembly_tracker.scripts.ingest dump.json [dump2.json ...]

Each file is one model's batch (see services.ingest for the format).
Re-running on the same dump is a no-op apart from the unchanged count.
"""
import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def load_dump(path: Path):
    from assembly_tracker.services.ingest import PropertyDump

    return PropertyDump.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))


async def ingest_files(paths: List[Path], engine=None) -> int:
    """Ingest every dump in order. Returns the number of parts touched."""
    from assembly_tracker.config import get_settings
    from assembly_tracker.db.engine import get_engine
    from assembly_tracker.services.ingest import ingest_dump
    from assembly_tracker.services.sync_service import PartSyncService

    service = PartSyncService(engine if engine is not None else get_engine())
    max_depth = get_settings().flatten_max_depth
    total = 0
    for path in paths:
        dump = load_dump(path)
        result = await ingest_dump(service, dump, max_depth=max_depth)
        logger.info(
            "%s: %d new, %d updated, %d unchanged (%d without GUID)",
            path,
            result.sync.created,
            result.sync.updated,
            result.sync.unchanged,
            result.synthetic,
        )
        total += result.sync.total
    return total


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Ingest viewer property dumps")
    parser.add_argument("paths", nargs="+", type=Path, help="JSON dump files")
    args = parser.parse_args()
    asyncio.run(ingest_files(args.paths))
