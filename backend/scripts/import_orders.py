import argparse
import asyncio
import logging
import os
from pathlib import Path

from db.base import Base
from db.session import engine
from models import import_jobs, orders  # noqa: F401
from services.ingest.batch_loader import DuplicatePolicy
from services.ingest.importer import (
    IMPORT_BATCH_SIZE,
    ImportJobError,
    default_duplicate_policy,
    import_orders_file,
)
from services.ingest.record_assembler import SpreadsheetReadError


async def _run(args) -> int:
    path = Path(args.file)
    if not path.is_file():
        raise SystemExit(f"File not found: {path}")

    policy = DuplicatePolicy.SKIP if args.skip_duplicates else default_duplicate_policy()

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        result = await import_orders_file(
            engine,
            path.read_bytes(),
            path.name,
            clear_existing=args.clear,
            batch_size=args.batch_size,
            duplicate_policy=policy,
            file_path=str(path.resolve()),
        )
    except (SpreadsheetReadError, ImportJobError) as exc:
        print(f"Import failed: {exc}")
        return 1
    finally:
        await engine.dispose()

    print(f"import_id={result.import_id}")
    print(f"status={result.status}")
    print(f"total_rows={result.total_rows}")
    print(f"inserted={result.inserted}")
    print(f"skipped={result.skipped}")
    print(f"errors={result.errors}")
    print(f"duration={result.duration}s")
    return 0 if result.status != "failed" else 1


def main():
    parser = argparse.ArgumentParser(description="Import an order export (.xlsx/.xls/.csv) into the orders table.")
    parser.add_argument("--file", required=True, help="Path to the spreadsheet")
    parser.add_argument("--clear", action="store_true", help="Delete all existing orders first")
    parser.add_argument("--skip-duplicates", action="store_true", help="Skip rows whose order id already exists")
    parser.add_argument("--batch-size", type=int, default=IMPORT_BATCH_SIZE)
    args = parser.parse_args()

    if args.batch_size < 1:
        raise SystemExit("--batch-size must be a positive integer")

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
