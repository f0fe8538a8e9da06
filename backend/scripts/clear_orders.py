import argparse
import asyncio
import logging
import os

from db.session import engine
from services.ingest.batch_loader import BatchLoader


async def _run() -> int:
    try:
        return await BatchLoader(engine).clear_all()
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Delete every stored order. Import history is kept.")
    parser.add_argument("--yes", action="store_true", help="Confirm the delete")
    args = parser.parse_args()

    if not args.yes:
        raise SystemExit("Refusing to delete all orders without --yes")

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    deleted = asyncio.run(_run())
    print(f"deleted={deleted}")


if __name__ == "__main__":
    main()
