import asyncio
import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy import func, insert, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from db.retry import run_in_transaction
from models.import_jobs import JOB_FAILED, JOB_PARTIAL, JOB_RUNNING, JOB_SUCCESS, ImportJob
from services.ingest.batch_loader import BatchLoader, DuplicatePolicy, LoadResult
from services.ingest.record_assembler import SpreadsheetReadError, assemble_records, read_spreadsheet

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


IMPORT_BATCH_SIZE = int(os.getenv("IMPORT_BATCH_SIZE", "5000"))
IMPORT_INDEX_SUSPEND_THRESHOLD = int(os.getenv("IMPORT_INDEX_SUSPEND_THRESHOLD", "10000"))
IMPORT_SKIP_DUPLICATES = _env_flag("IMPORT_SKIP_DUPLICATES")
IMPORT_UPLOAD_DIR = os.getenv("IMPORT_UPLOAD_DIR", "").strip() or None


class ImportJobError(RuntimeError):
    """A whole import failed; the job row is already marked failed."""

    def __init__(self, job_id: int | None, message: str):
        super().__init__(message)
        self.job_id = job_id


@dataclass
class ImportResult:
    total_rows: int
    inserted: int
    skipped: int
    errors: int
    status: str
    import_id: int | None
    duration: float

    def to_dict(self) -> dict:
        return {
            "totalRows": self.total_rows,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "errors": self.errors,
            "status": self.status,
            "importId": self.import_id,
            "duration": self.duration,
        }


def job_status(load: LoadResult) -> str:
    if load.errors == 0:
        return JOB_SUCCESS
    if load.inserted + load.skipped > 0:
        return JOB_PARTIAL
    return JOB_FAILED


def default_duplicate_policy() -> DuplicatePolicy:
    return DuplicatePolicy.SKIP if IMPORT_SKIP_DUPLICATES else DuplicatePolicy.ALLOW


def store_upload(content: bytes, filename: str, upload_dir: str | None = IMPORT_UPLOAD_DIR) -> str | None:
    """Keep a copy of an uploaded file next to the job record. No-op unless configured."""
    if not upload_dir:
        return None
    target_dir = Path(upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    safe_name = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(filename or "upload").name)
    target = target_dir / f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{safe_name}"
    target.write_bytes(content)
    return str(target)


async def create_job(engine: AsyncEngine, file_name: str, file_path: str | None = None) -> int:
    async def _work(conn: AsyncConnection) -> int:
        result = await conn.execute(
            insert(ImportJob).values(file_name=file_name, file_path=file_path, status=JOB_RUNNING)
        )
        return result.inserted_primary_key[0]

    return await run_in_transaction(engine, _work, label="create import job")


async def finish_job(engine: AsyncEngine, job_id: int, **values) -> None:
    async def _work(conn: AsyncConnection) -> None:
        await conn.execute(
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .values(completed_at=func.now(), **values)
        )

    await run_in_transaction(engine, _work, label="finish import job")


async def _fail_job(engine: AsyncEngine, job_id: int, total_rows: int, message: str) -> None:
    try:
        await finish_job(
            engine,
            job_id,
            status=JOB_FAILED,
            total_rows=total_rows,
            inserted_rows=0,
            skipped_rows=0,
            error_rows=total_rows,
            error_message=message,
        )
    except Exception:
        logger.exception("Could not mark import job %s as failed", job_id)


async def import_orders_file(
    engine: AsyncEngine,
    content: bytes,
    filename: str,
    *,
    clear_existing: bool = False,
    batch_size: int | None = None,
    duplicate_policy: DuplicatePolicy | None = None,
    file_path: str | None = None,
) -> ImportResult:
    """
    Read a spreadsheet, assemble canonical order records and load them.

    One import_jobs row tracks the run: created as running, then updated once
    with the final counts. SpreadsheetReadError is re-raised as-is after the
    job is marked failed; any other job-level failure becomes ImportJobError.
    """
    started = time.perf_counter()
    job_id = await create_job(engine, filename, file_path)
    logger.info("Import job %s started for %s", job_id, filename)

    total_rows = 0
    try:
        rows = await asyncio.to_thread(read_spreadsheet, content, filename)
        total_rows = len(rows)
        records = await asyncio.to_thread(assemble_records, rows)

        loader = BatchLoader(
            engine,
            batch_size=batch_size or IMPORT_BATCH_SIZE,
            duplicate_policy=duplicate_policy or default_duplicate_policy(),
            index_suspend_threshold=IMPORT_INDEX_SUSPEND_THRESHOLD,
        )
        load = await loader.load(records, clear_existing=clear_existing)
    except SpreadsheetReadError as exc:
        logger.warning("Import job %s rejected %s: %s", job_id, filename, exc)
        await _fail_job(engine, job_id, total_rows, str(exc))
        raise
    except Exception as exc:
        logger.exception("Import job %s failed", job_id)
        await _fail_job(engine, job_id, total_rows, str(exc))
        raise ImportJobError(job_id, f"Import failed: {exc}") from exc

    status = job_status(load)
    error_message = None
    if load.errors:
        error_message = f"{load.errors} of {total_rows} rows failed to insert"

    await finish_job(
        engine,
        job_id,
        status=status,
        total_rows=total_rows,
        inserted_rows=load.inserted,
        skipped_rows=load.skipped,
        error_rows=load.errors,
        error_message=error_message,
    )

    duration = round(time.perf_counter() - started, 2)
    logger.info(
        "Import job %s %s: total=%s inserted=%s skipped=%s errors=%s in %.2fs",
        job_id,
        status,
        total_rows,
        load.inserted,
        load.skipped,
        load.errors,
        duration,
    )
    return ImportResult(
        total_rows=total_rows,
        inserted=load.inserted,
        skipped=load.skipped,
        errors=load.errors,
        status=status,
        import_id=job_id,
        duration=duration,
    )
