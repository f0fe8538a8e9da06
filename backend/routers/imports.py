# routers/imports.py

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from db.deps import get_db, get_engine
from services.ingest.batch_loader import DuplicatePolicy
from services.ingest.importer import (
    ImportJobError,
    default_duplicate_policy,
    import_orders_file,
    store_upload,
)
from services.ingest.record_assembler import SpreadsheetReadError
from services.orders_repository import get_import_job, list_import_jobs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import", tags=["import"])


class ImportSummary(BaseModel):
    totalRows: int
    inserted: int
    skipped: int
    errors: int
    status: str
    importId: int | None = None
    duration: float


class ImportResponse(BaseModel):
    success: bool
    message: str
    data: ImportSummary


# ==================================================
# UPLOAD (CSV/XLS/XLSX)
# ==================================================
@router.post("/excel", response_model=ImportResponse)
async def import_excel(
    file: UploadFile = File(...),
    clear_existing: bool = Form(False),
    skip_duplicates: bool | None = Form(None),
    batch_size: int | None = Form(None),
    engine: AsyncEngine = Depends(get_engine),
):
    if batch_size is not None and batch_size < 1:
        raise HTTPException(status_code=400, detail="batch_size must be a positive integer.")

    contents = await file.read()
    if skip_duplicates is None:
        policy = default_duplicate_policy()
    else:
        policy = DuplicatePolicy.SKIP if skip_duplicates else DuplicatePolicy.ALLOW

    try:
        file_path = store_upload(contents, file.filename or "upload")
        result = await import_orders_file(
            engine,
            contents,
            file.filename or "upload",
            clear_existing=clear_existing,
            batch_size=batch_size,
            duplicate_policy=policy,
            file_path=file_path,
        )
    except SpreadsheetReadError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ImportJobError as exc:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc), "importId": exc.job_id},
        )

    logger.info("UPLOAD: file=%s status=%s", file.filename, result.status)
    return {
        "success": result.status != "failed",
        "message": f"Imported {result.inserted} of {result.total_rows} rows",
        "data": result.to_dict(),
    }


# ==================================================
# HISTORY
# ==================================================
@router.get("/history")
async def import_history(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await list_import_jobs(db, limit=limit, offset=offset)
    return {
        "success": True,
        "data": items,
        "pagination": {"total": total, "limit": limit, "offset": offset},
    }


@router.get("/history/{job_id}")
async def import_history_detail(job_id: int, db: AsyncSession = Depends(get_db)):
    job = await get_import_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Import job not found")
    return {"success": True, "data": job}
