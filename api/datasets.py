"""
Datasets API routes for the repository analytics backend.

Repository exports are uploaded as one or more CSV files and held in
memory for the current session. Nothing is written to disk.
"""

from typing import List

from fastapi import APIRouter, File, HTTPException, UploadFile

from .session import active_optimizations, session_store
from .shared.errors import CSVFormatError
from .shared.ingest import parse_csv_files
from .shared.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _read_text(upload: UploadFile) -> str:
    content = await upload.read()
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(
            status_code=400,
            detail=f"File '{upload.filename}' is not valid UTF-8 text",
        ) from e


@router.post("/datasets/upload")
async def upload_datasets(files: List[UploadFile] = File(...)):
    """Ingest uploaded CSV exports, replacing the current session data.

    Files that fail to parse are reported individually; the upload fails
    only if no file could be ingested.
    """
    payload = [(upload.filename or "", await _read_text(upload)) for upload in files]

    try:
        report = parse_csv_files(payload)
    except CSVFormatError as e:
        logger.info("Rejected upload: %s", e)
        raise HTTPException(status_code=400, detail=str(e)) from e

    for progress in report.files:
        if progress.error:
            logger.warning("Skipped upload %s: %s", progress.name, progress.error)

    session_store.load(report)
    return {
        "success": True,
        **report.to_dict(),
        "optimizations": active_optimizations(len(report.records)),
    }


@router.get("/datasets")
async def get_dataset_info():
    """Describe the data currently loaded in the session."""
    return session_store.describe()


@router.delete("/datasets")
async def clear_datasets():
    """Clear the session data and reset every panel."""
    session_store.clear()
    return {"success": True, "message": "Data cleared"}
