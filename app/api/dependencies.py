"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "text/plain",
}

MAX_FILES_PER_IMPORT = 3


def _is_csv(file: UploadFile) -> bool:
    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()
    return filename.endswith((".csv", ".txt")) or content_type in CSV_CONTENT_TYPES


def get_csv_uploads(files: list[UploadFile] = File(...)) -> list[UploadFile]:
    """
    Validate an import upload: one to three CSV files (primary plus the
    optional diffuse and direct-normal files).
    """

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one CSV file is required.",
        )
    if len(files) > MAX_FILES_PER_IMPORT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_FILES_PER_IMPORT} files can be imported together.",
        )

    rejected = [file.filename or "<unnamed>" for file in files if not _is_csv(file)]
    if rejected:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only CSV files are allowed: {', '.join(rejected)}.",
        )

    return files
