"""FastAPI app with health and bulk import endpoints.

Authentication happens upstream; the gateway forwards the resolved identity
in ``X-User-*`` headers, which are trusted here as-is.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .db import get_session
from .logging_config import setup_logging
from .pipelines.importer import ActingIdentity
from .pipelines.outcomes import CatalogUnavailableError, ImportRejectedError, ScopeViolationError
from .pipelines.processing import cleanup_file, import_journal_file, import_publication_file
from .pipelines.report import ImportSummary
from .row_source import ParseError

logger = logging.getLogger(__name__)


# Pydantic response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class SummaryCounts(BaseModel):
    """Row counts of one import."""
    total: int
    success: int
    failed: int
    duplicates: int


class ImportErrorDTO(BaseModel):
    """One rejected row."""
    row: int | None = None
    data: dict[str, Any]
    error: str


class ImportResultDTO(BaseModel):
    """Import summary as returned to the client."""
    summary: SummaryCounts
    errors: list[ImportErrorDTO] = Field(default_factory=list)
    hasMoreErrors: bool


class ImportResponse(BaseModel):
    """Import endpoint response."""
    message: str
    result: ImportResultDTO


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


def to_result_dto(summary: ImportSummary) -> ImportResultDTO:
    return ImportResultDTO.model_validate(summary.as_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    Path(settings.uploads.directory).mkdir(parents=True, exist_ok=True)
    logger.info("Application starting up")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title="Publication Catalog",
    version=settings.version,
    description="Bulk import of publication and journal spreadsheets",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],  # Frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ParseError)
async def parse_error_handler(request, exc: ParseError):
    """Handle unreadable upload files."""
    logger.error(f"Parse error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="parse_error", detail=str(exc)).model_dump(),
    )


@app.exception_handler(ImportRejectedError)
async def import_rejected_handler(request, exc: ImportRejectedError):
    """Handle batches refused before any row was imported."""
    logger.warning(f"Import rejected: {exc}")
    if isinstance(exc, ScopeViolationError):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=ErrorResponse(error="forbidden", detail=str(exc)).model_dump(),
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="import_rejected", detail=str(exc)).model_dump(),
    )


@app.exception_handler(CatalogUnavailableError)
async def catalog_unavailable_handler(request, exc: CatalogUnavailableError):
    """Handle batches aborted because the store failed."""
    logger.error(f"Import aborted: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(error="import_failed", detail=str(exc)).model_dump(),
    )


async def get_identity(
    x_user_id: int = Header(..., description="Authenticated user id"),
    x_user_role: str = Header(default="user"),
    x_user_department: int | None = Header(default=None),
) -> ActingIdentity:
    """Acting identity forwarded by the auth layer."""
    return ActingIdentity(user_id=x_user_id, role=x_user_role, department_id=x_user_department)


async def store_upload(file: UploadFile) -> Path:
    """Validate an upload and write it under a unique name in the upload directory.

    Raises:
        HTTPException: For a missing name, wrong extension or oversized file
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )

    original = Path(file.filename)
    ext = original.suffix.lower()
    if ext not in settings.uploads.allowed_extensions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type. Allowed: {', '.join(settings.uploads.allowed_extensions)}",
        )

    content = await file.read()
    if len(content) > settings.uploads.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.uploads.max_file_size} bytes",
        )

    upload_dir = Path(settings.uploads.directory)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{original.stem}_{uuid.uuid4().hex}{ext}"
    try:
        path.write_bytes(content)
    except OSError:
        cleanup_file(path)
        raise
    logger.info(f"Stored upload {file.filename} as {path.name} ({len(content)} bytes)")
    return path


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.post(
    "/publications/import",
    response_model=ImportResponse,
    status_code=status.HTTP_200_OK,
)
async def import_publications_endpoint(
    file: UploadFile = File(..., description="Publication sheet (CSV or Excel)"),
    department_id: int | None = Form(default=None),
    identity: ActingIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Bulk import publications from a spreadsheet.

    Rows that fail validation, resolution or duplicate checks are reported in
    the result; the rest are committed together.
    """
    try:
        path = await store_upload(file)
    finally:
        await file.close()

    summary = await import_publication_file(
        session,
        path,
        identity=identity,
        department_id=department_id,
    )
    return ImportResponse(message="Publication import finished", result=to_result_dto(summary))


@app.post(
    "/journals/import",
    response_model=ImportResponse,
    status_code=status.HTTP_200_OK,
)
async def import_journals_endpoint(
    file: UploadFile = File(..., description="Journal sheet (CSV or Excel)"),
    identity: ActingIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Bulk import journal reference data from a spreadsheet."""
    try:
        path = await store_upload(file)
    finally:
        await file.close()

    logger.info(f"User {identity.user_id} importing journals")
    summary = await import_journal_file(session, path)
    return ImportResponse(message="Journal import finished", result=to_result_dto(summary))


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "import_publications": "/publications/import",
            "import_journals": "/journals/import",
            "docs": "/docs",
        },
    }
