"""File-level import orchestration.

Combines the row source, the batch importer and the report builder, and owns
the uploaded file: it is deleted when the call ends, whether the import
succeeded, was rejected or failed.
"""
from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from catalog.columns import JOURNAL_COLUMNS, PUBLICATION_COLUMNS
from catalog.pipelines.importer import ActingIdentity, import_journals, import_publications
from catalog.pipelines.outcomes import ImportRejectedError
from catalog.pipelines.report import ImportSummary
from catalog.row_source import read_rows

logger = logging.getLogger(__name__)


def cleanup_file(path: str | Path) -> None:
    """Remove an uploaded file; a failed removal is logged, not raised."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"Failed to clean up uploaded file {path}: {e}")


async def import_publication_file(
    session: AsyncSession,
    path: str | Path,
    *,
    identity: ActingIdentity,
    department_id: int | None = None,
) -> ImportSummary:
    """Import a publication spreadsheet.

    Args:
        session: Database session
        path: Uploaded CSV/Excel file; removed before returning
        identity: Acting user and scope
        department_id: Batch-level department override

    Returns:
        ImportSummary for the file

    Raises:
        ParseError: If the file cannot be read
        ImportRejectedError: If the file has no usable rows or the batch is refused
        CatalogUnavailableError: If the catalog store failed
    """
    try:
        logger.info(f"Importing publications from {Path(path).name}")
        source = read_rows(path, PUBLICATION_COLUMNS)
        if not source.data:
            raise ImportRejectedError("The file contains no valid publication rows")

        return await import_publications(
            session,
            source.data,
            identity=identity,
            department_id=department_id,
            source=source,
        )
    finally:
        cleanup_file(path)


async def import_journal_file(session: AsyncSession, path: str | Path) -> ImportSummary:
    """Import a journal reference spreadsheet; the file is removed before returning."""
    try:
        logger.info(f"Importing journals from {Path(path).name}")
        source = read_rows(path, JOURNAL_COLUMNS)
        if not source.data:
            raise ImportRejectedError("The file contains no valid journal rows")

        return await import_journals(session, source.data, source=source)
    finally:
        cleanup_file(path)
