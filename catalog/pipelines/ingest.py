"""Persistence of imported rows.

Both helpers add the record and flush inside the caller's transaction, so
the new row is visible to later duplicate lookups in the same batch and any
uniqueness violation surfaces here rather than at commit.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from .normalization import NormalizedJournal, NormalizedPublication


async def create_publication(
    session: AsyncSession,
    row: NormalizedPublication,
    *,
    journal_id: int,
    department_id: int,
    user_id: int,
) -> models.Publication:
    """Insert a publication for a resolved row."""

    publication = models.Publication(
        title=row.title,
        authors=row.authors,
        journal_id=journal_id,
        department_id=department_id,
        user_id=user_id,
        publish_year=row.publish_year,
        volume=row.volume,
        issue=row.issue,
        pages=row.pages,
        doi=row.doi,
        pmid=row.pmid,
        wos_number=row.wos_number,
        document_type=row.document_type,
        journal_abbreviation=row.journal.abbreviation,
        address=row.address,
    )
    session.add(publication)
    await session.flush()
    return publication


async def create_journal(session: AsyncSession, row: NormalizedJournal) -> models.Journal:
    """Insert a journal reference row."""

    journal = models.Journal(
        name=row.name,
        abbreviation=row.abbreviation,
        issn=row.issn,
        impact_factor=row.impact_factor,
        quartile=row.quartile,
        category=row.category,
        publisher=row.publisher,
        year=row.year,
    )
    session.add(journal)
    await session.flush()
    return journal
