"""Department resolution for publication rows.

An explicit department id (the batch-level override) always wins over a
department name found in the row. Names are matched exactly, case-insensitive
and trimmed, then the department code is tried the same way. Department names
are a small closed set, so no fuzzy matching: a miss is a data-entry error to
surface.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog import models
from catalog.pipelines.normalization import DepartmentReference, clean_value, fold_term
from catalog.pipelines.outcomes import Unresolved

logger = logging.getLogger(__name__)


class DepartmentResolver:
    """Resolves department references, caching lookups for one batch."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._by_id: dict[int, models.Department | None] = {}

    async def get(self, department_id: int) -> models.Department | None:
        if department_id not in self._by_id:
            self._by_id[department_id] = await self.session.get(models.Department, department_id)
        return self._by_id[department_id]

    async def _match(self, column, term: str) -> list[models.Department]:
        result = await self.session.execute(
            select(models.Department)
            .where(func.lower(func.trim(column)) == term)
            .order_by(models.Department.id)
        )
        return list(result.scalars().all())

    async def resolve(self, reference: DepartmentReference) -> models.Department | Unresolved:
        """Resolve ``reference`` to exactly one department."""
        if reference.department_id is not None:
            department = await self.get(reference.department_id)
            if department is None:
                return Unresolved("department", str(reference.department_id),
                                  detail=f"Department id {reference.department_id} does not exist")
            return department

        term = fold_term(reference.name)
        if not term:
            return Unresolved(
                "department",
                "",
                detail="Cannot determine the department: the row has no department and none was selected",
            )

        for column in (models.Department.name, models.Department.code):
            matches = await self._match(column, term)
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                logger.info(f"Ambiguous department {reference.name!r}: {len(matches)} candidates")
                return Unresolved(
                    "department",
                    clean_value(reference.name),
                    detail=f"Ambiguous department \"{clean_value(reference.name)}\" matches {len(matches)} departments",
                )

        return Unresolved("department", clean_value(reference.name))
