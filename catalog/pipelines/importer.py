"""Batch importer: runs every row of one import through the pipeline.

Rows are processed sequentially, in file order, inside one transaction. Each
row runs inside its own SAVEPOINT, so a row that fails a business rule is
rolled back to a clean point and recorded as an outcome while earlier rows
stay in the unit of work. Anything that signals the store itself is unusable
rolls back the whole batch and raises :class:`CatalogUnavailableError`.

States: IDLE -> PROCESSING -> ROW_COMMITTED | ROW_SKIPPED -> ... ->
FINALIZING -> DONE (or ABORTED).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog import models
from catalog.pipelines.department_resolver import DepartmentResolver
from catalog.pipelines.duplicates import (
    duplicate_key_from_integrity_error,
    find_duplicate_journal,
    find_duplicate_publication,
)
from catalog.pipelines.ingest import create_journal, create_publication
from catalog.pipelines.journal_resolver import JournalResolver
from catalog.pipelines.normalization import (
    NormalizedJournal,
    NormalizedPublication,
    normalize_journal_row,
    normalize_publication_row,
)
from catalog.pipelines.outcomes import (
    BatchTally,
    CatalogUnavailableError,
    Created,
    Duplicate,
    DuplicateRecordError,
    ImportOutcome,
    ImportRejectedError,
    ResolutionError,
    RowError,
    RowResult,
    ScopeViolationError,
    SystemFailure,
    Unresolved,
)
from catalog.pipelines.report import ImportSummary, build_import_summary
from catalog.row_source import RowSourceResult

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    """Importer lifecycle."""
    IDLE = "idle"
    PROCESSING = "processing"
    ROW_COMMITTED = "row_committed"
    ROW_SKIPPED = "row_skipped"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ActingIdentity:
    """The pre-authenticated user an import runs as, with its scope."""
    user_id: int
    role: str = "user"
    department_id: int | None = None

    @property
    def department_scoped(self) -> bool:
        return self.role == "department_admin"


class BatchImporter:
    """Shared batch loop; subclasses implement :meth:`import_row`.

    An importer instance handles exactly one batch.
    """

    kind = "rows"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.state = ImportState.IDLE
        self.tally = BatchTally()
        self.current_row: int | None = None

    def _transition(self, state: ImportState) -> None:
        logger.debug(f"{self.kind} import: {self.state.value} -> {state.value}")
        self.state = state

    async def prepare(self) -> None:
        """Checks that reject the whole batch before any row runs."""

    async def import_row(self, raw: Mapping[str, Any]) -> ImportOutcome:
        raise NotImplementedError

    async def _process(self, raw: Mapping[str, Any]) -> ImportOutcome:
        try:
            async with self.session.begin_nested():
                return await self.import_row(raw)
        except RowError as exc:
            return exc.to_outcome()

    async def run(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        source: RowSourceResult | None = None,
    ) -> ImportSummary:
        """Import ``rows`` and return the batch summary.

        Args:
            rows: Raw rows, in file order
            source: Row source result the rows came from; its parse errors
                and counts are merged into the summary

        Raises:
            ImportRejectedError: If the batch is refused before processing
            CatalogUnavailableError: If the store failed; nothing was committed
        """
        if self.state != ImportState.IDLE:
            raise RuntimeError("An importer handles a single batch")

        row_numbers = source.row_numbers if source is not None else None
        logger.info(f"Starting {self.kind} import of {len(rows)} rows")

        try:
            await self.prepare()
            for index, raw in enumerate(rows):
                self.current_row = row_numbers[index] if row_numbers else index + 1
                self._transition(ImportState.PROCESSING)
                outcome = await self._process(raw)
                self.tally.record(RowResult(index=index, data=dict(raw), outcome=outcome, row=self.current_row))
                if isinstance(outcome, Created):
                    self._transition(ImportState.ROW_COMMITTED)
                else:
                    self._transition(ImportState.ROW_SKIPPED)
                    logger.info(f"Row {self.current_row} skipped: {outcome.reason}")

            self._transition(ImportState.FINALIZING)
            await self.session.commit()

        except ImportRejectedError as e:
            logger.warning(f"{self.kind.capitalize()} import rejected: {e}")
            await self.session.rollback()
            self._transition(ImportState.ABORTED)
            raise
        except CatalogUnavailableError as e:
            await self._abort(e, rows)
            raise
        except SQLAlchemyError as e:
            error = CatalogUnavailableError(f"Catalog store failed during import: {e}")
            await self._abort(error, rows)
            raise error from e
        except Exception as e:
            logger.error(f"Unexpected error in {self.kind} import at row {self.current_row}: {e}", exc_info=True)
            await self.session.rollback()
            self._transition(ImportState.ABORTED)
            raise

        summary = build_import_summary(
            self.tally.results,
            parse_errors=source.errors if source is not None else (),
            parse_success=source.success if source is not None else None,
            parse_failed=source.failed if source is not None else 0,
            parse_duplicates=source.duplicates if source is not None else 0,
        )
        self._transition(ImportState.DONE)
        logger.info(
            f"Finished {self.kind} import: total={summary.total} success={summary.success} "
            f"failed={summary.failed} duplicates={summary.duplicates}"
        )
        return summary

    async def _abort(self, error: CatalogUnavailableError, rows: Sequence[Mapping[str, Any]]) -> None:
        logger.error(
            f"Aborting {self.kind} import at row {self.current_row}: {error}",
            exc_info=True,
        )
        if error.row is None and self.current_row is not None and self.state == ImportState.PROCESSING:
            index = len(self.tally.results)
            error.row = RowResult(
                index=index,
                data=dict(rows[index]),
                outcome=SystemFailure(str(error)),
                row=self.current_row,
            )
        await self.session.rollback()
        self._transition(ImportState.ABORTED)

    async def _duplicate_from_race(self, exc: IntegrityError, find_duplicate, row) -> DuplicateRecordError:
        """Turn a uniqueness violation at insert time into a Duplicate outcome.

        A concurrent import can commit the same key between our duplicate
        check and our insert; the store's constraint catches it.
        """
        key = duplicate_key_from_integrity_error(exc)
        if key is None:
            raise CatalogUnavailableError(f"Integrity error while inserting row: {exc.orig}") from exc
        existing = await find_duplicate(self.session, row)
        if existing is None:
            existing = Duplicate(key=key or "unknown", value=str(getattr(row, key, "") or ""))
        logger.warning(f"Row {self.current_row}: uniqueness violation on insert ({existing.key})")
        return DuplicateRecordError(existing)


class PublicationImporter(BatchImporter):
    """Imports publication rows: normalize, resolve, check duplicates, insert."""

    kind = "publication"

    def __init__(
        self,
        session: AsyncSession,
        identity: ActingIdentity,
        *,
        department_id: int | None = None,
        journal_resolver: JournalResolver | None = None,
    ) -> None:
        super().__init__(session)
        self.identity = identity
        self.department_id = department_id
        self.journals = journal_resolver or JournalResolver(session)
        self.departments = DepartmentResolver(session)

    async def prepare(self) -> None:
        if self.identity.department_scoped and (
            self.department_id is None or self.department_id != self.identity.department_id
        ):
            raise ScopeViolationError("Department administrators can only import into their own department")

        if self.department_id is not None and await self.departments.get(self.department_id) is None:
            raise ImportRejectedError(f"Department {self.department_id} does not exist")

        if await self.session.get(models.User, self.identity.user_id) is None:
            raise ImportRejectedError(f"User {self.identity.user_id} does not exist")

    async def import_row(self, raw: Mapping[str, Any]) -> ImportOutcome:
        row = normalize_publication_row(raw, default_department_id=self.department_id)

        journal = await self.journals.resolve(row.journal)
        if isinstance(journal, Unresolved):
            raise ResolutionError(journal)

        department = await self.departments.resolve(row.department)
        if isinstance(department, Unresolved):
            raise ResolutionError(department)

        duplicate = await find_duplicate_publication(self.session, row)
        if duplicate is not None:
            raise DuplicateRecordError(duplicate)

        publication = await self._insert(row, journal.id, department.id)
        return Created(publication.id)

    async def _insert(self, row: NormalizedPublication, journal_id: int, department_id: int) -> models.Publication:
        try:
            async with self.session.begin_nested():
                return await create_publication(
                    self.session,
                    row,
                    journal_id=journal_id,
                    department_id=department_id,
                    user_id=self.identity.user_id,
                )
        except IntegrityError as exc:
            raise await self._duplicate_from_race(exc, find_duplicate_publication, row) from exc


class JournalImporter(BatchImporter):
    """Imports journal reference rows: normalize, check duplicates, insert."""

    kind = "journal"

    async def import_row(self, raw: Mapping[str, Any]) -> ImportOutcome:
        row = normalize_journal_row(raw)

        duplicate = await find_duplicate_journal(self.session, row)
        if duplicate is not None:
            raise DuplicateRecordError(duplicate)

        journal = await self._insert(row)
        return Created(journal.id)

    async def _insert(self, row: NormalizedJournal) -> models.Journal:
        try:
            async with self.session.begin_nested():
                return await create_journal(self.session, row)
        except IntegrityError as exc:
            raise await self._duplicate_from_race(exc, find_duplicate_journal, row) from exc


async def import_publications(
    session: AsyncSession,
    rows: Sequence[Mapping[str, Any]],
    *,
    identity: ActingIdentity,
    department_id: int | None = None,
    source: RowSourceResult | None = None,
) -> ImportSummary:
    """Import publication rows as one batch."""
    importer = PublicationImporter(session, identity, department_id=department_id)
    return await importer.run(rows, source=source)


async def import_journals(
    session: AsyncSession,
    rows: Sequence[Mapping[str, Any]],
    *,
    source: RowSourceResult | None = None,
) -> ImportSummary:
    """Import journal reference rows as one batch."""
    return await JournalImporter(session).run(rows, source=source)
