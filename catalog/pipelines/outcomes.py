"""Per-row import outcomes and the import error taxonomy.

Every row that reaches the importer ends in exactly one outcome. Row-scoped
failures are raised as :class:`RowError` subclasses inside the row's step and
converted to outcomes at the row boundary; batch-scoped failures are raised as
:class:`CatalogUnavailableError` and abort the whole unit of work.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class OutcomeKind(str, Enum):
    """How an outcome is counted in the import summary."""
    SUCCESS = "success"
    FAILED = "failed"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ErrorEntry:
    """One reported error, tied to the row payload a human can fix."""
    data: dict[str, Any]
    error: str
    row: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"row": self.row, "data": self.data, "error": self.error}


@dataclass(frozen=True)
class Created:
    record_id: int
    kind = OutcomeKind.SUCCESS

    @property
    def reason(self) -> str | None:
        return None


@dataclass(frozen=True)
class Duplicate:
    key: str
    value: str
    existing_id: int | None = None
    kind = OutcomeKind.DUPLICATE

    @property
    def reason(self) -> str:
        return f'{KEY_LABELS.get(self.key, self.key)} "{self.value}" already exists'


@dataclass(frozen=True)
class Unresolved:
    field: str
    search_terms: str
    detail: str = ""
    suggestions: tuple[str, ...] = ()
    kind = OutcomeKind.FAILED

    @property
    def reason(self) -> str:
        message = self.detail or f"No matching {self.field} found: {self.search_terms}"
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)})"
        return message


@dataclass(frozen=True)
class ValidationFailed:
    problems: tuple[str, ...]
    kind = OutcomeKind.FAILED

    @property
    def reason(self) -> str:
        return "; ".join(self.problems)


@dataclass(frozen=True)
class SystemFailure:
    message: str
    kind = OutcomeKind.FAILED

    @property
    def reason(self) -> str:
        return self.message


ImportOutcome = Union[Created, Duplicate, Unresolved, ValidationFailed, SystemFailure]

KEY_LABELS = {
    "doi": "DOI",
    "pmid": "PMID",
    "wos_number": "WOS number",
    "name_year": "Journal name and year",
    "issn_year": "ISSN and year",
}


@dataclass(frozen=True)
class RowResult:
    """An outcome together with the row it belongs to."""
    index: int
    data: dict[str, Any]
    outcome: ImportOutcome
    row: int | None = None

    def error_entry(self) -> ErrorEntry | None:
        if isinstance(self.outcome, Created):
            return None
        return ErrorEntry(data=self.data, error=self.outcome.reason, row=self.row)


@dataclass
class BatchTally:
    """Running counters kept by the importer while rows are processed."""
    success: int = 0
    failed: int = 0
    duplicates: int = 0
    results: list[RowResult] = field(default_factory=list)

    def record(self, result: RowResult) -> None:
        self.results.append(result)
        if result.outcome.kind == OutcomeKind.SUCCESS:
            self.success += 1
        elif result.outcome.kind == OutcomeKind.DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1


class CatalogImportError(Exception):
    """Base class for import pipeline errors."""
    pass


class RowError(CatalogImportError):
    """A failure scoped to one row; sibling rows are unaffected."""

    def to_outcome(self) -> ImportOutcome:
        raise NotImplementedError


class RowValidationError(RowError):
    """A field is missing or outside its domain."""

    def __init__(self, problems: list[str] | tuple[str, ...]):
        self.problems = tuple(problems)
        super().__init__("; ".join(self.problems))

    def to_outcome(self) -> ValidationFailed:
        return ValidationFailed(problems=self.problems)


class ResolutionError(RowError):
    """A journal or department reference resolved to zero or several records."""

    def __init__(self, outcome: Unresolved):
        self.outcome = outcome
        super().__init__(outcome.reason)

    def to_outcome(self) -> Unresolved:
        return self.outcome


class DuplicateRecordError(RowError):
    """A uniqueness key of the row is already taken."""

    def __init__(self, outcome: Duplicate):
        self.outcome = outcome
        super().__init__(outcome.reason)

    def to_outcome(self) -> Duplicate:
        return self.outcome


class ImportRejectedError(CatalogImportError):
    """The batch was refused before any row was processed."""
    pass


class ScopeViolationError(ImportRejectedError):
    """The acting identity may not import into the requested department."""
    pass


class CatalogUnavailableError(CatalogImportError):
    """The catalog store failed; the whole batch is rolled back."""

    def __init__(self, message: str, *, row: RowResult | None = None):
        self.row = row
        super().__init__(message)
