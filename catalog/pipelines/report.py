"""Import report: merges row-source errors with importer outcomes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from catalog.config import settings
from catalog.pipelines.outcomes import ErrorEntry, OutcomeKind, RowResult


@dataclass(frozen=True)
class ImportSummary:
    """Final, immutable result of one import call."""
    total: int
    success: int
    failed: int
    duplicates: int
    errors: tuple[ErrorEntry, ...]
    has_more_errors: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "success": self.success,
                "failed": self.failed,
                "duplicates": self.duplicates,
            },
            "errors": [entry.as_dict() for entry in self.errors],
            "hasMoreErrors": self.has_more_errors,
        }


def build_import_summary(
    results: Sequence[RowResult],
    *,
    parse_errors: Sequence[ErrorEntry] = (),
    parse_success: int | None = None,
    parse_failed: int = 0,
    parse_duplicates: int = 0,
    max_errors: int | None = None,
) -> ImportSummary:
    """Build the summary for one batch.

    ``total`` counts the rows the row source read (``parse_success +
    parse_failed``); without a row source every imported row counts once.
    Parse errors come first in the error list, which is capped at
    ``max_errors`` (``IMPORT_MAX_REPORTED_ERRORS``, 100 by default).
    """
    limit = max_errors if max_errors is not None else settings.imports.max_reported_errors

    success = sum(1 for r in results if r.outcome.kind == OutcomeKind.SUCCESS)
    failed = sum(1 for r in results if r.outcome.kind == OutcomeKind.FAILED)
    duplicates = sum(1 for r in results if r.outcome.kind == OutcomeKind.DUPLICATE)

    import_errors = [entry for entry in (r.error_entry() for r in results) if entry is not None]
    all_errors = [*parse_errors, *import_errors]

    if parse_success is None:
        parse_success = len(results)

    return ImportSummary(
        total=parse_success + parse_failed,
        success=success,
        failed=failed + parse_failed,
        duplicates=duplicates + parse_duplicates,
        errors=tuple(all_errors[:limit]),
        has_more_errors=len(all_errors) > limit,
    )
