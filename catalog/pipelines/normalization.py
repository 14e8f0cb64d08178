"""Row normalization for publication and journal import rows.

Turns raw spreadsheet rows (header -> text) into typed rows, collecting every
field problem of a row before rejecting it so the whole row can be fixed in
one pass.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from catalog.columns import JOURNAL_COLUMNS, PUBLICATION_COLUMNS, map_columns
from catalog.config import settings
from catalog.pipelines.outcomes import RowValidationError

logger = logging.getLogger(__name__)

ISSN_RE = re.compile(r'^\d{4}-\d{3}[\dX]$')
QUARTILES = ("Q1", "Q2", "Q3", "Q4")

# field -> maximum length, mirrors the column sizes in catalog.models
PUBLICATION_LIMITS = {
    "title": 500,
    "doi": 100,
    "pmid": 20,
    "wos_number": 50,
    "volume": 20,
    "issue": 20,
    "pages": 50,
    "document_type": 50,
    "journal_abbreviation": 100,
}


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def clean_value(value: Any) -> str | None:
    """Compose unicode, trim and collapse whitespace; blank becomes None."""
    if value is None:
        return None
    text = unicodedata.normalize('NFC', str(value))
    text = normalize_whitespace(text)
    return text or None


def fold_term(value: str | None) -> str | None:
    """Lowercased, whitespace-normalized lookup key (matches SQL ``lower``)."""
    cleaned = clean_value(value)
    return cleaned.lower() if cleaned else None


def normalize_issn(value: str | None) -> str | None:
    """Uppercase an ISSN and restore its hyphen; returns None if blank.

    The result is not validated, see :data:`ISSN_RE`.
    """
    cleaned = clean_value(value)
    if cleaned is None:
        return None
    compact = re.sub(r'[\s\-]', '', cleaned).upper()
    if len(compact) == 8:
        return f"{compact[:4]}-{compact[4:]}"
    return cleaned.upper()


def parse_year(value: str | None) -> int | None:
    """Parse "2021" or spreadsheet-style "2021.0"; None when not an integer."""
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)


@dataclass(frozen=True)
class JournalReference:
    """The journal-identifying fields of a publication row."""
    name: str | None = None
    abbreviation: str | None = None
    issn: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.abbreviation or self.issn)

    @property
    def search_terms(self) -> str:
        return ", ".join(term for term in (self.name, self.abbreviation, self.issn) if term)


@dataclass(frozen=True)
class DepartmentReference:
    """Either a batch-level department id or the row's department name."""
    department_id: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class NormalizedPublication:
    """Typed projection of one publication row."""
    title: str
    authors: str
    publish_year: int
    journal: JournalReference
    department: DepartmentReference
    doi: str | None = None
    pmid: str | None = None
    wos_number: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    document_type: str | None = None
    address: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class NormalizedJournal:
    """Typed projection of one journal row."""
    name: str
    impact_factor: Decimal
    quartile: str
    category: str
    year: int
    issn: str | None = None
    abbreviation: str | None = None
    publisher: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


def normalize_publication_row(
    raw: Mapping[str, Any],
    *,
    default_department_id: int | None = None,
    current_year: int | None = None,
) -> NormalizedPublication:
    """Normalize and validate one publication row.

    A row without a department name is accepted here even when no batch
    default is given; the department resolver reports that case.

    Raises:
        RowValidationError: With every problem found in the row
    """
    current_year = current_year or date.today().year
    min_year = settings.imports.min_publish_year
    values = {key: clean_value(value) for key, value in map_columns(dict(raw), PUBLICATION_COLUMNS).items()}
    problems: list[str] = []

    title = values.get("title")
    if not title:
        problems.append("title missing")
    authors = values.get("authors")
    if not authors:
        problems.append("authors missing")

    publish_year = parse_year(values.get("publish_year"))
    if values.get("publish_year") is None:
        problems.append("publish year missing")
    elif publish_year is None or not min_year <= publish_year <= current_year:
        problems.append(f"year out of range: must be an integer between {min_year} and {current_year}")

    for name, limit in PUBLICATION_LIMITS.items():
        value = values.get(name)
        if value and len(value) > limit:
            problems.append(f"{name.replace('_', ' ')} longer than {limit} characters")

    pmid = values.get("pmid")
    if pmid and not pmid.isdigit():
        problems.append("PMID must be numeric")

    issn = normalize_issn(values.get("issn"))
    if issn and not ISSN_RE.match(issn):
        problems.append("ISSN must look like XXXX-XXXX")

    journal = JournalReference(
        name=values.get("journal_name"),
        abbreviation=values.get("journal_abbreviation"),
        issn=issn,
    )
    if journal.is_empty:
        problems.append("journal missing: give a journal name, abbreviation or ISSN")

    if problems:
        raise RowValidationError(problems)

    doi = values.get("doi")
    return NormalizedPublication(
        title=title,
        authors=authors,
        publish_year=publish_year,
        journal=journal,
        department=DepartmentReference(
            department_id=default_department_id,
            name=values.get("department_name"),
        ),
        doi=doi.lower() if doi else None,
        pmid=pmid,
        wos_number=values.get("wos_number"),
        volume=values.get("volume"),
        issue=values.get("issue"),
        pages=values.get("pages"),
        document_type=values.get("document_type"),
        address=values.get("address"),
        raw=dict(raw),
    )


def normalize_journal_row(
    raw: Mapping[str, Any],
    *,
    current_year: int | None = None,
) -> NormalizedJournal:
    """Normalize and validate one journal reference row.

    Raises:
        RowValidationError: With every problem found in the row
    """
    current_year = current_year or date.today().year
    values = {key: clean_value(value) for key, value in map_columns(dict(raw), JOURNAL_COLUMNS).items()}
    problems: list[str] = []

    name = values.get("name")
    if not name:
        problems.append("journal name missing")
    elif len(name) > 200:
        problems.append("journal name longer than 200 characters")

    impact_factor = None
    if values.get("impact_factor") is None:
        problems.append("impact factor missing")
    else:
        try:
            impact_factor = Decimal(values["impact_factor"])
        except InvalidOperation:
            impact_factor = None
        if impact_factor is None or not impact_factor.is_finite() or not 0 <= impact_factor <= 50:
            problems.append("impact factor must be a number between 0 and 50")
            impact_factor = None

    quartile = (values.get("quartile") or "").upper()
    if not quartile:
        problems.append("quartile missing")
    elif quartile not in QUARTILES:
        problems.append("quartile must be Q1, Q2, Q3 or Q4")

    category = values.get("category")
    if not category:
        problems.append("category missing")
    elif len(category) > 100:
        problems.append("category longer than 100 characters")

    year = parse_year(values.get("year"))
    if values.get("year") is None:
        problems.append("year missing")
    elif year is None or not 1900 <= year <= current_year + 1:
        problems.append(f"year out of range: must be an integer between 1900 and {current_year + 1}")

    issn = normalize_issn(values.get("issn"))
    if issn and not ISSN_RE.match(issn):
        problems.append("ISSN must look like XXXX-XXXX")

    abbreviation = values.get("abbreviation")
    if abbreviation and len(abbreviation) > 100:
        problems.append("abbreviation longer than 100 characters")
    publisher = values.get("publisher")
    if publisher and len(publisher) > 100:
        problems.append("publisher longer than 100 characters")

    if problems:
        raise RowValidationError(problems)

    return NormalizedJournal(
        name=name,
        impact_factor=impact_factor,
        quartile=quartile,
        category=category,
        year=year,
        issn=issn,
        abbreviation=abbreviation,
        publisher=publisher,
        raw=dict(raw),
    )
