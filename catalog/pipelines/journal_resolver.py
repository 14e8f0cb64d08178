"""Journal resolution: journal reference -> exactly one canonical journal.

The resolver walks an ordered chain of matchers, most authoritative first:

1. ISSN (case-insensitive, hyphens ignored)
2. exact journal name (case-insensitive, trimmed)
3. exact journal abbreviation (case-insensitive, trimmed)
4. optional rapidfuzz name match (``IMPORT_JOURNAL_FUZZY_MATCHING``)

Each matcher reports none, one or many candidates. The first ``one`` wins;
a ``many`` stops the chain and the reference is unresolved, the resolver
never picks between ambiguous journals.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Sequence

from rapidfuzz import fuzz, process
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog import models
from catalog.config import settings
from catalog.pipelines.normalization import JournalReference, fold_term, normalize_issn
from catalog.pipelines.outcomes import Unresolved

logger = logging.getLogger(__name__)


class MatchStatus(str, Enum):
    """Result cardinality of a single matcher."""
    NONE = "none"
    ONE = "one"
    MANY = "many"


@dataclass
class JournalMatch:
    """What one matcher found for one search term."""
    strategy: str
    term: str | None
    candidates: list[models.Journal] = field(default_factory=list)

    @property
    def status(self) -> MatchStatus:
        if not self.candidates:
            return MatchStatus.NONE
        if len(self.candidates) == 1:
            return MatchStatus.ONE
        return MatchStatus.MANY

    @property
    def journal(self) -> models.Journal | None:
        return self.candidates[0] if self.status == MatchStatus.ONE else None


Matcher = Callable[[AsyncSession, JournalReference], Awaitable[JournalMatch]]


async def _select(session: AsyncSession, condition) -> list[models.Journal]:
    result = await session.execute(
        select(models.Journal).where(condition).order_by(models.Journal.id)
    )
    return list(result.scalars().all())


async def match_by_issn(session: AsyncSession, reference: JournalReference) -> JournalMatch:
    """Exact ISSN match, ignoring case and hyphens."""
    issn = normalize_issn(reference.issn)
    if not issn:
        return JournalMatch("issn", None)
    compact = issn.replace("-", "")
    column = func.upper(func.replace(models.Journal.issn, "-", ""))
    return JournalMatch("issn", reference.issn, await _select(session, column == compact))


async def match_by_name(session: AsyncSession, reference: JournalReference) -> JournalMatch:
    """Exact, case-insensitive journal name match."""
    name = fold_term(reference.name)
    if not name:
        return JournalMatch("name", None)
    column = func.lower(func.trim(models.Journal.name))
    return JournalMatch("name", reference.name, await _select(session, column == name))


async def match_by_abbreviation(session: AsyncSession, reference: JournalReference) -> JournalMatch:
    """Exact, case-insensitive journal abbreviation match."""
    abbreviation = fold_term(reference.abbreviation)
    if not abbreviation:
        return JournalMatch("abbreviation", None)
    column = func.lower(func.trim(models.Journal.abbreviation))
    return JournalMatch("abbreviation", reference.abbreviation, await _select(session, column == abbreviation))


DEFAULT_MATCHERS: tuple[Matcher, ...] = (match_by_issn, match_by_name, match_by_abbreviation)


class JournalResolver:
    """Resolves journal references for one import batch.

    Journal names are loaded lazily and cached for the lifetime of the
    resolver; the journal table is not written by a publication import.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        matchers: Sequence[Matcher] | None = None,
        fuzzy: bool | None = None,
    ) -> None:
        self.session = session
        self.matchers: list[Matcher] = list(matchers or DEFAULT_MATCHERS)
        use_fuzzy = settings.imports.journal_fuzzy_matching if fuzzy is None else fuzzy
        if use_fuzzy:
            self.matchers.append(self.match_by_fuzzy_name)
        self._names: dict[int, str] | None = None

    async def _journal_names(self) -> dict[int, str]:
        if self._names is None:
            result = await self.session.execute(select(models.Journal.id, models.Journal.name))
            self._names = {journal_id: name for journal_id, name in result.all()}
            logger.debug(f"Cached {len(self._names)} journal names")
        return self._names

    async def match_by_fuzzy_name(self, session: AsyncSession, reference: JournalReference) -> JournalMatch:
        """Best rapidfuzz name match above the configured threshold; ties are ambiguous."""
        if not reference.name:
            return JournalMatch("fuzzy_name", None)
        names = await self._journal_names()
        hits = process.extract(
            reference.name,
            names,
            scorer=fuzz.WRatio,
            processor=str.casefold,
            score_cutoff=settings.imports.journal_fuzzy_threshold,
            limit=None,
        )
        if not hits:
            return JournalMatch("fuzzy_name", reference.name)
        best = max(score for _, score, _ in hits)
        ids = sorted(key for _, score, key in hits if score == best)
        return JournalMatch(
            "fuzzy_name",
            reference.name,
            await _select(session, models.Journal.id.in_(ids)),
        )

    async def suggest(self, term: str | None) -> tuple[str, ...]:
        """Closest journal names for a term, for the error message only."""
        limit = settings.imports.journal_suggestion_limit
        if not term or limit == 0:
            return ()
        names = await self._journal_names()
        hits = process.extract(
            term,
            names,
            scorer=fuzz.WRatio,
            processor=str.casefold,
            score_cutoff=settings.imports.journal_suggestion_cutoff,
            limit=limit,
        )
        suggestions: list[str] = []
        for name, _, _ in hits:
            if name not in suggestions:
                suggestions.append(name)
        return tuple(suggestions)

    async def resolve(self, reference: JournalReference) -> models.Journal | Unresolved:
        """Resolve ``reference`` to one journal, or an Unresolved outcome."""
        if reference.is_empty:
            return Unresolved("journal", "")

        for matcher in self.matchers:
            match = await matcher(self.session, reference)
            if match.status == MatchStatus.ONE:
                logger.debug(f"Journal {match.term!r} resolved by {match.strategy} to id={match.journal.id}")
                return match.journal
            if match.status == MatchStatus.MANY:
                logger.info(
                    f"Ambiguous journal {match.strategy} {match.term!r}: "
                    f"{len(match.candidates)} candidates"
                )
                return Unresolved(
                    "journal",
                    match.term or "",
                    detail=(
                        f"Ambiguous journal {match.strategy.replace('_', ' ')} "
                        f"\"{match.term}\" matches {len(match.candidates)} journals"
                    ),
                )

        return Unresolved(
            "journal",
            reference.search_terms,
            suggestions=await self.suggest(reference.name or reference.abbreviation),
        )
