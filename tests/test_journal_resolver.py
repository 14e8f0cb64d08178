from catalog import models
from catalog.pipelines.journal_resolver import (
    JournalResolver,
    MatchStatus,
    match_by_abbreviation,
    match_by_issn,
    match_by_name,
)
from catalog.pipelines.normalization import JournalReference
from catalog.pipelines.outcomes import Unresolved


async def test_issn_match_ignores_case_and_hyphen(session, refs):
    match = await match_by_issn(session, JournalReference(issn="00280836"))

    assert match.status == MatchStatus.ONE
    assert match.journal.id == refs.nature


async def test_name_match_is_exact_and_case_insensitive(session, refs):
    match = await match_by_name(session, JournalReference(name="  the LANCET "))
    assert match.journal.id == refs.lancet

    partial = await match_by_name(session, JournalReference(name="Lancet"))
    assert partial.status == MatchStatus.NONE


async def test_abbreviation_match(session, refs):
    match = await match_by_abbreviation(session, JournalReference(abbreviation="j cardiol"))

    assert match.journal.id == refs.jcardiol


async def test_matchers_skip_absent_terms(session, refs):
    match = await match_by_issn(session, JournalReference(name="Nature"))

    assert match.status == MatchStatus.NONE
    assert match.term is None


async def test_issn_wins_over_name(session, refs):
    resolver = JournalResolver(session)

    journal = await resolver.resolve(JournalReference(name="Nature", issn="0140-6736"))

    assert isinstance(journal, models.Journal)
    assert journal.id == refs.lancet


async def test_unknown_issn_falls_through_to_name(session, refs):
    resolver = JournalResolver(session)

    journal = await resolver.resolve(JournalReference(name="Nature", issn="9999-9999"))

    assert journal.id == refs.nature


async def test_abbreviation_is_used_when_name_misses(session, refs):
    resolver = JournalResolver(session)

    journal = await resolver.resolve(JournalReference(name="J. of Cardiology", abbreviation="J Cardiol"))

    assert journal.id == refs.jcardiol


async def test_ambiguous_name_is_unresolved(session, refs):
    resolver = JournalResolver(session)

    result = await resolver.resolve(JournalReference(name="Cell Reports", abbreviation="Nature"))

    assert isinstance(result, Unresolved)
    assert result.field == "journal"
    assert result.search_terms == "Cell Reports"
    assert "matches 2 journals" in result.reason


async def test_unknown_journal_is_unresolved_with_search_terms(session, refs):
    resolver = JournalResolver(session)

    result = await resolver.resolve(JournalReference(name="Unknown Journal"))

    assert isinstance(result, Unresolved)
    assert result.field == "journal"
    assert result.search_terms == "Unknown Journal"
    assert "journal" in result.reason
    assert "Unknown Journal" in result.reason


async def test_unresolved_reason_suggests_close_names(session, refs):
    resolver = JournalResolver(session)

    result = await resolver.resolve(JournalReference(name="Natur"))

    assert isinstance(result, Unresolved)
    assert "Nature" in result.suggestions
    assert "did you mean" in result.reason


async def test_empty_reference(session, refs):
    resolver = JournalResolver(session)

    result = await resolver.resolve(JournalReference())
    assert result == Unresolved("journal", "")


async def test_fuzzy_matching_is_opt_in(session, refs):
    reference = JournalReference(name="Journal of Cardiolgy")

    strict = await JournalResolver(session).resolve(reference)
    assert isinstance(strict, Unresolved)

    fuzzy = await JournalResolver(session, fuzzy=True).resolve(reference)
    assert fuzzy.id == refs.jcardiol


async def test_fuzzy_ties_are_ambiguous(session, refs):
    resolver = JournalResolver(session, fuzzy=True)

    result = await resolver.resolve(JournalReference(name="Cell Reportss", abbreviation="nope"))

    assert isinstance(result, Unresolved)
    assert "matches 2 journals" in result.reason


async def test_custom_matcher_chain(session, refs):
    resolver = JournalResolver(session, matchers=[match_by_abbreviation])

    result = await resolver.resolve(JournalReference(name="Nature", issn="0028-0836"))

    assert isinstance(result, Unresolved)


async def test_non_ascii_name_and_abbreviation(session, refs):
    journal = models.Journal(
        name="Ärztliche Praxis",
        abbreviation="Ärztl Prax",
        impact_factor=1,
        quartile="Q4",
        category="Medicine",
        year=2023,
    )
    session.add(journal)
    await session.flush()
    resolver = JournalResolver(session)

    assert (await resolver.resolve(JournalReference(name="ärztliche praxis"))).id == journal.id
    assert (await resolver.resolve(JournalReference(abbreviation="ÄRZTL PRAX"))).id == journal.id
