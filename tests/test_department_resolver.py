from catalog import models
from catalog.pipelines.department_resolver import DepartmentResolver
from catalog.pipelines.normalization import DepartmentReference
from catalog.pipelines.outcomes import Unresolved


async def test_name_match_is_case_insensitive_and_trimmed(session, refs):
    department = await DepartmentResolver(session).resolve(DepartmentReference(name="  cardiology "))

    assert department.id == refs.cardiology


async def test_code_match(session, refs):
    department = await DepartmentResolver(session).resolve(DepartmentReference(name="neur"))

    assert department.id == refs.neurology


async def test_explicit_id_wins_over_row_name(session, refs):
    reference = DepartmentReference(department_id=refs.neurology, name="Cardiology")

    department = await DepartmentResolver(session).resolve(reference)

    assert department.id == refs.neurology


async def test_no_substring_matching(session, refs):
    result = await DepartmentResolver(session).resolve(DepartmentReference(name="Cardio"))

    assert isinstance(result, Unresolved)
    assert result.field == "department"
    assert result.search_terms == "Cardio"


async def test_missing_department(session, refs):
    result = await DepartmentResolver(session).resolve(DepartmentReference())

    assert isinstance(result, Unresolved)
    assert "Cannot determine the department" in result.reason


async def test_unknown_explicit_id(session, refs):
    result = await DepartmentResolver(session).resolve(DepartmentReference(department_id=999))

    assert isinstance(result, Unresolved)
    assert "999" in result.reason


async def test_duplicate_department_names_are_ambiguous(session, refs):
    session.add(models.Department(name="cardiology", code="CARD2"))
    await session.flush()

    result = await DepartmentResolver(session).resolve(DepartmentReference(name="Cardiology"))

    assert isinstance(result, Unresolved)
    assert "matches 2 departments" in result.reason


async def test_non_ascii_name_is_case_insensitive(session, refs):
    session.add(models.Department(name="Ärzte Ambulanz", code="ÄRZ"))
    await session.flush()
    resolver = DepartmentResolver(session)

    by_name = await resolver.resolve(DepartmentReference(name="ärzte ambulanz"))
    by_code = await resolver.resolve(DepartmentReference(name="ärz"))

    assert by_name.name == "Ärzte Ambulanz"
    assert by_code.name == "Ärzte Ambulanz"
