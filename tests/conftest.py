import os

# Settings are read at import time; keep the module-level engine off PostgreSQL
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog import models
from catalog.db import build_engine
from catalog.pipelines.importer import ActingIdentity


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def _journal(name, abbreviation, issn, year=2023, impact_factor="10.5", quartile="Q1"):
    return models.Journal(
        name=name,
        abbreviation=abbreviation,
        issn=issn,
        impact_factor=Decimal(impact_factor),
        quartile=quartile,
        category="Medicine",
        year=year,
    )


@pytest.fixture
async def refs(session_factory):
    """Reference departments, journals and users."""
    async with session_factory() as session:
        cardiology = models.Department(name="Cardiology", code="CARD")
        neurology = models.Department(name="Neurology", code="NEUR")
        session.add_all([cardiology, neurology])

        nature = _journal("Nature", "Nature", "0028-0836", impact_factor="49.9")
        lancet = _journal("The Lancet", "Lancet", "0140-6736", impact_factor="45.2")
        jcardiol = _journal("Journal of Cardiology", "J Cardiol", "0914-5087", impact_factor="2.5", quartile="Q3")
        cell_2022 = _journal("Cell Reports", "Cell Rep", "2211-1247", year=2022, impact_factor="8.1")
        cell_2023 = _journal("Cell Reports", "Cell Rep", "2211-1247", year=2023, impact_factor="8.8")
        session.add_all([nature, lancet, jcardiol, cell_2022, cell_2023])
        await session.flush()

        admin = models.User(username="admin", role="admin")
        cardiology_admin = models.User(
            username="card-admin",
            role="department_admin",
            department_id=cardiology.id,
        )
        session.add_all([admin, cardiology_admin])
        await session.commit()

        return SimpleNamespace(
            cardiology=cardiology.id,
            neurology=neurology.id,
            nature=nature.id,
            lancet=lancet.id,
            jcardiol=jcardiol.id,
            cell_reports=(cell_2022.id, cell_2023.id),
            admin=ActingIdentity(user_id=admin.id, role="admin"),
            cardiology_admin=ActingIdentity(
                user_id=cardiology_admin.id,
                role="department_admin",
                department_id=cardiology.id,
            ),
        )


def publication_row(**overrides):
    row = {
        "title": "Outcomes of transcatheter valve repair",
        "authors": "Li H, Wang Y",
        "publishYear": "2022",
        "journalName": "Nature",
        "departmentName": "Cardiology",
    }
    row.update(overrides)
    return {key: value for key, value in row.items() if value is not None}


def journal_row(**overrides):
    row = {
        "Journal Name": "Circulation",
        "ISSN": "0009-7322",
        "Impact Factor": "37.8",
        "Quartile": "q1",
        "Category": "Cardiac & Cardiovascular Systems",
        "Year": "2023",
    }
    row.update(overrides)
    return {key: value for key, value in row.items() if value is not None}
