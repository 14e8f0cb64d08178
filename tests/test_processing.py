import pytest
from sqlalchemy.exc import OperationalError

from catalog.pipelines import importer as importer_module
from catalog.pipelines.outcomes import CatalogUnavailableError, ImportRejectedError
from catalog.pipelines.processing import cleanup_file, import_journal_file, import_publication_file
from catalog.row_source import ParseError


def _write_csv(path, text):
    path.write_text(text, encoding="utf-8")
    return path


async def test_publication_file_import(session, refs, tmp_path):
    path = _write_csv(
        tmp_path / "pubs.csv",
        "Title,Authors,Year,Journal,DOI,Department,Memo\n"
        "Heart study,Li H,2022,Nature,10.1/a,Cardiology,\n"
        "Heart study again,Li H,2022,Nature,10.1/A,Cardiology,\n"
        ",,,,,,memo only\n"
        "Lost study,Li H,2022,Unknown Journal,,Cardiology,\n",
    )

    summary = await import_publication_file(session, path, identity=refs.admin)

    assert (summary.total, summary.success, summary.failed, summary.duplicates) == (4, 1, 2, 1)
    assert [entry.row for entry in summary.errors] == [4, 3, 5]
    assert not path.exists()


async def test_journal_file_import(session, refs, tmp_path):
    path = _write_csv(
        tmp_path / "journals.csv",
        "Journal Name,ISSN,IF,Quartile,Category,Year\n"
        "Circulation,0009-7322,37.8,Q1,Cardiology,2023\n"
        "Nature,0028-0836,49.9,Q1,Multidisciplinary,2023\n",
    )

    summary = await import_journal_file(session, path)

    assert (summary.success, summary.duplicates) == (1, 1)
    assert not path.exists()


async def test_file_without_rows_is_rejected_and_removed(session, refs, tmp_path):
    path = _write_csv(tmp_path / "empty.csv", "Title,Authors,Year,Journal\n")

    with pytest.raises(ImportRejectedError):
        await import_publication_file(session, path, identity=refs.admin)

    assert not path.exists()


async def test_unreadable_file_is_removed(session, refs, tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")

    with pytest.raises(ParseError):
        await import_publication_file(session, path, identity=refs.admin)

    assert not path.exists()


async def test_file_is_removed_when_the_store_fails(session, refs, tmp_path, monkeypatch):
    async def broken_find(session, row):
        raise OperationalError("SELECT ...", {}, Exception("connection reset"))

    monkeypatch.setattr(importer_module, "find_duplicate_publication", broken_find)
    path = _write_csv(tmp_path / "pubs.csv", "Title,Authors,Year,Journal\nHeart study,Li H,2022,Nature\n")

    with pytest.raises(CatalogUnavailableError):
        await import_publication_file(session, path, identity=refs.admin, department_id=refs.cardiology)

    assert not path.exists()


def test_cleanup_missing_file_is_quiet(tmp_path):
    cleanup_file(tmp_path / "gone.csv")
