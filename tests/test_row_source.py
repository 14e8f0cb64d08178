import pandas as pd
import pytest

from catalog.columns import JOURNAL_COLUMNS, PUBLICATION_COLUMNS, fold_header, map_columns
from catalog.row_source import FileType, ParseError, detect_file_type, read_rows


def test_detect_file_type():
    assert detect_file_type("pubs.CSV") == FileType.CSV
    assert detect_file_type("pubs.xlsx") == FileType.EXCEL
    assert detect_file_type("pubs.xls") == FileType.UNKNOWN
    assert detect_file_type("pubs.pdf") == FileType.UNKNOWN


def test_header_folding_and_mapping():
    assert fold_header(" Journal_Name ") == fold_header("journalName") == "journalname"

    mapped = map_columns(
        {"期刊名称": "Nature", "Journal": "", "WOS号": "WOS:1", "Notes": "ignored"},
        PUBLICATION_COLUMNS,
    )
    assert mapped == {"journal_name": "Nature", "wos_number": "WOS:1"}


def test_read_csv(tmp_path):
    path = tmp_path / "pubs.csv"
    path.write_text(
        "Title,Authors,Year,Journal,Notes\n"
        "Heart study, Li H ,2022,Nature,\n"
        ",,,,\n"
        ",,,,just a note\n"
        "Brain study,Wang Y,2021,The Lancet,\n",
        encoding="utf-8",
    )

    result = read_rows(path, PUBLICATION_COLUMNS)

    assert result.success == 2
    assert result.failed == 1
    assert result.duplicates == 0
    assert result.row_numbers == [2, 5]
    assert result.data[0] == {"Title": "Heart study", "Authors": "Li H", "Year": "2022", "Journal": "Nature"}
    assert result.errors[0].row == 4
    assert result.errors[0].error == "Row has no recognised columns"
    assert result.errors[0].data == {"Notes": "just a note"}


def test_read_csv_with_bom_and_chinese_headers(tmp_path):
    path = tmp_path / "journals.csv"
    path.write_bytes("期刊名称,ISSN,影响因子,分区,类别,年份\nCirculation,0009-7322,37.8,Q1,Cardiology,2023\n".encode("utf-8-sig"))

    result = read_rows(path, JOURNAL_COLUMNS)

    assert result.data == [{
        "期刊名称": "Circulation",
        "ISSN": "0009-7322",
        "影响因子": "37.8",
        "分区": "Q1",
        "类别": "Cardiology",
        "年份": "2023",
    }]


def test_read_xlsx(tmp_path):
    path = tmp_path / "pubs.xlsx"
    pd.DataFrame([
        {"Title": "Heart study", "Authors": "Li H", "Year": "2022", "ISSN": "0028-0836"},
        {"Title": "Brain study", "Authors": "Wang Y", "Year": "2021", "ISSN": "0140-6736"},
    ]).to_excel(path, index=False)

    result = read_rows(path, PUBLICATION_COLUMNS)

    assert result.success == 2
    assert result.row_numbers == [2, 3]
    assert result.data[1]["ISSN"] == "0140-6736"


def test_unsupported_and_unreadable_files(tmp_path):
    with pytest.raises(ParseError, match="Unsupported file type"):
        read_rows(tmp_path / "pubs.txt", PUBLICATION_COLUMNS)

    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"this is not a workbook")
    with pytest.raises(ParseError):
        read_rows(broken, PUBLICATION_COLUMNS)
