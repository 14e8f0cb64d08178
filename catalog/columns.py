"""Spreadsheet header aliases for publication and journal sheets.

Headers are folded with :func:`fold_header` before lookup, so "Journal Name",
"journalName" and "journal_name" all land on the same canonical field. The
Chinese aliases are the column titles of the hospital's import templates.
"""
from __future__ import annotations

import re

_FOLD_RE = re.compile(r"[\s_\-]+")


def fold_header(header: object) -> str:
    """Case-fold a header and drop spaces, underscores and hyphens."""
    return _FOLD_RE.sub("", str(header).strip().lower())


def _build(aliases: dict[str, list[str]]) -> dict[str, str]:
    table: dict[str, str] = {}
    for field, names in aliases.items():
        table[fold_header(field)] = field
        for name in names:
            table[fold_header(name)] = field
    return table


PUBLICATION_COLUMNS: dict[str, str] = _build({
    "title": ["Title", "文章标题", "标题", "题目"],
    "authors": ["Authors", "Author", "作者", "作者列表"],
    "publish_year": ["publishYear", "Year", "Publish Year", "年", "发表年份", "年份"],
    "doi": ["DOI"],
    "pmid": ["PMID", "PubMed ID"],
    "wos_number": ["wosNumber", "WOS Number", "WOS", "WOS号"],
    "volume": ["Volume", "Vol", "卷", "卷号"],
    "issue": ["Issue", "No", "期", "期号"],
    "pages": ["Pages", "Page", "页码", "页数"],
    "document_type": ["documentType", "Document Type", "Type", "文献类型", "文档类型"],
    "address": ["Address", "Addresses", "地址", "地址信息"],
    "journal_name": ["journalName", "Journal", "Journal Name", "期刊名称", "期刊", "期刊名"],
    "journal_abbreviation": ["journalAbbreviation", "Journal Abbreviation", "Abbreviation", "期刊简称", "简称"],
    "issn": ["ISSN"],
    "department_name": ["departmentName", "Department", "科室", "科室名称", "部门"],
})

JOURNAL_COLUMNS: dict[str, str] = _build({
    "name": ["Journal Name", "journalName", "Journal", "期刊名称", "期刊名"],
    "abbreviation": ["Abbreviation", "Journal Abbreviation", "期刊简称", "简称"],
    "issn": ["ISSN"],
    "impact_factor": ["impactFactor", "Impact Factor", "IF", "影响因子", "影响因數"],
    "quartile": ["Quartile", "JCR", "JCR分区", "分区", "分區"],
    "category": ["Category", "Subject", "类别", "類別", "学科", "學科"],
    "publisher": ["Publisher", "出版商"],
    "year": ["Year", "年份", "数据年份", "數據年份"],
})


def map_columns(row: dict[str, object], table: dict[str, str]) -> dict[str, object]:
    """Rename a row's keys to canonical field names, dropping unknown columns.

    Blank cells are treated as absent. The first non-blank column that maps
    to a field wins when a sheet carries two aliases of the same field.
    """
    mapped: dict[str, object] = {}
    for key, value in row.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        field = table.get(fold_header(key))
        if field is not None and field not in mapped:
            mapped[field] = value
    return mapped
