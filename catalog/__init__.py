"""Publication catalog backend: models, bulk import pipeline, API.

The import pipeline turns spreadsheet rows into validated publications and
journals, resolving journal and department references against the catalog.
"""
