"""Bulk import pipeline: normalization, resolution, duplicate checks, persistence.

Each step is callable on its own; :mod:`catalog.pipelines.importer` runs them
per row inside one transaction.
"""
