"""Catalog product attribute importer (CSV -> catalog metadata store)."""

__version__ = "0.1.0"
