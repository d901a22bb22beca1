"""Spreadsheet-backed, schema-enforced row store."""

__version__ = "0.1.0"
