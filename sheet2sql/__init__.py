"""sheet2sql: spreadsheet -> SQL (INSERT / UPDATE / UPSERT) converter."""

__version__ = "0.1.0"
