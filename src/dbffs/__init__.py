"""DBFFS: compact read-only filesystem images for flash-resident storage."""

__version__ = "0.2.0"
