"""Verify Commercial Bank of Ethiopia transfer receipts against official PDF records."""

__version__ = "0.1.0"