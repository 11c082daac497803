"""Command-line interface for lms-catalog-sync."""
