"""Logging setup and run progress tracking."""
