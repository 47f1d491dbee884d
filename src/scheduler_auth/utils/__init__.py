"""Shared constants and error types for scheduler auth."""
