"""Shared helpers for parsing, formatting and logging."""
