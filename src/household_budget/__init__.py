"""Household budget transaction import, deduplication and flagging."""

__version__ = "0.4.0"
