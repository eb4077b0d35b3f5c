"""Batch HTTP redirect chain resolution and target reconciliation."""

__version__ = "0.3.0"
