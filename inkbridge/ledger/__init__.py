"""Stroke ledger persistence."""

from .manager import StrokeLedger

__all__ = ["StrokeLedger"]
