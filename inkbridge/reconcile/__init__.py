"""Transcript reconciliation: matching recognized lines to blocks and persisting the result."""

from .matcher import BlockMatcher
from .adapter import PersistenceAdapter
from .updater import TranscriptUpdater

__all__ = ["BlockMatcher", "PersistenceAdapter", "TranscriptUpdater"]
