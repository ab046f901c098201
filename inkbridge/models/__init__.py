"""Data models for Inkbridge."""

from .strokes import Stroke, StrokeSample, PageKey
from .transcript import (
    YBounds,
    WordBox,
    RecognizedLine,
    BlockProperties,
    TranscriptBlock,
    ActionType,
    ReconciliationAction,
    PassState,
    ActionFailure,
    PassSummary,
    PassResult,
)

__all__ = [
    "Stroke",
    "StrokeSample",
    "PageKey",
    "YBounds",
    "WordBox",
    "RecognizedLine",
    "BlockProperties",
    "TranscriptBlock",
    "ActionType",
    "ReconciliationAction",
    "PassState",
    "ActionFailure",
    "PassSummary",
    "PassResult",
]
