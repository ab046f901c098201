"""
Inkbridge: handwritten notes to Logseq.

Sends smartpen strokes to handwriting recognition and keeps the recognized
lines in a Logseq outline stable and edit-safe across repeated recognition.
"""

__version__ = "0.1.0"
__author__ = "Inkbridge Project"

# Import main components
from .ledger import StrokeLedger
from .models import Stroke, PageKey, RecognizedLine, TranscriptBlock, ReconciliationAction
from .logseq import LogseqClient
from .recognition import MyScriptClient
from .reconcile import BlockMatcher, PersistenceAdapter, TranscriptUpdater
from .importers import BaseImporter, JsonPageImporter

__all__ = [
    "StrokeLedger",
    "Stroke",
    "PageKey",
    "RecognizedLine",
    "TranscriptBlock",
    "ReconciliationAction",
    "LogseqClient",
    "MyScriptClient",
    "BlockMatcher",
    "PersistenceAdapter",
    "TranscriptUpdater",
    "BaseImporter",
    "JsonPageImporter"
]
