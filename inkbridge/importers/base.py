"""
Base importer interface for Inkbridge.

This module defines the abstract interface that all stroke importers must implement.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from ..models import PageKey, Stroke


class BaseImporter(ABC):
    """
    Abstract base class for all stroke importers.

    Each importer converts pen data from a specific source (stored page
    documents, live capture dumps, etc.) into Stroke objects.
    """

    @abstractmethod
    def get_all_strokes(self) -> List[Stroke]:
        """
        Retrieve all strokes from the data source.

        Returns:
            List of Stroke objects, each carrying its page and stable identifier
        """
        pass

    def get_strokes_by_page(self) -> Dict[PageKey, List[Stroke]]:
        """
        Group the source's strokes by page.

        Returns:
            Mapping of page to its strokes in capture order
        """
        pages: Dict[PageKey, List[Stroke]] = {}
        for stroke in self.get_all_strokes():
            pages.setdefault(stroke.page_key, []).append(stroke)
        for strokes in pages.values():
            strokes.sort(key=lambda s: (s.start_time or 0, s.stroke_id))
        return pages
