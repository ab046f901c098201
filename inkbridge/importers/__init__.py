"""Stroke importers for various source formats."""

from .base import BaseImporter
from .json_pages import JsonPageImporter

__all__ = ["BaseImporter", "JsonPageImporter"]
