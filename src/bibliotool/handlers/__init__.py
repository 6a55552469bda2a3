"""
Tool handlers, one class per tool family.
"""

from bibliotool.handlers.base import Handler, handler_boundary
from bibliotool.handlers.citation import CitationTools
from bibliotool.handlers.collection import CollectionTools
from bibliotool.handlers.context import ContextTools
from bibliotool.handlers.library import LibraryTools
from bibliotool.handlers.note import NoteTools
from bibliotool.handlers.table import TableTools
from bibliotool.handlers.tags import TagTools
from bibliotool.handlers.web import WebTools

__all__ = [
    "CitationTools",
    "CollectionTools",
    "ContextTools",
    "Handler",
    "LibraryTools",
    "NoteTools",
    "TableTools",
    "TagTools",
    "WebTools",
    "handler_boundary",
]
