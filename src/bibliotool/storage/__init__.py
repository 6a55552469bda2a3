"""
In-memory backends for the library, analysis tables and conversation context.
"""

from bibliotool.storage.context_store import ContextEntry, ContextStore
from bibliotool.storage.library_store import (
    USER_LIBRARY_ID,
    Collection,
    Creator,
    ItemKind,
    Library,
    LibraryItem,
    LibraryStore,
)
from bibliotool.storage.table_store import AnalysisTable, TableColumn, TableStore

__all__ = [
    "USER_LIBRARY_ID",
    "AnalysisTable",
    "Collection",
    "ContextEntry",
    "ContextStore",
    "Creator",
    "ItemKind",
    "Library",
    "LibraryItem",
    "LibraryStore",
    "TableColumn",
    "TableStore",
]
