"""
Storage module - Document persistence and export.
"""

from livenote.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    init_db,
    reset_engine,
)
from livenote.services.storage.export import (
    export_as_markdown,
    export_as_text,
    export_document,
)
from livenote.services.storage.models_db import DocumentRecord
from livenote.services.storage.repository import DocumentRepository

__all__ = [
    "Base",
    "DocumentRecord",
    "DocumentRepository",
    "close_db",
    "export_as_markdown",
    "export_as_text",
    "export_document",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
