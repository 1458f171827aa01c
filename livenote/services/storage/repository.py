"""
Persistence for note documents.

``DocumentRepository`` receives an ``AsyncSession`` and calls ``flush()``
rather than ``commit()`` so transaction boundaries stay with the caller
(typically :func:`get_session`).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from livenote.core.exceptions import DocumentNotFoundError
from livenote.core.models import Document, DocumentSummary
from livenote.services.storage.models_db import DocumentRecord

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Load, save, list and delete documents.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_record(self, document_id: str) -> DocumentRecord:
        record = await self._session.get(DocumentRecord, document_id)
        if record is None:
            raise DocumentNotFoundError(document_id)
        return record

    async def load(self, document_id: str) -> Document:
        """Return the document with ``document_id``.

        Raises:
            DocumentNotFoundError: If no such document is stored.
        """
        record = await self._get_record(document_id)
        return Document.model_validate(record.body)

    async def save(self, document: Document) -> None:
        """Insert or overwrite ``document``."""
        body = document.model_dump(mode="json")
        record = await self._session.get(DocumentRecord, document.id)
        if record is None:
            record = DocumentRecord(id=document.id, created_at=document.metadata.created_at)
            self._session.add(record)
        record.title = document.title
        record.updated_at = document.metadata.last_modified
        record.block_count = len(document.blocks)
        record.body = body
        await self._session.flush()
        logger.debug("Saved document %s (%s blocks)", document.id, len(document.blocks))

    async def list_documents(self, limit: int = 50, offset: int = 0) -> list[DocumentSummary]:
        """Return stored documents, most recently modified first."""
        stmt = (
            select(DocumentRecord)
            .order_by(DocumentRecord.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [
            DocumentSummary(
                id=record.id,
                title=record.title,
                created_at=record.created_at,
                updated_at=record.updated_at,
            )
            for record in result.scalars().all()
        ]

    async def delete(self, document_id: str) -> None:
        """Delete a document.

        Raises:
            DocumentNotFoundError: If no such document is stored.
        """
        record = await self._get_record(document_id)
        await self._session.delete(record)
        await self._session.flush()
