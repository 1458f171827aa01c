"""
SQLAlchemy ORM models.

A document is persisted as one JSON blob (the pydantic ``Document`` dump)
next to a few indexed columns used for listing.
"""

from datetime import UTC, datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from livenote.services.storage.database import Base


class DocumentRecord(Base):
    """A stored note document."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), index=True
    )
    block_count: Mapped[int] = mapped_column(default=0)
    body: Mapped[dict] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<DocumentRecord id={self.id!r} title={self.title!r}>"
