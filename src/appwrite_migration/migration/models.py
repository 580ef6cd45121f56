"""
SQLAlchemy models for migration checkpoint state.

Each row is one pagination cursor: the ID of the last item fully transferred
for a (project pair, kind, container) key.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Checkpoint(Base):
    """
    Stores one resumable cursor.

    Keys look like ``mig_checkpoint_<source>_<dest>:documents:<collection>``;
    clearing a migration deletes every key sharing the pair prefix.
    """

    __tablename__ = "checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        index=True,
        comment="Composite checkpoint key (pair prefix, kind, container ID)",
    )
    cursor: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="ID of the last item fully transferred",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), comment="When key was first saved"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="When cursor last advanced",
    )

    def __repr__(self) -> str:
        return f"<Checkpoint(key='{self.key}', cursor='{self.cursor}')>"
