"""
SQLAlchemy ORM models for persistent storage.

A saved deck is one opaque minimized record (see services.deck_codec) plus
the names needed to list it. Users own decks through an association row.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _new_record_id() -> str:
    return uuid.uuid4().hex


class SavedDeckDB(Base):
    """
    A saved deck record.

    deck_data holds the serialized minimized deck, never more than the
    configured payload ceiling.
    """

    __tablename__ = "saved_decks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_record_id)
    commander_name: Mapped[str] = mapped_column(String(255), index=True)
    deck_name: Mapped[str] = mapped_column(String(255))
    deck_data: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    owners: Mapped[list["UserDeckLinkDB"]] = relationship(
        back_populates="deck", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<SavedDeckDB(id={self.id}, deck_name={self.deck_name})>"


class UserDeckLinkDB(Base):
    """Association between a user and a deck they saved."""

    __tablename__ = "user_deck_links"
    __table_args__ = (UniqueConstraint("user_id", "deck_id", name="uq_user_deck"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    deck_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("saved_decks.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    deck: Mapped["SavedDeckDB"] = relationship(back_populates="owners")

    def __repr__(self) -> str:
        return f"<UserDeckLinkDB(user_id={self.user_id}, deck_id={self.deck_id})>"
