"""
Database CRUD operations for saved decks.

Records are stored as the serialized minimized deck string; encoding,
decoding and the size ceiling live in services.deck_codec. Concurrent
saves of the same record are last-write-wins.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from edhforge.models.db import SavedDeckDB, UserDeckLinkDB


async def get_saved_deck(session: AsyncSession, record_id: str) -> SavedDeckDB | None:
    """Get a saved deck row by id."""
    return await session.get(SavedDeckDB, record_id)


async def save_deck(
    session: AsyncSession,
    user_id: str,
    record: str,
    *,
    commander_name: str,
    deck_name: str,
    record_id: str | None = None,
) -> str:
    """
    Store a deck record and link it to the user.

    With a record_id that already exists the row is overwritten, otherwise
    a new row is created.

    Returns:
        The record id
    """
    deck = await get_saved_deck(session, record_id) if record_id else None
    if deck is None:
        deck = SavedDeckDB(commander_name=commander_name, deck_name=deck_name, deck_data=record)
        if record_id:
            deck.id = record_id
        session.add(deck)
        await session.flush()
    else:
        deck.commander_name = commander_name
        deck.deck_name = deck_name
        deck.deck_data = record

    link = await session.execute(
        select(UserDeckLinkDB).where(
            UserDeckLinkDB.user_id == user_id,
            UserDeckLinkDB.deck_id == deck.id,
        )
    )
    if link.scalar_one_or_none() is None:
        session.add(UserDeckLinkDB(user_id=user_id, deck_id=deck.id))

    await session.flush()
    return deck.id


async def load_deck(session: AsyncSession, record_id: str) -> str | None:
    """
    Get the stored record string for a deck.

    Returns None if no deck has this id.
    """
    deck = await get_saved_deck(session, record_id)
    return deck.deck_data if deck else None


async def list_decks_for_user(session: AsyncSession, user_id: str) -> list[str]:
    """Record ids linked to a user, most recently linked first."""
    result = await session.execute(
        select(UserDeckLinkDB.deck_id)
        .where(UserDeckLinkDB.user_id == user_id)
        .order_by(UserDeckLinkDB.id.desc())
    )
    return list(result.scalars().all())


async def delete_deck(session: AsyncSession, record_id: str) -> bool:
    """
    Delete a deck and its user links.

    Returns True if deleted, False if not found.
    """
    result = await session.execute(
        select(SavedDeckDB)
        .where(SavedDeckDB.id == record_id)
        .options(selectinload(SavedDeckDB.owners))
    )
    deck = result.scalar_one_or_none()
    if not deck:
        return False

    await session.delete(deck)
    return True
