from edhforge.db.database import get_session, init_db
from edhforge.db.operations import (
    delete_deck,
    get_saved_deck,
    list_decks_for_user,
    load_deck,
    save_deck,
)

__all__ = [
    "delete_deck",
    "get_saved_deck",
    "get_session",
    "init_db",
    "list_decks_for_user",
    "load_deck",
    "save_deck",
]
