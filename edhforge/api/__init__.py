from edhforge.api.builder import router as builder_router
from edhforge.api.cards import router as cards_router
from edhforge.api.decks import router as decks_router
from edhforge.api.health import router as health_router
from edhforge.api.validation import router as validation_router

__all__ = [
    "builder_router",
    "cards_router",
    "decks_router",
    "health_router",
    "validation_router",
]
