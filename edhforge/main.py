import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from edhforge.api import (
    builder_router,
    cards_router,
    decks_router,
    health_router,
    validation_router,
)
from edhforge.api.dependencies import close_card_source
from edhforge.config import settings
from edhforge.db.database import init_db
from edhforge.models.failure import (
    ApiResponse,
    FailureKind,
    KnownError,
    create_known_failure,
    create_unknown_failure,
    error_to_response,
    is_finalized,
)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    configure_logging()
    await init_db()
    yield
    await close_card_source()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("edhforge"),
    lifespan=lifespan,
)


def envelope_response(response: ApiResponse[Any], status_code: int) -> JSONResponse:
    """Serialize an error envelope; only finalized envelopes may leave the API."""
    if not is_finalized(response):
        raise ValueError(f"{response.outcome.value} response was not finalized")
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Every KnownError leaves the API as a finalized envelope."""
    return envelope_response(error_to_response(exc), exc.status_code)


@app.exception_handler(httpx.HTTPError)
async def card_data_error_handler(_request: Request, exc: httpx.HTTPError) -> JSONResponse:
    """The card data provider failed after retries."""
    logger.error("Card data provider request failed: %s", exc)
    response = create_known_failure(
        FailureKind.SERVICE_UNAVAILABLE, "Card data provider unavailable"
    )
    return envelope_response(response, 503)


@app.exception_handler(Exception)
async def unknown_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """No unclassified error leaves the API as a raw 500."""
    logger.error("Unhandled %s", type(exc).__name__, exc_info=exc)
    return envelope_response(create_unknown_failure(exc), 500)


app.include_router(builder_router)
app.include_router(cards_router)
app.include_router(decks_router)
app.include_router(health_router)
app.include_router(validation_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
