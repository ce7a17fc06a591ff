"""
Collaborative Story API - Main Application

Run with:
    uvicorn collab_story.api.main:app --port 8080

API Documentation available at:
    - Swagger UI: http://localhost:8080/docs
    - ReDoc: http://localhost:8080/redoc
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from collab_story import __version__
from collab_story.api.deps import get_metrics, get_settings
from collab_story.api.routers import health, stories, words
from collab_story.config import load_env_file
from collab_story.logging_utils import configure_logging
from collab_story.weaving.errors import (
    InconsistentState,
    InvalidWord,
    StorageUnavailable,
    StoryNotFound,
    WeaveError,
)

load_env_file()
configure_logging(get_settings().log_level, get_settings().log_file)

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Collaborative Story API",
    description="""
    Build stories one word at a time.

    Words fill a two-word title, then fifteen-word sentences, ten sentences
    to a paragraph and seven paragraphs to a story. A finished story is
    followed by a fresh one on the next word.
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def log_duration(request: Request, call_next):
    """Log every request with its processing time."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    get_metrics().timing("http.request_ms", elapsed_ms)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.1f}ms"
    )
    return response


# =============================================================================
# Error mapping: every error body is {"error": "<message>"}
# =============================================================================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(InvalidWord)
async def invalid_word_handler(request: Request, exc: InvalidWord):
    return _error(400, exc.message)


@app.exception_handler(StoryNotFound)
async def story_not_found_handler(request: Request, exc: StoryNotFound):
    return _error(404, exc.message)


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    return _error(503, str(exc))


@app.exception_handler(InconsistentState)
async def inconsistent_state_handler(request: Request, exc: InconsistentState):
    logger.error(f"Inconsistent story state on {request.url.path}: {exc}")
    return _error(500, "internal error: inconsistent story state")


@app.exception_handler(WeaveError)
async def weave_error_handler(request: Request, exc: WeaveError):
    logger.error(f"Unhandled weave error on {request.url.path}: {exc}")
    return _error(500, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    return _error(400, message)


# Register routers
app.include_router(health.router)
app.include_router(words.router)
app.include_router(stories.router)


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": "Collaborative Story API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
