"""AI Monument Creator — FastAPI application.

This module is the single entry point for the web application.  It defines
the ``create_app()`` factory, the module-level ``app`` instance, all REST API
routes, and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :mod:`monuments.core.config` (environment
  variables and ``.env``).
- **Generation** is performed by
  :class:`~monuments.core.pipeline.CreationPipeline`, which calls the image
  model, the location model, and the geocoder in sequence.
- **Persistence** uses :class:`~monuments.core.database.CreationStore`, a
  pooled SQLAlchemy engine over the ``creations`` table.
- **The HTML pages** are served as raw ``HTMLResponse`` objects; all dynamic
  data is fetched by the browser from the JSON endpoints below.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/``                         Map page
GET       ``/create``                   Create page
GET       ``/api/config``               Frontend configuration
POST      ``/api/generate``             Generate an image and locate it
GET       ``/api/creations``            List creations (no images)
GET       ``/api/creations?id=N``       Single creation with image
POST      ``/api/creations``            Save a creation
GET       ``/api/creations/{id}``       Single creation with image
GET       ``/api/markers``              Creations grouped into map markers
GET       ``/api/stats``                Creation counts
GET       ``/api/debug-env``            Which credentials are configured
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    monuments

Direct invocation::

    python -m monuments.api.main
"""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from monuments import __version__
from monuments.api.models import CreateCreationRequest, GenerateRequest
from monuments.api.protection import CaptchaVerifier, CreateRateLimiter
from monuments.core.config import MonumentsConfig
from monuments.core.config import config as default_config
from monuments.core.database import CreationStore
from monuments.core.errors import DatabaseNotConfiguredError, MonumentsError
from monuments.core.markers import creations_bounds, group_creations
from monuments.core.pipeline import CreationPipeline

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = (
    "Missing required fields: monumentPrompt, scenePrompt, imageUrl, latitude, "
    "and longitude are all necessary."
)
INVALID_COORDINATES_MESSAGE = "Invalid latitude or longitude values. Must be valid numbers."
INVALID_IMAGE_MESSAGE = "Invalid imageUrl. Must be a base64 data:image URI."

# Ids are stored in a 32-bit INTEGER column.
MAX_CREATION_ID = 2**31 - 1

_REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the per-process collaborators and release them on shutdown.

    Anything already placed on ``app.state`` (for example by tests) is kept
    as-is.  The ``creations`` table is created on startup when a database is
    configured; failure to do so is logged but does not stop the server, so
    the read endpoints can still report the problem as JSON.
    """
    cfg: MonumentsConfig = app.state.config

    if getattr(app.state, "store", None) is None:
        app.state.store = CreationStore(cfg)
    if getattr(app.state, "pipeline", None) is None:
        app.state.pipeline = CreationPipeline(cfg)
    if getattr(app.state, "rate_limiter", None) is None:
        app.state.rate_limiter = CreateRateLimiter.from_config(cfg)
    if getattr(app.state, "captcha", None) is None:
        app.state.captcha = CaptchaVerifier(cfg)

    try:
        app.state.store.create_tables()
    except DatabaseNotConfiguredError:
        logger.warning("DATABASE_URL is not set; creation storage is unavailable.")
    except SQLAlchemyError as exc:
        logger.error(f"Could not prepare the creations table: {exc}")

    yield

    app.state.store.dispose()
    logger.info("Database connections released on shutdown.")


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _read_template(app: FastAPI, name: str) -> HTMLResponse:
    path = app.state.config.templates_dir / name
    if path.exists():
        return HTMLResponse(content=path.read_text(encoding="utf-8"))
    raise HTTPException(status_code=404, detail=f"{name} not found")


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _parse_coordinate(value, limit: float) -> float:
    """Convert a latitude or longitude to a finite float within ``±limit``.

    Raises:
        HTTPException: 400 when the value is not a usable number.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=INVALID_COORDINATES_MESSAGE)
    if not math.isfinite(number) or abs(number) > limit:
        raise HTTPException(status_code=400, detail=INVALID_COORDINATES_MESSAGE)
    return number


def _parse_creation_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid monument id")


def _single_creation(store: CreationStore, creation_id: int) -> dict:
    if not 1 <= creation_id <= MAX_CREATION_ID:
        raise HTTPException(status_code=404, detail="Monument not found")
    creation = store.get_creation(creation_id)
    if creation is None:
        raise HTTPException(status_code=404, detail="Monument not found")
    return creation


def _invalid_fields(exc: RequestValidationError) -> list[str]:
    """Name the request fields that failed validation, in order, once each."""
    names: list[str] = []
    for error in exc.errors():
        loc = list(error.get("loc") or ())
        if loc and loc[0] in _REQUEST_LOCATIONS:
            loc = loc[1:]
        name = str(loc[0]) if loc else "request body"
        if name not in names:
            names.append(name)
    return names


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError):
        fields = _invalid_fields(exc)
        logger.info(f"Rejected request with invalid fields: {fields}")
        return JSONResponse(
            status_code=400,
            content={"detail": f"Invalid or missing fields: {', '.join(fields)}."},
        )

    @app.exception_handler(MonumentsError)
    async def handle_monuments_error(_request: Request, exc: MonumentsError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(_request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected server error occurred."},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_request: Request, exc: Exception):
        logger.exception("Unhandled server error")
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected server error occurred."},
        )


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(app_config: MonumentsConfig | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        app_config: Configuration to use.  Defaults to the global
            :data:`~monuments.core.config.config` instance.

    Returns:
        A configured :class:`FastAPI` instance.  Collaborators are attached
        to ``app.state`` by :func:`lifespan` when the app starts.
    """
    cfg = app_config or default_config

    app = FastAPI(
        title="AI Monument Creator",
        description="Generate monuments in real-world scenes and pin them on a map.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if cfg.static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(cfg.static_dir)), name="static")

    _register_exception_handlers(app)

    # -- Pages ---------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    async def map_page() -> HTMLResponse:
        """Serve the map of saved creations."""
        return _read_template(app, "map.html")

    @app.get("/create", response_class=HTMLResponse)
    async def create_page() -> HTMLResponse:
        """Serve the monument creation page."""
        return _read_template(app, "create.html")

    # -- Configuration -------------------------------------------------------

    @app.get("/api/config")
    async def get_config() -> dict:
        """Return the settings the browser pages need.

        Only public values are exposed: the reCAPTCHA *site* key and the
        marker grouping precision.  Secrets never leave the server.
        """
        return {
            "version": __version__,
            "captcha_enabled": cfg.captcha_enabled,
            "recaptcha_site_key": cfg.recaptcha_site_key if cfg.captcha_enabled else None,
            "marker_precision": cfg.marker_precision,
        }

    # -- Generation ----------------------------------------------------------

    @app.post("/api/generate")
    def generate_creation(req: GenerateRequest) -> dict:
        """Generate a monument image and infer where it stands.

        Runs :meth:`CreationPipeline.run`.  Image failures are returned as
        502 errors; location and geocoding failures only add a warning and
        fall back to Null Island.  Nothing is persisted here.

        Raises:
            HTTPException: 400 if either prompt is blank.
        """
        pipeline: CreationPipeline = app.state.pipeline
        try:
            draft = pipeline.run(req.monument_prompt, req.scene_prompt)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return draft.to_dict()

    # -- Creations -----------------------------------------------------------

    @app.get("/api/creations")
    def list_creations(creation_id: str | None = Query(default=None, alias="id")):
        """List every creation without images, or one creation with its image.

        Without ``?id=`` the response is a newest-first list that never
        includes ``image_url``.  With ``?id=N`` the single creation is
        returned, image included.

        Raises:
            HTTPException: 400 for a non-integer id, 404 if not found.
        """
        store: CreationStore = app.state.store
        if creation_id is not None and creation_id != "":
            return _single_creation(store, _parse_creation_id(creation_id))
        return store.list_creations()

    @app.get("/api/creations/{creation_id}")
    def get_creation(creation_id: str) -> dict:
        """Return a single creation with its image.

        Raises:
            HTTPException: 400 for a non-integer id, 404 if not found.
        """
        return _single_creation(app.state.store, _parse_creation_id(creation_id))

    @app.post("/api/creations", status_code=201)
    def save_creation(req: CreateCreationRequest, request: Request) -> dict:
        """Persist a generated creation.

        Steps:

        1. Apply the per-client rate limit (when enabled).
        2. Require every field and coerce the coordinates to numbers.
        3. Verify the reCAPTCHA token (when a secret is configured).
        4. Insert the row and return it.

        Raises:
            HTTPException: 429 over the rate limit; 400 for missing or
                invalid fields.
        """
        client = _client_key(request)
        if not app.state.rate_limiter.hit(client):
            raise HTTPException(
                status_code=429,
                detail="Too many creations from this address. Please try again later.",
            )

        required = (req.monument_prompt, req.scene_prompt, req.image_url, req.latitude, req.longitude)
        if any(value is None or (isinstance(value, str) and not value.strip()) for value in required):
            raise HTTPException(status_code=400, detail=MISSING_FIELDS_MESSAGE)

        latitude = _parse_coordinate(req.latitude, 90.0)
        longitude = _parse_coordinate(req.longitude, 180.0)

        if not req.image_url.startswith("data:image/") or ";base64," not in req.image_url:
            raise HTTPException(status_code=400, detail=INVALID_IMAGE_MESSAGE)

        app.state.captcha.verify(req.captcha_token, client)

        return app.state.store.add_creation(
            monument_prompt=req.monument_prompt.strip(),
            scene_prompt=req.scene_prompt.strip(),
            image_url=req.image_url,
            latitude=latitude,
            longitude=longitude,
        )

    # -- Map and diagnostics -------------------------------------------------

    @app.get("/api/markers")
    def get_markers() -> dict:
        """Return creations grouped into one marker per rounded position."""
        groups = group_creations(app.state.store.list_creations(), cfg.marker_precision)
        return {
            "precision": cfg.marker_precision,
            "markers": [group.to_dict() for group in groups],
            "bounds": creations_bounds(groups),
        }

    @app.get("/api/stats")
    def get_stats() -> dict:
        """Return creation counts, split by whether a location was found."""
        store: CreationStore = app.state.store
        total = store.count_creations()
        located = store.count_located()
        return {
            "total_creations": total,
            "located_creations": located,
            "null_island_creations": total - located,
        }

    @app.get("/api/debug-env")
    async def debug_env() -> dict:
        """Report which credentials are configured, never their values."""
        backend = cfg.database_url.split("://", 1)[0] if cfg.database_url else None
        return {
            "database_url_configured": bool(cfg.database_url),
            "database_backend": backend,
            "gemini_api_key_configured": bool(cfg.gemini_api_key),
            "geocoder": cfg.geocoder,
            "google_maps_api_key_configured": bool(cfg.google_maps_api_key),
            "captcha_enabled": cfg.captcha_enabled,
            "rate_limit_enabled": cfg.rate_limit_enabled,
        }

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~monuments.core.config.config` (which
    loads from ``MONUMENTS_SERVER_HOST`` and ``MONUMENTS_SERVER_PORT``).
    Registered as the ``monuments`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "monuments.api.main:app",
        host=default_config.server_host,
        port=default_config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
