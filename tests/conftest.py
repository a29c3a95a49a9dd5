"""Shared pytest fixtures for the Monument Creator tests."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from monuments.core.config import MonumentsConfig
from monuments.core.database import CreationStore
from monuments.core.image_generator import GeneratedImage, ImageGenerator
from monuments.core.location import Coordinates, Geocoder, LocationInferrer
from monuments.core.pipeline import CreationPipeline

# A 1x1 transparent PNG, small enough to inline in assertions.
PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PNG_DATA_URI = f"data:image/png;base64,{PNG_BASE64}"

# Environment variables that would leak real credentials into the tests.
_CREDENTIAL_VARS = (
    "DATABASE_URL",
    "GEMINI_API_KEY",
    "API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "RECAPTCHA_SECRET_KEY",
)


@pytest.fixture(autouse=True)
def _clean_credentials(monkeypatch) -> None:
    """Remove credential variables from the environment for every test."""
    for name in _CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"MONUMENTS_{name}", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config() -> MonumentsConfig:
    """Create a test configuration with no credentials and no .env file.

    Returns:
        MonumentsConfig instance for testing
    """
    return MonumentsConfig(
        _env_file=None,
        database_url=None,
        gemini_api_key=None,
        rate_limit_enabled=False,
        recaptcha_secret_key=None,
        marker_precision=4,
    )


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine shared across threads.

    ``StaticPool`` keeps a single connection so every session sees the same
    in-memory database, and ``check_same_thread=False`` lets FastAPI's
    threadpool use it.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(test_config: MonumentsConfig, sqlite_engine) -> CreationStore:
    """A CreationStore over an empty in-memory database."""
    creation_store = CreationStore(test_config, engine=sqlite_engine)
    creation_store.create_tables()
    return creation_store


@pytest.fixture
def mock_image_generator() -> MagicMock:
    """ImageGenerator double that always returns a tiny PNG."""
    generator = MagicMock(spec=ImageGenerator)
    generator.generate.return_value = GeneratedImage(base64_data=PNG_BASE64, mime_type="image/png")
    return generator


@pytest.fixture
def mock_location_inferrer() -> MagicMock:
    """LocationInferrer double that places every scene in Paris."""
    inferrer = MagicMock(spec=LocationInferrer)
    inferrer.infer.return_value = "Eiffel Tower, Paris, France"
    return inferrer


@pytest.fixture
def mock_geocoder() -> MagicMock:
    """Geocoder double that resolves to the Eiffel Tower."""
    geocoder = MagicMock(spec=Geocoder)
    geocoder.geocode.return_value = Coordinates(48.8584, 2.2945)
    return geocoder


@pytest.fixture
def pipeline(
    test_config: MonumentsConfig,
    mock_image_generator: MagicMock,
    mock_location_inferrer: MagicMock,
    mock_geocoder: MagicMock,
) -> CreationPipeline:
    """A CreationPipeline wired to mocked external services."""
    return CreationPipeline(
        test_config,
        image_generator=mock_image_generator,
        location_inferrer=mock_location_inferrer,
        geocoder=mock_geocoder,
    )


@pytest.fixture
def make_app(test_config: MonumentsConfig, store: CreationStore, pipeline: CreationPipeline):
    """Factory building an app with test collaborators on ``app.state``.

    Keyword overrides replace individual ``app.state`` attributes, e.g.
    ``make_app(rate_limiter=CreateRateLimiter("2/minute"))``.
    """
    from monuments.api.main import create_app

    def _make(app_config: MonumentsConfig | None = None, **state):
        app = create_app(app_config or test_config)
        app.state.store = store
        app.state.pipeline = pipeline
        for name, value in state.items():
            setattr(app.state, name, value)
        return app

    return _make


@pytest.fixture
def test_client(make_app) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with mocked generation and an in-memory store."""
    with TestClient(make_app()) as client:
        yield client


@pytest.fixture
def creation_payload() -> dict:
    """A valid ``POST /api/creations`` body using the browser's field names."""
    return {
        "monumentPrompt": "A giant bronze owl",
        "scenePrompt": "The lawn in front of the Eiffel Tower",
        "imageUrl": PNG_DATA_URI,
        "latitude": 48.8584,
        "longitude": 2.2945,
    }


@pytest.fixture
def png_data_uri() -> str:
    """The data URI every mocked image generation returns."""
    return PNG_DATA_URI
