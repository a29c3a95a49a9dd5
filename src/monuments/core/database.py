"""Relational storage for monument creations.

Creations live in a single ``creations`` table.  Rows are inserted once and
never updated or deleted, so the store only exposes insert and read
operations.

The engine (and its connection pool) is created lazily on first use.  This
lets the application boot without ``DATABASE_URL`` and report the problem
per-request as a JSON error instead of crashing at import time.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, Text, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from monuments.core.config import MonumentsConfig
from monuments.core.errors import DatabaseNotConfiguredError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Creation(Base):
    """One saved monument: prompts, image data URI, and fixed coordinates."""

    __tablename__ = "creations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    monument_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    scene_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


# Columns returned by the list endpoint; the image payload is deliberately absent.
_SUMMARY_COLUMNS = (
    Creation.id,
    Creation.monument_prompt,
    Creation.scene_prompt,
    Creation.latitude,
    Creation.longitude,
    Creation.created_at,
)


def _isoformat(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _summary_to_dict(row) -> dict:
    return {
        "id": row.id,
        "monument_prompt": row.monument_prompt,
        "scene_prompt": row.scene_prompt,
        "latitude": float(row.latitude),
        "longitude": float(row.longitude),
        "created_at": _isoformat(row.created_at),
    }


def _creation_to_dict(creation: Creation) -> dict:
    data = _summary_to_dict(creation)
    data["image_url"] = creation.image_url
    return data


class CreationStore:
    """Insert and read access to the ``creations`` table.

    Attributes:
        _config (MonumentsConfig):
            Application configuration — database URL and pool sizing.
        _engine (Engine | None):
            The pooled SQLAlchemy engine, or ``None`` until first use.
    """

    def __init__(self, config: MonumentsConfig, engine: Engine | None = None) -> None:
        self._config = config
        self._engine = engine
        self._sessionmaker: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """Return the engine, creating the connection pool on first access.

        Raises:
            DatabaseNotConfiguredError: If no database URL is configured.
        """
        if self._engine is None:
            url = self._config.database_url
            if not url:
                raise DatabaseNotConfiguredError(
                    "DATABASE_URL environment variable is not set. "
                    "Please configure it before saving creations."
                )
            kwargs: dict = {"pool_pre_ping": True}
            if not url.startswith("sqlite"):
                kwargs["pool_size"] = self._config.db_pool_size
                kwargs["max_overflow"] = self._config.db_max_overflow
            self._engine = create_engine(url, **kwargs)
            logger.info("Created database connection pool")
        return self._engine

    def _session(self) -> Session:
        if self._sessionmaker is None:
            self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._sessionmaker()

    def create_tables(self) -> None:
        """Create the ``creations`` table if it does not exist."""
        Base.metadata.create_all(self.engine)

    def add_creation(
        self,
        *,
        monument_prompt: str,
        scene_prompt: str,
        image_url: str,
        latitude: float,
        longitude: float,
    ) -> dict:
        """Insert a creation and return the stored row, image included."""
        creation = Creation(
            monument_prompt=monument_prompt,
            scene_prompt=scene_prompt,
            image_url=image_url,
            latitude=latitude,
            longitude=longitude,
        )
        with self._session() as session:
            session.add(creation)
            session.commit()
            session.refresh(creation)
            logger.info(
                f"Saved creation {creation.id} at ({creation.latitude}, {creation.longitude})"
            )
            return _creation_to_dict(creation)

    def list_creations(self) -> list[dict]:
        """Return every creation, newest first, without image payloads."""
        stmt = select(*_SUMMARY_COLUMNS).order_by(
            Creation.created_at.desc(), Creation.id.desc()
        )
        with self._session() as session:
            return [_summary_to_dict(row) for row in session.execute(stmt)]

    def get_creation(self, creation_id: int) -> dict | None:
        """Return a single creation with its image, or ``None`` if missing."""
        with self._session() as session:
            creation = session.get(Creation, creation_id)
            if creation is None:
                return None
            return _creation_to_dict(creation)

    def count_creations(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count(Creation.id))) or 0

    def count_located(self) -> int:
        """Count creations whose coordinates are not Null Island."""
        stmt = select(func.count(Creation.id)).where(
            (Creation.latitude != 0.0) | (Creation.longitude != 0.0)
        )
        with self._session() as session:
            return session.scalar(stmt) or 0

    def dispose(self) -> None:
        """Close every pooled connection."""
        if self._engine is not None:
            self._engine.dispose()
