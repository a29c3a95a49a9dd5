"""Core functionality for monument creation.

Architecture Overview
---------------------
1. **Configuration** (config.py): Pydantic Settings loaded from
   ``MONUMENTS_*`` environment variables and ``.env``.
2. **Generation** (image_generator.py, location.py): thin wrappers around the
   Gemini image model, the Gemini text model, and geopy geocoders.
3. **Pipeline** (pipeline.py): runs generation, location inference and
   geocoding in order, downgrading to Null Island when a location stage fails.
4. **Storage** (database.py): SQLAlchemy model and store for the
   ``creations`` table.
5. **Map support** (markers.py): groups creations into one marker per
   rounded coordinate.
"""

from monuments.core.config import MonumentsConfig, config
from monuments.core.database import CreationStore
from monuments.core.pipeline import CreationDraft, CreationPipeline

__all__ = [
    "CreationDraft",
    "CreationPipeline",
    "CreationStore",
    "MonumentsConfig",
    "config",
]
