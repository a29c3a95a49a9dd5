"""Location inference and geocoding for monument creations.

Two small collaborators live here:

- :class:`LocationInferrer` asks the Gemini text model which real-world
  place the user's scene describes, and normalises the reply into a place
  name (or ``None`` when the scene is generic or fictional).
- :class:`Geocoder` turns that place name into coordinates with geopy,
  using Google's geocoder when a Maps key is configured and OpenStreetMap
  Nominatim otherwise.

Neither class decides what happens on failure; that is the job of
:class:`~monuments.core.pipeline.CreationPipeline`, which downgrades to
Null Island instead of aborting.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from monuments.core.config import MonumentsConfig
from monuments.core.errors import GeocodingError, LocationInferenceError

logger = logging.getLogger(__name__)

LOCATION_PROMPT_TEMPLATE = (
    "A user created a monument of \"{monument}\" placed in the scene \"{scene}\". "
    "Identify the single most likely real-world location of this scene as a place name "
    "a geocoder can resolve (for example: \"Eiffel Tower, Paris, France\" or "
    "\"Grand Canyon, Arizona, USA\"). Reply with the place name only, with no extra "
    "words. If the scene is generic, imaginary, or not tied to a real place, reply "
    "with NONE."
)

# Replies that mean "no specific place"; compared case-insensitively.
_NO_PLACE_ANSWERS = frozenset(
    {
        "",
        "none",
        "n/a",
        "na",
        "null",
        "unknown",
        "generic",
        "nowhere",
        "no location",
        "not applicable",
        "generic world location",
    }
)

_STRIP_CHARS = " \t\"'`*.:;-"


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    @property
    def is_null_island(self) -> bool:
        return self.latitude == 0.0 and self.longitude == 0.0


NULL_ISLAND = Coordinates(0.0, 0.0)


def normalize_place_name(raw: str | None) -> str | None:
    """Clean a model reply down to a geocodable place name.

    Keeps only the first non-empty line, drops a leading ``Location:``
    style label, and strips surrounding quotes, markdown emphasis and
    trailing punctuation.

    Args:
        raw: The raw text returned by the model.

    Returns:
        The place name, or ``None`` if the reply means "no specific place".
    """
    if not raw:
        return None

    line = next((ln for ln in raw.splitlines() if ln.strip()), "")
    line = re.sub(r"^\s*(place|location|answer)\s*(name)?\s*:\s*", "", line, flags=re.IGNORECASE)
    name = line.strip(_STRIP_CHARS)

    if name.lower() in _NO_PLACE_ANSWERS:
        return None
    return name


class LocationInferrer:
    """Infers a real-world place name from the monument and scene prompts."""

    def __init__(self, config: MonumentsConfig, client=None) -> None:
        self._config = config
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._config.gemini_api_key:
                raise LocationInferenceError("GEMINI_API_KEY is not configured.")
            from google import genai

            self._client = genai.Client(api_key=self._config.gemini_api_key)
        return self._client

    def infer(self, monument_prompt: str, scene_prompt: str) -> str | None:
        """Ask the text model where the scene is.

        Returns:
            A place name, or ``None`` when the scene has no real-world match.

        Raises:
            LocationInferenceError: If the model cannot be reached.
        """
        client = self._get_client()
        prompt = LOCATION_PROMPT_TEMPLATE.format(
            monument=monument_prompt.strip(),
            scene=scene_prompt.strip(),
        )

        try:
            response = client.models.generate_content(
                model=self._config.text_model,
                contents=prompt,
            )
        except Exception as exc:
            logger.error(f"Error inferring location: {exc}")
            raise LocationInferenceError(f"Could not determine a location: {exc}") from exc

        place = normalize_place_name(getattr(response, "text", None))
        logger.info(f"Inferred location: {place!r}")
        return place


class Geocoder:
    """Resolves place names to coordinates with geopy."""

    def __init__(self, config: MonumentsConfig, backend=None) -> None:
        """Initialise the geocoder.

        Args:
            config: Application configuration instance.
            backend: Optional geopy geocoder.  When omitted one is built from
                ``config.geocoder`` on first use.
        """
        self._config = config
        self._backend = backend
        self._lookup = None

    def _get_backend(self):
        if self._backend is None:
            if self._config.geocoder == "google":
                if not self._config.google_maps_api_key:
                    raise GeocodingError("GOOGLE_MAPS_API_KEY is not configured.")
                from geopy.geocoders import GoogleV3

                self._backend = GoogleV3(
                    api_key=self._config.google_maps_api_key,
                    timeout=self._config.geocoder_timeout,
                )
            else:
                from geopy.geocoders import Nominatim

                self._backend = Nominatim(
                    user_agent=self._config.nominatim_user_agent,
                    timeout=self._config.geocoder_timeout,
                )
        return self._backend

    def _get_lookup(self):
        """Return the callable used for lookups.

        Nominatim lookups are spaced by ``nominatim_min_delay`` across all
        threads.  Errors are not swallowed or retried so they still surface
        as :class:`GeocodingError`.
        """
        if self._lookup is None:
            from geopy.extra.rate_limiter import RateLimiter
            from geopy.geocoders import Nominatim

            backend = self._get_backend()
            if isinstance(backend, Nominatim):
                self._lookup = RateLimiter(
                    backend.geocode,
                    min_delay_seconds=self._config.nominatim_min_delay,
                    max_retries=0,
                    swallow_exceptions=False,
                )
            else:
                self._lookup = backend.geocode
        return self._lookup

    def geocode(self, place_name: str) -> Coordinates | None:
        """Look up the coordinates of ``place_name``.

        Returns:
            The coordinates of the best match, or ``None`` when the provider
            has no result (or returns a non-finite position).

        Raises:
            GeocodingError: If the provider call fails.
        """
        from geopy.exc import GeopyError

        lookup = self._get_lookup()
        try:
            found = lookup(place_name)
        except GeopyError as exc:
            logger.error(f"Geocoding failed for {place_name!r}: {exc}")
            raise GeocodingError(f"Geocoding failed for {place_name}: {exc}") from exc

        if found is None:
            logger.info(f"No geocoding result for {place_name!r}")
            return None

        lat, lng = float(found.latitude), float(found.longitude)
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        return Coordinates(lat, lng)
