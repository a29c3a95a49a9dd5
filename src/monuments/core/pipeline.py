"""The monument creation pipeline: image, then location, then coordinates.

Each stage runs in order and only the first one is fatal.  Without an image
there is nothing to show or save, so an image failure propagates.  A failed
location lookup or geocode only downgrades the result to Null Island and
records a warning for the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from monuments.core.config import MonumentsConfig
from monuments.core.errors import GeocodingError, LocationInferenceError
from monuments.core.image_generator import ImageGenerator
from monuments.core.location import NULL_ISLAND, Coordinates, Geocoder, LocationInferrer

logger = logging.getLogger(__name__)


@dataclass
class CreationDraft:
    """A generated but not yet saved creation."""

    monument_prompt: str
    scene_prompt: str
    image_url: str
    mime_type: str
    place_name: str | None = None
    coordinates: Coordinates = NULL_ISLAND
    warnings: list[str] = field(default_factory=list)

    @property
    def location_found(self) -> bool:
        return not self.coordinates.is_null_island

    def to_dict(self) -> dict:
        return {
            "monument_prompt": self.monument_prompt,
            "scene_prompt": self.scene_prompt,
            "image_url": self.image_url,
            "mime_type": self.mime_type,
            "place_name": self.place_name,
            "latitude": self.coordinates.latitude,
            "longitude": self.coordinates.longitude,
            "location_found": self.location_found,
            "warnings": list(self.warnings),
        }


class CreationPipeline:
    """Runs the generate → infer → geocode sequence for one request."""

    def __init__(
        self,
        config: MonumentsConfig,
        *,
        image_generator: ImageGenerator | None = None,
        location_inferrer: LocationInferrer | None = None,
        geocoder: Geocoder | None = None,
    ) -> None:
        self._config = config
        self.image_generator = image_generator or ImageGenerator(config)
        self.location_inferrer = location_inferrer or LocationInferrer(config)
        self.geocoder = geocoder or Geocoder(config)

    def run(self, monument_prompt: str, scene_prompt: str) -> CreationDraft:
        """Generate an image and locate it.

        Args:
            monument_prompt: Description of the monument subject.
            scene_prompt: Description of the surrounding scene.

        Returns:
            A :class:`CreationDraft`.  Its coordinates are Null Island when no
            real-world place could be inferred or geocoded.

        Raises:
            ValueError: If either prompt is blank.
            ImageGenerationError: If the image could not be generated.
        """
        monument_prompt = (monument_prompt or "").strip()
        scene_prompt = (scene_prompt or "").strip()
        if not monument_prompt or not scene_prompt:
            raise ValueError("Please enter both monument and scene descriptions.")

        image = self.image_generator.generate(monument_prompt, scene_prompt)
        draft = CreationDraft(
            monument_prompt=monument_prompt,
            scene_prompt=scene_prompt,
            image_url=image.data_uri,
            mime_type=image.mime_type,
        )

        try:
            draft.place_name = self.location_inferrer.infer(monument_prompt, scene_prompt)
        except LocationInferenceError as exc:
            logger.warning(f"Location inference failed, using Null Island: {exc.message}")
            draft.warnings.append(
                "Could not determine a real-world location; placing the monument at a "
                "generic world location."
            )
            return draft

        if draft.place_name is None:
            logger.info("Scene has no real-world location, using Null Island")
            return draft

        try:
            coordinates = self.geocoder.geocode(draft.place_name)
        except GeocodingError as exc:
            logger.warning(f"Geocoding failed, using Null Island: {exc.message}")
            draft.warnings.append(
                f"Could not find coordinates for {draft.place_name}; placing the monument "
                "at a generic world location."
            )
            return draft

        if coordinates is None:
            draft.warnings.append(
                f"No map match for {draft.place_name}; placing the monument at a generic "
                "world location."
            )
            return draft

        draft.coordinates = coordinates
        logger.info(
            f"Located creation at {draft.place_name} "
            f"({coordinates.latitude:.5f}, {coordinates.longitude:.5f})"
        )
        return draft
