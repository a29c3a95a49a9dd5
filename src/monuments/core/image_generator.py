"""Monument image generation through the Gemini image model.

This module provides :class:`ImageGenerator`, the single point of contact
with the generative image API.  It composes the user's two prompts into one
photorealistic instruction, calls the model, and hands back the first inline
image the model returns.

Key Responsibilities
--------------------
- **Prompt composition** — :func:`build_composite_prompt` turns a monument
  description and a scene description into one instruction that asks for a
  grounded, realistically sized monument matching the scene's lighting.
- **Lazy client creation** — the ``google-genai`` client is only built on
  the first call to :meth:`ImageGenerator.generate`, so the API can start
  without credentials and fail per-request instead.
- **Error normalisation** — every failure (missing key, API error, response
  without image data) surfaces as :class:`ImageGenerationError` with a
  message that can be shown to the user as-is.

Usage
-----
::

    from monuments.core.config import config
    from monuments.core.image_generator import ImageGenerator

    generator = ImageGenerator(config)
    image = generator.generate("a giant bronze owl", "a misty Scottish glen")
    print(image.data_uri[:40])
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from monuments.core.config import MonumentsConfig
from monuments.core.errors import ImageGenerationError

logger = logging.getLogger(__name__)

COMPOSITE_PROMPT_TEMPLATE = (
    'Create a photorealistic image where "{monument}" is designed as a monument and '
    'seamlessly placed in "{scene}". The monument must be intelligently positioned as a '
    "focal point, firmly grounded, and realistically sized relative to its surroundings. "
    "Ensure lighting, shadows, and perspective perfectly match the scene, making it "
    "indistinguishable from a real photograph."
)


def build_composite_prompt(monument_prompt: str, scene_prompt: str) -> str:
    """Combine the monument and scene descriptions into one image instruction.

    Args:
        monument_prompt: The person, animal, bird, or object to immortalise.
        scene_prompt: The place the monument should stand in.

    Returns:
        The composite instruction sent to the image model.
    """
    return COMPOSITE_PROMPT_TEMPLATE.format(
        monument=monument_prompt.strip(),
        scene=scene_prompt.strip(),
    )


@dataclass(frozen=True)
class GeneratedImage:
    """Base64 image payload returned by the image model."""

    base64_data: str
    mime_type: str

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"


class ImageGenerator:
    """Renders monument composites with the configured Gemini image model.

    Attributes:
        _config (MonumentsConfig):
            Application configuration — API key and model identifier.
        _client:
            The ``google.genai.Client`` instance, or ``None`` until first use.
    """

    def __init__(self, config: MonumentsConfig, client=None) -> None:
        """Initialise the generator.

        Args:
            config: Application configuration instance.
            client: Optional pre-built ``google.genai.Client``.  When omitted
                one is created lazily from ``config.gemini_api_key``.
        """
        self._config = config
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._config.gemini_api_key:
                raise ImageGenerationError(
                    "Failed to generate image: GEMINI_API_KEY is not configured."
                )
            from google import genai

            self._client = genai.Client(api_key=self._config.gemini_api_key)
        return self._client

    def generate(self, monument_prompt: str, scene_prompt: str) -> GeneratedImage:
        """Generate a monument image for the given prompts.

        Args:
            monument_prompt: Description of the monument subject.
            scene_prompt: Description of the surrounding scene.

        Returns:
            The first inline image in the model response.

        Raises:
            ImageGenerationError: If the client cannot be created, the API
                call fails, or the response carries no image data.
        """
        from google.genai import types

        client = self._get_client()
        prompt = build_composite_prompt(monument_prompt, scene_prompt)
        logger.info(f"Generating monument image with {self._config.image_model}")

        try:
            response = client.models.generate_content(
                model=self._config.image_model,
                contents=prompt,
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as exc:
            logger.error(f"Error generating monument image: {exc}")
            raise ImageGenerationError(f"Failed to generate image: {exc}") from exc

        image = _first_inline_image(response)
        if image is None:
            logger.error("Image model response contained no inline image data")
            raise ImageGenerationError(
                "Failed to generate image: No image data found in the API response."
            )
        return image


def _first_inline_image(response) -> GeneratedImage | None:
    """Return the first inline image part of a ``GenerateContentResponse``.

    The model may interleave text parts with the image, so every part of the
    first candidate is inspected rather than only the first one.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is None or not inline.data or not inline.mime_type:
            continue
        data = inline.data
        # The SDK decodes inline data to bytes; older releases returned str.
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        return GeneratedImage(base64_data=data, mime_type=inline.mime_type)

    return None
