"""Pydantic request models for the Monument Creator API.

These models define the JSON schema for the write endpoints.  FastAPI uses
them for request parsing and OpenAPI documentation generation.  Both
``snake_case`` and the browser's ``camelCase`` field names are accepted.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` — the two prompts to compose.
CreateCreationRequest
    Payload for ``POST /api/creations`` — a generated creation to persist.
    Every field is optional at the schema level so that the handler can
    answer missing fields with a single 400 message naming all of them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(_CamelModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        monument_prompt: The person, animal, bird, or object to turn into a
            monument.
        scene_prompt: The scene the monument is placed in.
    """

    monument_prompt: str = Field(
        default="",
        description="Description of the monument subject.",
    )
    scene_prompt: str = Field(
        default="",
        description="Description of the scene the monument stands in.",
    )


class CreateCreationRequest(_CamelModel):
    """Request body for the ``POST /api/creations`` endpoint.

    Attributes:
        monument_prompt: Monument description used for generation.
        scene_prompt: Scene description used for generation.
        image_url: Generated image as a base64 ``data:image/...`` URI.
        latitude: Latitude in decimal degrees; numeric strings are accepted.
        longitude: Longitude in decimal degrees; numeric strings are accepted.
        captcha_token: reCAPTCHA token, required only when verification is
            enabled on the server.
    """

    monument_prompt: str | None = Field(default=None)
    scene_prompt: str | None = Field(default=None)
    image_url: str | None = Field(default=None)
    latitude: float | str | None = Field(default=None)
    longitude: float | str | None = Field(default=None)
    captcha_token: str | None = Field(
        default=None,
        description="reCAPTCHA v3 token (only checked when verification is enabled).",
    )
