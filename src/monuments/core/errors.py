"""Exception types raised by the monument creation pipeline and store.

Every exception carries a ``message`` suitable for showing to the user
verbatim; the API layer maps them to HTTP status codes.
"""

from __future__ import annotations


class MonumentsError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ImageGenerationError(MonumentsError):
    """The image model failed or returned no image data."""

    status_code = 502


class LocationInferenceError(MonumentsError):
    """The text model could not be asked for a location."""

    status_code = 502


class GeocodingError(MonumentsError):
    """The geocoding provider failed."""

    status_code = 502


class DatabaseNotConfiguredError(MonumentsError):
    """No database URL is configured."""

    status_code = 500


class CaptchaVerificationError(MonumentsError):
    """A CAPTCHA token was missing, invalid, or scored too low."""

    status_code = 403

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
