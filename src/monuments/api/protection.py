"""Abuse protection for the create path: rate limiting and reCAPTCHA.

Both guards are optional and process-local:

- :class:`CreateRateLimiter` keeps a fixed-window counter per client address
  in memory.  Counters are not shared between workers and reset on restart.
- :class:`CaptchaVerifier` checks a reCAPTCHA v3 token against Google's
  ``siteverify`` endpoint.  It is only active when a secret key is
  configured.
"""

from __future__ import annotations

import logging

import requests
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from monuments.core.config import MonumentsConfig
from monuments.core.errors import CaptchaVerificationError

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class CreateRateLimiter:
    """Fixed-window, in-memory request counter keyed by client address."""

    def __init__(self, limit: str, *, enabled: bool = True) -> None:
        """Initialise the limiter.

        Args:
            limit: Limit string such as ``"10/minute"``.
            enabled: When ``False`` every request is allowed.
        """
        self.enabled = enabled
        self.limit = parse(limit)
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    @classmethod
    def from_config(cls, config: MonumentsConfig) -> CreateRateLimiter:
        return cls(config.create_rate_limit, enabled=config.rate_limit_enabled)

    def hit(self, client_key: str) -> bool:
        """Count one request for ``client_key``.

        Returns:
            ``True`` if the request is within the limit.
        """
        if not self.enabled:
            return True
        allowed = self._strategy.hit(self.limit, "creations", client_key)
        if not allowed:
            logger.warning(f"Rate limit {self.limit} exceeded for {client_key}")
        return allowed

    def reset(self) -> None:
        self._storage.reset()


class CaptchaVerifier:
    """Verifies reCAPTCHA v3 tokens submitted with new creations."""

    def __init__(self, config: MonumentsConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self._config.captcha_enabled

    def verify(self, token: str | None, remote_ip: str | None = None) -> float | None:
        """Check ``token`` with the reCAPTCHA service.

        Args:
            token: The token produced by the browser.
            remote_ip: Client address forwarded to the service.

        Returns:
            The score reported by the service, or ``None`` when verification
            is disabled or the service reports no score.

        Raises:
            CaptchaVerificationError: 400 for a missing token, 403 for a
                rejected token, an action other than ``recaptcha_action`` or a
                score below the configured minimum, 503 when the service cannot
                be reached or answers with a malformed payload.
        """
        if not self.enabled:
            return None

        if not token:
            raise CaptchaVerificationError("CAPTCHA token is required.", status_code=400)

        data = {"secret": self._config.recaptcha_secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            resp = self._session.post(
                RECAPTCHA_VERIFY_URL,
                data=data,
                timeout=self._config.recaptcha_timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"CAPTCHA verification request failed: {exc}")
            raise _unavailable() from exc

        if not isinstance(payload, dict):
            logger.error(f"Unexpected CAPTCHA response: {payload!r}")
            raise _unavailable()

        if not payload.get("success"):
            codes = payload.get("error-codes") or []
            logger.warning(f"CAPTCHA rejected: {codes}")
            raise CaptchaVerificationError("CAPTCHA verification failed.")

        action = payload.get("action")
        if action is not None and action != self._config.recaptcha_action:
            logger.warning(f"CAPTCHA action {action!r} does not match {self._config.recaptcha_action!r}")
            raise CaptchaVerificationError("CAPTCHA verification failed.")

        score = payload.get("score")
        if score is None:
            return None
        try:
            score = float(score)
        except (TypeError, ValueError) as exc:
            logger.error(f"Unexpected CAPTCHA score: {score!r}")
            raise _unavailable() from exc

        if score < self._config.recaptcha_min_score:
            logger.warning(f"CAPTCHA score {score} below {self._config.recaptcha_min_score}")
            raise CaptchaVerificationError("CAPTCHA score too low. Are you a robot?")
        return score


def _unavailable() -> CaptchaVerificationError:
    return CaptchaVerificationError(
        "CAPTCHA verification is temporarily unavailable.", status_code=503
    )
