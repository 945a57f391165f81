"""Thin mumble.fish API wrapper used for polishing and account lookups."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from .tones import ToneStyle


DEFAULT_BASE_URL = "https://mumble.fish"
CALLBACK_SCHEME = "mumblefish"
REDIRECT_URI = f"{CALLBACK_SCHEME}://auth/callback"

BYOK_HEADER = "X-OpenAI-Key"

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please wait a moment or use your own API key."


class PolishError(RuntimeError):
    """Base error raised for polishing failures."""


class SessionExpiredError(PolishError):
    """Raised when the service rejects the auth token (HTTP 401)."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message)


class RateLimitedError(PolishError):
    """Raised when the service throttles the caller (HTTP 429)."""

    def __init__(self, message: str = RATE_LIMITED_MESSAGE) -> None:
        super().__init__(message)


class PolishServiceError(PolishError):
    """Raised for any other non-success HTTP status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class Credentials:
    """Auth material for an outgoing request."""

    auth_token: Optional[str] = None
    byok_key: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.auth_token and not self.byok_key

    def headers(self) -> dict[str, str]:
        """
        Build auth headers.

        A non-empty BYOK key wins and is sent alone; otherwise the bearer
        token is attached. Never both.
        """
        if self.byok_key:
            return {BYOK_HEADER: self.byok_key}
        if self.auth_token:
            return {"Authorization": f"Bearer {self.auth_token}"}
        return {}


@dataclass(frozen=True)
class UserProfile:
    """Account details returned by the profile endpoint."""

    id: str
    email: str


class MumbleService:
    """Co-ordinates requests to the mumble.fish HTTP API."""

    _DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------
    # Polishing
    # ------------------------------
    def polish(self, text: str, tone: ToneStyle, credentials: Credentials) -> str:
        """
        Send text to the polishing endpoint and return the polished text.

        Raises:
            SessionExpiredError: the service answered 401
            RateLimitedError: the service answered 429
            PolishServiceError: any other non-2xx answer
            PolishError: transport/decoding failure or an in-payload error
        """
        payload = {"text": text, "tone": tone.wire_value}
        try:
            response = self._client.post("/api/v1/polish", json=payload, headers=credentials.headers())
        except httpx.HTTPError as exc:
            raise PolishError(str(exc) or exc.__class__.__name__) from exc

        if response.status_code == 401:
            raise SessionExpiredError()
        if response.status_code == 429:
            raise RateLimitedError()
        if not response.is_success:
            raise PolishServiceError(response.status_code, response.text or "Unknown error")

        body = self._safe_json(response)
        error = body.get("error")
        if error:
            raise PolishError(str(error))

        data = body.get("data")
        if not isinstance(data, Mapping):
            return ""
        polished = data.get("polished")
        return polished if isinstance(polished, str) else ""

    # ------------------------------
    # Account
    # ------------------------------
    def fetch_profile(self, auth_token: str) -> UserProfile:
        """Fetch the signed-in user's profile."""
        try:
            response = self._client.get(
                "/api/v1/auth/me",
                headers={"Authorization": f"Bearer {auth_token}"},
            )
        except httpx.HTTPError as exc:
            raise PolishError(str(exc) or exc.__class__.__name__) from exc

        if response.status_code != 200:
            raise PolishServiceError(response.status_code, response.text)

        body = self._safe_json(response)
        data = body.get("data")
        if not isinstance(data, Mapping) or not isinstance(data.get("email"), str):
            raise PolishError("Profile response missing user data")
        return UserProfile(id=str(data.get("id", "")), email=data["email"])

    def authorization_url(self, provider: str, redirect_uri: str = REDIRECT_URI) -> str:
        """Build the browser URL that starts OAuth sign-in with a provider."""
        return (
            f"{self.base_url}/api/v1/auth/oauth/{quote(provider, safe='')}"
            f"?redirect_uri={quote(redirect_uri, safe='')}"
        )

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    def _safe_json(self, response: httpx.Response) -> Mapping[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise PolishError("Service returned a non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise PolishError("Service response was not a JSON object")
        return data
