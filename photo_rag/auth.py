"""Credentials for the multimodal embedding backend.

A CredentialManager caches one token and refreshes it through a pluggable
TokenSource shortly before it expires. Three sources are available:

- ServiceAccountTokenSource: google-auth service account key from the environment.
- GcloudCliTokenSource: delegates to ``gcloud auth print-access-token``.
- ApiKeyTokenSource: a static Google API key that never expires.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from loguru import logger

from photo_rag.config import Settings
from photo_rag.errors import AuthError

SCOPES = [
    "https://www.googleapis.com/auth/generative-language",
    "https://www.googleapis.com/auth/cloud-platform",
]

# Refresh this long before the token actually expires
SAFETY_MARGIN_SECONDS = 5 * 60
# Assumed lifetime when the source does not report an expiry. gcloud access
# tokens last an hour, the same as the connection rebuild interval, so a
# handle is never reused past the lifetime of the token it carries.
DEFAULT_TOKEN_LIFETIME_SECONDS = 60 * 60


@dataclass(frozen=True)
class Credential:
    """A token and the monotonic-clock instant at which it expires."""

    token: str
    expires_at: float


class TokenSource(Protocol):
    """Performs the external authentication exchange."""

    def fetch(self) -> tuple[str | None, float | None]:
        """Return ``(token, seconds_until_expiry)``; expiry may be None if unknown."""
        ...

    def headers(self, token: str) -> dict[str, str]:
        """Request headers that carry the token."""
        ...


class ServiceAccountTokenSource:
    """Access tokens minted from a service account key."""

    def __init__(self, key_base64: str | None = None, key_json: str | None = None):
        if key_base64:
            try:
                info = json.loads(base64.b64decode(key_base64).decode("utf-8"))
            except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise AuthError(
                    "Invalid base64 or JSON in GOOGLE_SERVICE_ACCOUNT_KEY_BASE64 environment variable"
                ) from exc
        elif key_json:
            try:
                info = json.loads(key_json)
            except json.JSONDecodeError as exc:
                raise AuthError(
                    "Invalid JSON in GOOGLE_SERVICE_ACCOUNT_KEY environment variable"
                ) from exc
        else:
            raise AuthError(
                "Either GOOGLE_SERVICE_ACCOUNT_KEY or GOOGLE_SERVICE_ACCOUNT_KEY_BASE64 "
                "environment variable is required"
            )
        self._info = info
        self._credentials = None

    def fetch(self) -> tuple[str | None, float | None]:
        from google.auth.transport.requests import Request
        from google.oauth2 import service_account

        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_info(
                self._info, scopes=SCOPES
            )
        self._credentials.refresh(Request())

        expiry = self._credentials.expiry
        if expiry is None:
            return self._credentials.token, None
        # google-auth reports expiry as a naive UTC datetime
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        return self._credentials.token, (expiry - now).total_seconds()

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class GcloudCliTokenSource:
    """Access tokens from the locally authenticated gcloud CLI."""

    def __init__(self, command: list[str] | None = None, timeout: float = 30.0):
        self._command = command or ["gcloud", "auth", "print-access-token"]
        self._timeout = timeout

    def fetch(self) -> tuple[str | None, float | None]:
        try:
            completed = subprocess.run(
                self._command,
                capture_output=True,
                text=True,
                check=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise AuthError("gcloud CLI not found on PATH") from exc
        except subprocess.CalledProcessError as exc:
            raise AuthError(f"gcloud auth failed: {exc.stderr.strip() or exc}") from exc
        return completed.stdout.strip(), None

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class ApiKeyTokenSource:
    """A static API key. Never expires and is sent as x-goog-api-key."""

    def __init__(self, api_key: str | None):
        if not api_key:
            raise AuthError("GOOGLE_API_KEY is required when EMBEDDING_AUTH_MODE=api_key")
        self._api_key = api_key

    def fetch(self) -> tuple[str | None, float | None]:
        return self._api_key, math.inf

    def headers(self, token: str) -> dict[str, str]:
        return {"x-goog-api-key": token}


def token_source_from_settings(settings: Settings) -> TokenSource:
    """Pick the token source named by EMBEDDING_AUTH_MODE."""
    mode = settings.EMBEDDING_AUTH_MODE
    if mode == "gcloud":
        return GcloudCliTokenSource(timeout=settings.HTTP_TIMEOUT)
    if mode == "api_key":
        return ApiKeyTokenSource(settings.GOOGLE_API_KEY)
    return ServiceAccountTokenSource(
        key_base64=settings.GOOGLE_SERVICE_ACCOUNT_KEY_BASE64,
        key_json=settings.GOOGLE_SERVICE_ACCOUNT_KEY,
    )


class CredentialManager:
    """Caches a bearer token and refreshes it before expiry.

    Args:
        source: Performs the actual authentication exchange.
        clock: Monotonic clock in seconds. Injectable for tests.
    """

    def __init__(
        self,
        source: TokenSource,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._clock = clock
        self._credential: Credential | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def get_valid_token(self) -> str:
        """Return a token with at least SAFETY_MARGIN_SECONDS of validity left.

        The cached token is returned without any I/O when it is still fresh.

        Raises:
            AuthError: If a refresh was needed and failed.
        """
        cred = self._credential
        if cred is not None and cred.expires_at - self._clock() > SAFETY_MARGIN_SECONDS:
            return cred.token
        return self.refresh_token()

    def refresh_token(self) -> str:
        """Run the exchange, replace the cached credential and return the new token.

        Raises:
            AuthError: If the exchange errors or returns no usable token.
        """
        try:
            token, expires_in = self._source.fetch()
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(f"Error refreshing embedding backend token: {exc}") from exc

        if not token:
            raise AuthError("Failed to get access token from the embedding backend")

        if expires_in is None:
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        if expires_in <= SAFETY_MARGIN_SECONDS:
            raise AuthError(
                f"Embedding backend returned a token that expires in {expires_in:.0f}s"
            )
        self._credential = Credential(token=token, expires_at=self._clock() + expires_in)
        if math.isinf(expires_in):
            logger.info("Loaded static embedding backend key.")
        else:
            logger.info("Refreshed embedding backend token (valid for {:.0f}s).", expires_in)
        return token

    def headers(self, token: str) -> dict[str, str]:
        return self._source.headers(token)
