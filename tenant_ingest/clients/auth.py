"""
Bearer token providers for Google Cloud APIs.

TokenProvider implementations know how to fetch a token. TokenSupplier
sits in front of one and hands out a cached token, refreshing it before
it expires, so long batches do not fail mid-run on an expired token.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from pydantic import BaseModel

from tenant_ingest.core.exceptions import AuthError
from tenant_ingest.observability.logger import get_logger


logger = get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class BearerToken(BaseModel):
    """
    An access token and its expiry.

    Attributes:
        value: The token string sent as ``Authorization: Bearer <value>``
        expires_at: Expiry time (None if the provider does not say)
    """

    value: str
    expires_at: datetime | None = None

    def expires_within(self, window: timedelta, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at - window <= now


class TokenProvider(ABC):
    """Fetches fresh bearer tokens."""

    @abstractmethod
    def fetch_token(self) -> BearerToken:
        """
        Fetch a new token.

        Raises:
            AuthError: If credentials are missing or rejected
        """
        pass


class StaticTokenProvider(TokenProvider):
    """Always returns the same token. Useful for tests and short-lived tokens from the CLI."""

    def __init__(self, token: str, expires_at: datetime | None = None):
        if not token:
            raise AuthError("Static token must be a non-empty string")
        self._token = BearerToken(value=token, expires_at=expires_at)

    def fetch_token(self) -> BearerToken:
        return self._token


class GoogleAuthTokenProvider(TokenProvider):
    """
    Fetches tokens with google-auth.

    Uses a service account key file when one is configured, otherwise
    application default credentials.
    """

    def __init__(self, key_file: str | Path | None = None, scopes: list[str] | None = None):
        """
        Initialize provider.

        Args:
            key_file: Service account JSON key file
            scopes: OAuth scopes (defaults to cloud-platform)
        """
        self.key_file = Path(key_file) if key_file else None
        self.scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials = None

    def _load_credentials(self):
        if self.key_file is not None:
            return service_account.Credentials.from_service_account_file(
                str(self.key_file), scopes=self.scopes
            )
        credentials, _project = google.auth.default(scopes=self.scopes)
        return credentials

    def fetch_token(self) -> BearerToken:
        try:
            if self._credentials is None:
                self._credentials = self._load_credentials()
            self._credentials.refresh(Request())
        except (GoogleAuthError, OSError, ValueError) as e:
            raise AuthError(f"Cannot obtain access token: {e}") from e

        expiry = self._credentials.expiry
        if expiry is not None and expiry.tzinfo is None:
            # google-auth reports naive UTC
            expiry = expiry.replace(tzinfo=timezone.utc)

        return BearerToken(value=self._credentials.token, expires_at=expiry)


class TokenSupplier:
    """
    Lazily fetched, expiry-aware token cache.

    Usage:
        supplier = TokenSupplier(GoogleAuthTokenProvider(key_file))
        headers = {"Authorization": f"Bearer {supplier.get()}"}
    """

    def __init__(
        self,
        provider: TokenProvider,
        refresh_skew: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize supplier.

        Args:
            provider: Where tokens come from
            refresh_skew: Refresh this long before the token expires
            clock: Returns the current aware datetime (for tests)
        """
        self.provider = provider
        self.refresh_skew = refresh_skew
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._token: BearerToken | None = None
        self._lock = threading.Lock()
        self.fetch_count = 0

    def get(self) -> str:
        """
        Return a token valid for at least ``refresh_skew``.

        Raises:
            AuthError: If a needed refresh fails
        """
        with self._lock:
            if self._token is None or self._token.expires_within(self.refresh_skew, self.clock()):
                if self._token is not None:
                    logger.info("Access token close to expiry, refreshing")
                self._token = self.provider.fetch_token()
                self.fetch_count += 1
            return self._token.value

    def invalidate(self) -> None:
        """Drop the cached token so the next get() fetches a new one."""
        with self._lock:
            self._token = None
