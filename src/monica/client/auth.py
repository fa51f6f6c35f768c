"""
API credential persistence and verification.

The instance URL and personal access token are stored as JSON on disk:

    {
        "api_url":   "https://app.monicahq.com",
        "api_token": "eyJ0eXAiOiJKV1Qi...",
    }

Credentials are verified with GET /me before they are saved. When a stored
token is later rejected (HTTP 401) the file is removed and
CredentialsRejectedError is raised, so the user has to run
`python -m monica setup` again.
"""
import json
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from monica.client.cache import ResponseCache
from monica.client.client import MonicaClient
from monica.client.errors import InvalidCredentialsError
from monica.config import get_settings

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────

CREDENTIALS_FILE_NAME = "credentials.json"
CLOUD_HOST = "app.monicahq.com"
MIN_TOKEN_LENGTH = 20

INSTANCE_CLOUD = "cloud"
INSTANCE_SELF_HOSTED = "self_hosted"


# ── Exceptions ────────────────────────────────────────────────────────────────

class NoCredentialsError(RuntimeError):
    """Raised when no credentials have been saved yet."""


class CredentialsRejectedError(RuntimeError):
    """Raised when the server rejects the saved token; the token is cleared."""


class InvalidCredentialsInput(ValueError):
    """Raised when a URL or token fails local validation."""

    def __init__(self, validation: "CredentialValidation"):
        self.validation = validation
        errors = [e for e in (validation.url_error, validation.token_error) if e]
        super().__init__("; ".join(errors))


# ── Validation ────────────────────────────────────────────────────────────────

@dataclass
class CredentialValidation:
    is_valid: bool
    url_error: Optional[str] = None
    token_error: Optional[str] = None


def validate_credentials(url: str, token: str) -> CredentialValidation:
    url = (url or "").strip()
    token = (token or "").strip()
    url_error = None
    token_error = None

    if not url:
        url_error = "API URL is required"
    else:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            url_error = "Please enter a valid URL"
        elif parsed.scheme != "https":
            url_error = "URL must use HTTPS"

    if not token:
        token_error = "API token is required"
    elif len(token) < MIN_TOKEN_LENGTH:
        token_error = "API token appears to be invalid"

    return CredentialValidation(
        is_valid=url_error is None and token_error is None,
        url_error=url_error,
        token_error=token_error,
    )


def instance_type(url: str) -> str:
    host = urlparse(url.strip()).hostname or ""
    return INSTANCE_CLOUD if host.lower() == CLOUD_HOST else INSTANCE_SELF_HOSTED


# ── Main class ────────────────────────────────────────────────────────────────

ClientFactory = Callable[[str, str], MonicaClient]


class CredentialStore:
    """
    Manages Monica API credential persistence.

    Usage:
        store = CredentialStore()
        if not store.has_credentials():
            await store.authenticate_and_save(url, token)
        client = await store.connect()   # → verified MonicaClient
    """

    def __init__(
        self,
        credentials_dir: Optional[Path] = None,
        client_factory: Optional[ClientFactory] = None,
        cache: Optional[ResponseCache] = None,
    ):
        settings = get_settings()
        self._dir = Path(credentials_dir or settings.credentials_dir)
        self._file = self._dir / CREDENTIALS_FILE_NAME
        self.cache = cache if cache is not None else ResponseCache(settings.contact_cache_ttl_seconds)
        self._client_factory = client_factory or self._default_client

    def _default_client(self, url: str, token: str) -> MonicaClient:
        return MonicaClient(url, token, cache=self.cache)

    # ── Persistence ───────────────────────────────────────────────────────────

    def has_credentials(self) -> bool:
        return self._file.exists()

    def save(self, api_url: str, api_token: str) -> None:
        """
        Persist credentials with owner-only permissions.

        Directory: 0700 (rwx------)
        File:      0600 (rw-------)
        """
        self._dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self._dir, stat.S_IRWXU)

        payload = {"api_url": api_url.strip().rstrip("/"), "api_token": api_token.strip()}
        self._file.write_text(json.dumps(payload, indent=2))
        os.chmod(self._file, stat.S_IRUSR | stat.S_IWUSR)

    def load(self) -> Dict[str, str]:
        """
        Raises:
            NoCredentialsError: if nothing has been saved.
        """
        if not self._file.exists():
            raise NoCredentialsError(
                f"No Monica credentials found at {self._file}. "
                "Run `python -m monica setup` to authenticate."
            )
        return json.loads(self._file.read_text())

    def clear(self) -> None:
        """Delete the credentials file (does not raise if already absent)."""
        if self._file.exists():
            self._file.unlink()

    # ── Auth ──────────────────────────────────────────────────────────────────

    async def authenticate_and_save(self, api_url: str, api_token: str) -> MonicaClient:
        """
        Validate the input, verify it against the server, then save it.

        Raises:
            InvalidCredentialsInput: if the URL or token fails validation.
            MonicaAPIError: if the server check fails; nothing is saved.
        """
        validation = validate_credentials(api_url, api_token)
        if not validation.is_valid:
            raise InvalidCredentialsInput(validation)

        client = self._client_factory(api_url.strip(), api_token.strip())
        try:
            await client.test_connection()
        except Exception:
            await client.aclose()
            raise

        self.save(api_url, api_token)
        logger.info("Saved credentials for %s instance", instance_type(api_url))
        return client

    async def connect(self) -> MonicaClient:
        """
        Build a verified client from the saved credentials.

        Raises:
            NoCredentialsError: if nothing is saved.
            CredentialsRejectedError: if the server rejects the token.
        """
        credentials = self.load()
        client = self._client_factory(credentials["api_url"], credentials["api_token"])
        try:
            await client.test_connection()
        except InvalidCredentialsError as exc:
            await client.aclose()
            self.clear()
            raise CredentialsRejectedError(
                "Monica rejected the saved API token. "
                "Run `python -m monica setup` to re-authenticate."
            ) from exc
        except Exception:
            await client.aclose()
            raise
        return client
