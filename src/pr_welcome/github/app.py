"""GitHub App authentication: JWT signing, app identity and installation tokens."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx
import jwt
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from .commenter import InstallationClient
from .errors import AuthError, GitHubApiError, raise_for_status

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
TOKEN_TTL_SECONDS = 55 * 60
REQUEST_TIMEOUT = 15.0
CLOCK_SKEW_SECONDS = 60
JWT_LIFETIME_SECONDS = 10 * 60


@dataclass(frozen=True)
class AppIdentity:
    """The App as reported by ``GET /app``."""

    id: int
    slug: str
    name: str


def api_base_url(enterprise_hostname: str | None = None) -> str:
    """Return the REST API root for github.com or a GitHub Enterprise Server host."""
    if enterprise_hostname:
        return f"https://{enterprise_hostname}/api/v3"
    return GITHUB_API


class GitHubApp:
    """GitHub App authentication manager.

    Handles JWT generation (RS256) and installation token exchange. All
    calls go to ``base_url``, which is fixed at construction time so an
    enterprise host applies to every request.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        enterprise_hostname: str | None = None,
    ) -> None:
        self.app_id = app_id
        self.base_url = api_base_url(enterprise_hostname)
        self._private_key = private_key
        self._key_checked = False
        self._token_cache: dict[int, tuple[str, float]] = {}

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _signing_key(self) -> str:
        """Return the PEM key, checking once that it is an unencrypted RSA key.

        Raises:
            AuthError: If the key cannot be parsed or is not an RSA key.
        """
        if not self._key_checked:
            try:
                key = load_pem_private_key(self._private_key.encode(), password=None)
            except (ValueError, TypeError) as exc:
                raise AuthError(f"Invalid GitHub App private key: {exc}") from exc
            if not isinstance(key, RSAPrivateKey):
                raise AuthError(
                    f"Invalid GitHub App private key: expected RSA, got {type(key).__name__}"
                )
            self._key_checked = True
        return self._private_key

    def generate_jwt(self) -> str:
        """Sign the short-lived token GitHub expects for App-level calls.

        GitHub caps App tokens at ten minutes; the issue time is backdated
        to tolerate clock skew between this host and the API.

        Raises:
            ValueError: If no App id is configured.
            AuthError: If the private key is unusable.
        """
        if not self.app_id:
            raise ValueError("APP_ID is required to generate a JWT")

        issued_at = int(time.time()) - CLOCK_SKEW_SECONDS
        claims = {
            "iss": self.app_id,
            "iat": issued_at,
            "exp": issued_at + CLOCK_SKEW_SECONDS + JWT_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(claims, self._signing_key(), algorithm="RS256")
        except (jwt.PyJWTError, TypeError) as exc:
            raise AuthError(f"Could not sign App JWT: {exc}") from exc

    def _app_headers(self) -> dict[str, str]:
        return {**self._headers, "Authorization": f"Bearer {self.generate_jwt()}"}

    async def identify(self) -> AppIdentity:
        """Fetch the authenticated App's identity.

        Raises:
            AuthError: If the request fails for any reason.
        """
        try:
            headers = self._app_headers()
            async with httpx.AsyncClient(headers=headers, timeout=REQUEST_TIMEOUT) as client:
                resp = await client.get(f"{self.base_url}/app")
            raise_for_status(resp)
            data = resp.json()
        except (GitHubApiError, httpx.HTTPError, ValueError) as exc:
            raise AuthError(f"Could not authenticate as GitHub App {self.app_id}: {exc}") from exc

        if not isinstance(data, dict):
            raise AuthError(f"Unexpected response from {self.base_url}/app")
        return AppIdentity(
            id=data.get("id", 0),
            slug=data.get("slug", ""),
            name=data.get("name", ""),
        )

    async def get_installation_token(self, installation_id: int) -> str:
        """Exchange a JWT for an installation access token.

        Tokens are cached for 55 minutes (GitHub issues them for 1 hour).

        Raises:
            GitHubApiError: If GitHub refuses the exchange.
        """
        now = time.time()
        cached = self._token_cache.get(installation_id)
        if cached is not None:
            token, expiry = cached
            if now < expiry:
                return token

        async with httpx.AsyncClient(headers=self._app_headers(), timeout=REQUEST_TIMEOUT) as client:
            resp = await client.post(
                f"{self.base_url}/app/installations/{installation_id}/access_tokens"
            )
        raise_for_status(resp)
        token = resp.json()["token"]
        self._token_cache[installation_id] = (token, now + TOKEN_TTL_SECONDS)
        logger.debug("Obtained access token for installation %s", installation_id)
        return token

    def installation_client(self, installation_id: int) -> InstallationClient:
        """Return a client acting on behalf of one installation of this App."""
        return InstallationClient(self, installation_id)
