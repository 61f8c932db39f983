"""GitHub App authentication.

Handles the app-level half of the GitHub App auth flow: turning the
configured App ID and private key into a signed JWT assertion.
The private key is stored as an env var, never in source control.

GitHub App auth flow:
1. Generate a JWT signed with the App's private key  (this module)
2. Exchange the JWT for a short-lived installation access token
3. Use the installation token for API calls scoped to that installation

Steps 2 and 3 live in `app.github.client`. The JWT is wrapped in
`AppAssertion` and the installation token in `InstallationAccessToken` so
the client can refuse to send one where the other belongs.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.core.config import Settings
from app.github.errors import ConfigurationError

# GitHub rejects app JWTs whose lifetime exceeds 10 minutes.
ASSERTION_LIFETIME_SECONDS = 600


@dataclass(frozen=True)
class AppIdentity:
    """The GitHub App's identity: numeric App ID plus RSA signing key.

    Built once at startup (or per test) and passed into the broker
    explicitly. The key never appears in repr().
    """

    app_id: int
    signing_key: rsa.RSAPrivateKey = field(repr=False)

    @classmethod
    def from_pem(cls, app_id: object, private_key_pem: Optional[str]) -> "AppIdentity":
        """Validate raw configuration values and build an identity.

        Raises:
            ConfigurationError: app_id missing or non-numeric, key missing,
                unparseable, password-protected or not an RSA key.
        """
        if app_id is None or str(app_id).strip() == "":
            raise ConfigurationError(
                "GitHub App ID not configured. Set GITHUB_APP_ID."
            )
        try:
            numeric_id = int(str(app_id).strip())
        except ValueError:
            raise ConfigurationError("GITHUB_APP_ID must be a numeric App ID") from None
        if numeric_id <= 0:
            raise ConfigurationError("GITHUB_APP_ID must be a positive integer")

        if not private_key_pem or not private_key_pem.strip():
            raise ConfigurationError(
                "GitHub App private key not configured. Set GITHUB_PRIVATE_KEY."
            )

        # `from None` keeps parser internals (which may echo key bytes)
        # out of the traceback.
        try:
            key = serialization.load_pem_private_key(
                private_key_pem.encode(), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm):
            raise ConfigurationError(
                "GITHUB_PRIVATE_KEY is not a valid unencrypted PEM private key"
            ) from None

        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("GITHUB_PRIVATE_KEY must be an RSA private key")

        return cls(app_id=numeric_id, signing_key=key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppIdentity":
        return cls.from_pem(settings.github_app_id, settings.github_private_key)


@dataclass(frozen=True)
class AppAssertion:
    """A signed app JWT. Only valid against GitHub's `/app/...` endpoints."""

    token: str = field(repr=False)
    issued_at: int
    expires_at: int

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


def create_app_jwt(identity: AppIdentity, now: Optional[int] = None) -> AppAssertion:
    """Create a JWT for authenticating as the GitHub App.

    Claims are `iss` (the App ID), `iat` and `exp = iat + 600`, signed
    RS256. A fresh assertion is minted for every broker invocation.
    """
    if not isinstance(identity, AppIdentity):
        raise ConfigurationError("GitHub App identity not configured")

    issued_at = int(time.time()) if now is None else int(now)
    expires_at = issued_at + ASSERTION_LIFETIME_SECONDS
    payload = {
        "iat": issued_at,
        "exp": expires_at,
        "iss": identity.app_id,
    }

    token = jwt.encode(payload, identity.signing_key, algorithm="RS256")
    return AppAssertion(token=token, issued_at=issued_at, expires_at=expires_at)
