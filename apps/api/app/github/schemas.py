"""Pydantic schemas for the GitHub App integration.

Upstream models (`Installation`, `InstallationAccessToken`, `RepositoryRef`)
validate the parts of GitHub's responses the broker relies on and ignore
the rest. The response models at the bottom are what the route returns.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, SecretStr

# A cached token this close to expiry is treated as expired, so it is not
# handed to a request that may outlive it.
TOKEN_EXPIRY_LEEWAY = timedelta(seconds=60)


def unwrap_collection(payload: Any, key: str) -> list:
    """Extract a list from a response that is either a bare array or an envelope.

    GitHub has been observed to return both `[...]` and `{key: [...]}` for
    listing endpoints. Anything else (missing key, null, wrong type)
    decodes to an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get(key)
        if isinstance(items, list):
            return items
    return []


class InstallationAccount(BaseModel):
    login: str = ""
    id: Optional[int] = None
    type: Optional[str] = None


class Installation(BaseModel):
    """A GitHub App installation on a user or organisation account."""

    id: int
    account: Optional[InstallationAccount] = None
    repository_selection: Optional[str] = None
    app_id: Optional[int] = None


class InstallationAccessToken(BaseModel):
    """Short-lived credential scoped to one installation.

    Only valid against installation-scoped endpoints such as
    `/installation/repositories`. `expires_at` is captured for callers that
    cache tokens; the broker itself mints a new one per call by default.
    """

    model_config = ConfigDict(frozen=True)

    token: SecretStr
    expires_at: Optional[datetime] = None
    installation_id: Optional[int] = None

    def is_expired(
        self,
        now: Optional[datetime] = None,
        leeway: timedelta = TOKEN_EXPIRY_LEEWAY,
    ) -> bool:
        """True once `expires_at` is within `leeway` of now.

        Tokens without expiry never expire.
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now + leeway >= expires_at


class RepositoryRef(BaseModel):
    full_name: str
    id: Optional[int] = None
    private: bool = False


# ---------------------------------------------------------------------------
# Route responses
# ---------------------------------------------------------------------------


class AccessibleRepositoriesResponse(BaseModel):
    """Repositories visible to the App's first installation."""

    success: bool = True
    result: list[str]


class BrokerErrorResponse(BaseModel):
    success: bool = False
    error: str
