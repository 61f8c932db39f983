"""Installation token broker.

Runs the full GitHub App flow for one caller request:

1. Sign an app JWT from the configured identity (fails fast, no network)
2. List the App's installations
3. Pick one installation (default: the first in GitHub's response order)
4. Exchange the app JWT for an installation access token
5. List the repositories that token can access

The steps are strictly sequential; any failure aborts the rest and
propagates as a `BrokerError`. Nothing is shared between invocations
unless a token cache is plugged in, so concurrent calls are independent.

Picking the first installation is a single-tenant assumption, not a
GitHub guarantee. It is a named policy (`first_installation`) so a
multi-installation selector can replace it without touching the flow.
"""

import logging
from functools import partial
from typing import Callable, Optional, Protocol, Sequence

import httpx

from app.core.config import Settings
from app.github.auth import AppAssertion, AppIdentity, create_app_jwt
from app.github.client import GitHubAppClient, RequestPolicy, single_attempt
from app.github.schemas import Installation, InstallationAccessToken

logger = logging.getLogger(__name__)

InstallationSelector = Callable[[Sequence[Installation]], Optional[Installation]]


def first_installation(installations: Sequence[Installation]) -> Optional[Installation]:
    """Select the first installation in response order, or None when empty."""
    return installations[0] if installations else None


class InstallationTokenCache(Protocol):
    """Storage for minted installation tokens, keyed by installation ID.

    Implementations shared between concurrent invocations must do their own
    locking. Expired tokens returned by `get` are ignored by the broker.
    """

    def get(self, installation_id: int) -> Optional[InstallationAccessToken]:
        ...

    def put(self, installation_id: int, token: InstallationAccessToken) -> None:
        ...


class NullTokenCache:
    """Default cache: never stores anything, so every call mints a new token."""

    def get(self, installation_id: int) -> Optional[InstallationAccessToken]:
        return None

    def put(self, installation_id: int, token: InstallationAccessToken) -> None:
        return None


class InstallationTokenBroker:
    """Resolves the repositories the GitHub App's installation can access."""

    def __init__(
        self,
        identity: AppIdentity,
        *,
        client_factory: Callable[[], GitHubAppClient] = GitHubAppClient,
        select_installation: InstallationSelector = first_installation,
        token_cache: Optional[InstallationTokenCache] = None,
    ):
        self.identity = identity
        self._client_factory = client_factory
        self._select_installation = select_installation
        self._token_cache = token_cache if token_cache is not None else NullTokenCache()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_policy: RequestPolicy = single_attempt,
        select_installation: InstallationSelector = first_installation,
        token_cache: Optional[InstallationTokenCache] = None,
    ) -> "InstallationTokenBroker":
        """Build a broker from settings.

        Raises ConfigurationError when the App ID or private key is missing
        or invalid. No HTTP client is created in that case.
        """
        identity = AppIdentity.from_settings(settings)
        return cls(
            identity,
            client_factory=partial(
                GitHubAppClient.from_settings,
                settings,
                transport=transport,
                request_policy=request_policy,
            ),
            select_installation=select_installation,
            token_cache=token_cache,
        )

    async def list_accessible_repositories(self) -> list[str]:
        """Return full names ("owner/repo") visible to the selected installation.

        Returns an empty list when the App has no installations; no token
        is minted in that case.

        Raises:
            ConfigurationError: identity missing or invalid (before any call).
            UpstreamError: any stage answered non-2xx.
            ProtocolError: a 2xx body had an unexpected shape.
            UpstreamTimeoutError: a call exceeded the configured timeout.
        """
        # Signing happens before the client exists so a bad identity
        # never reaches the network.
        assertion = create_app_jwt(self.identity)

        async with self._client_factory() as client:
            installations = await client.list_installations(assertion)
            logger.info("GitHub App %d has %d installation(s)", self.identity.app_id, len(installations))

            installation = self._select_installation(installations)
            if installation is None:
                logger.info("No installation selected; returning no repositories")
                return []

            token = await self._installation_token(client, installation, assertion)
            repositories = await client.list_installation_repositories(token)

        logger.info(
            "Installation %d can access %d repositories",
            installation.id,
            len(repositories),
        )
        return [repo.full_name for repo in repositories]

    async def _installation_token(
        self,
        client: GitHubAppClient,
        installation: Installation,
        assertion: AppAssertion,
    ) -> InstallationAccessToken:
        cached = self._token_cache.get(installation.id)
        if cached is not None and not cached.is_expired():
            logger.debug("Using cached token for installation %d", installation.id)
            return cached

        logger.info("Requesting installation token for installation %d", installation.id)
        token = await client.create_installation_token(installation.id, assertion)
        logger.info(
            "Got installation token for %d, expires at %s",
            installation.id,
            token.expires_at.isoformat() if token.expires_at else "unknown",
        )
        self._token_cache.put(installation.id, token)
        return token
