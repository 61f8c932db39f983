"""GitHub API client for the App installation flow.

Uses httpx for async HTTP calls. Wraps the three REST endpoints the broker
needs, each tied to the credential type it accepts:

  GET  /app/installations                      — AppAssertion (app JWT)
  POST /app/installations/{id}/access_tokens   — AppAssertion (app JWT)
  GET  /installation/repositories              — InstallationAccessToken

Passing the wrong credential type raises TypeError before any request is
sent. Non-2xx responses become `UpstreamError`, httpx timeouts become
`UpstreamTimeoutError`, and 2xx bodies of the wrong shape become
`ProtocolError`.

The transport and the request policy are injectable: tests pass an
`httpx.MockTransport`, and a retry/backoff strategy can be plugged in as a
`RequestPolicy` without touching the client. The default policy sends each
request exactly once.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.github.auth import AppAssertion
from app.github.errors import ProtocolError, UpstreamError, UpstreamTimeoutError
from app.github.schemas import (
    Installation,
    InstallationAccessToken,
    RepositoryRef,
    unwrap_collection,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"

SendRequest = Callable[[], Awaitable[httpx.Response]]


class RequestPolicy(Protocol):
    """Decides how a single logical request is sent.

    Receives a zero-argument coroutine factory that performs one HTTP
    attempt. Implementations may call it more than once (retry on 403
    secondary rate limit, 5xx backoff, ...) but must return the final
    response or let the httpx exception propagate.
    """

    async def __call__(self, send: SendRequest) -> httpx.Response:
        ...  # noqa: PLR6301


async def single_attempt(send: SendRequest) -> httpx.Response:
    """Default policy: one attempt, no retry."""
    return await send()


class GitHubAppClient:
    """Thin async client over GitHub's App and installation endpoints.

    Use as an async context manager so the underlying connection pool is
    closed even when a call fails or the calling task is cancelled:

        async with GitHubAppClient.from_settings(settings) as client:
            installations = await client.list_installations(assertion)
    """

    def __init__(
        self,
        base_url: str = GITHUB_API_BASE,
        *,
        user_agent: str = "installation-broker/0.1",
        accept: str = "application/vnd.github+json",
        api_version: str = "2022-11-28",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_policy: RequestPolicy = single_attempt,
    ):
        self.timeout = timeout
        self._request_policy = request_policy
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={
                "Accept": accept,
                "User-Agent": user_agent,
                "X-GitHub-Api-Version": api_version,
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_policy: RequestPolicy = single_attempt,
    ) -> "GitHubAppClient":
        return cls(
            settings.github_api_base,
            user_agent=settings.github_user_agent,
            accept=settings.github_accept,
            api_version=settings.github_api_version,
            timeout=settings.github_timeout_seconds,
            transport=transport,
            request_policy=request_policy,
        )

    async def __aenter__(self) -> "GitHubAppClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -----------------------------------------------------------------------
    # App-level endpoints (app JWT)
    # -----------------------------------------------------------------------

    async def list_installations(self, assertion: AppAssertion) -> list[Installation]:
        """List installations of the App, in GitHub's response order."""
        path = "/app/installations"
        payload = await self._request("GET", path, _app_auth_headers(assertion))

        try:
            return [
                Installation.model_validate(item)
                for item in unwrap_collection(payload, "installations")
            ]
        except ValidationError:
            raise ProtocolError("Installation entry without an integer id", endpoint=path) from None

    async def create_installation_token(
        self,
        installation_id: int,
        assertion: AppAssertion,
    ) -> InstallationAccessToken:
        """Exchange the app JWT for an installation access token.

        Installation tokens are scoped to the repos the installation was
        granted and expire after 1 hour.
        """
        path = f"/app/installations/{installation_id}/access_tokens"
        payload = await self._request("POST", path, _app_auth_headers(assertion))

        if not isinstance(payload, dict) or not isinstance(payload.get("token"), str) or not payload["token"]:
            raise ProtocolError("Access token response has no token field", endpoint=path)

        try:
            return InstallationAccessToken(
                token=payload["token"],
                expires_at=payload.get("expires_at"),
                installation_id=installation_id,
            )
        except ValidationError:
            raise ProtocolError("Access token response has an invalid expires_at", endpoint=path) from None

    # -----------------------------------------------------------------------
    # Installation-scoped endpoints (installation token)
    # -----------------------------------------------------------------------

    async def list_installation_repositories(
        self, token: InstallationAccessToken
    ) -> list[RepositoryRef]:
        """List repos accessible to an installation token.

        Only the first page is fetched (GitHub's default page size of 30).
        When `total_count` reports more, a warning is logged.
        """
        path = "/installation/repositories"
        payload = await self._request("GET", path, _installation_auth_headers(token))

        try:
            repos = [
                RepositoryRef.model_validate(item)
                for item in unwrap_collection(payload, "repositories")
            ]
        except ValidationError:
            raise ProtocolError("Repository entry without full_name", endpoint=path) from None

        total = payload.get("total_count") if isinstance(payload, dict) else None
        if isinstance(total, int) and total > len(repos):
            logger.warning(
                "Installation has %d repositories but only %d were returned; "
                "pagination is not implemented",
                total,
                len(repos),
            )
        return repos

    # -----------------------------------------------------------------------

    async def _request(self, method: str, path: str, headers: dict[str, str]) -> Any:
        async def send() -> httpx.Response:
            return await self._http.request(method, path, headers=headers)

        try:
            response = await self._request_policy(send)
        except httpx.TimeoutException as exc:
            logger.warning("GitHub %s %s timed out after %ss", method, path, self.timeout)
            raise UpstreamTimeoutError(path, self.timeout) from exc
        except httpx.TransportError as exc:
            logger.warning("GitHub %s %s failed: %s", method, path, exc)
            raise UpstreamError(None, str(exc), endpoint=path) from exc

        logger.debug("GitHub %s %s -> %d", method, path, response.status_code)

        if not response.is_success:
            logger.warning(
                "GitHub %s %s returned %d: %s",
                method,
                path,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamError(response.status_code, response.text, endpoint=path)

        try:
            return response.json()
        except ValueError:
            raise ProtocolError("Response body is not valid JSON", endpoint=path) from None


def _app_auth_headers(assertion: AppAssertion) -> dict[str, str]:
    if not isinstance(assertion, AppAssertion):
        raise TypeError("App endpoints require an AppAssertion (app JWT)")
    return {"Authorization": f"Bearer {assertion.token}"}


def _installation_auth_headers(token: InstallationAccessToken) -> dict[str, str]:
    if not isinstance(token, InstallationAccessToken):
        raise TypeError("Installation endpoints require an InstallationAccessToken")
    return {"Authorization": f"Bearer {token.token.get_secret_value()}"}
