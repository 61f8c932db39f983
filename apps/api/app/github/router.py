"""GitHub App endpoints.

GET /github/repositories resolves the repositories accessible to the App's
installation (see `InstallationTokenBroker`). Broker failures are turned
into JSON error responses by `broker_error_handler`, registered in
`create_app()`. Upstream status codes and bodies are logged here but only
the error message reaches the client, and no message ever carries key or
token material.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.limiter import limiter
from app.github.broker import InstallationTokenBroker
from app.github.dependencies import get_broker
from app.github.errors import (
    BrokerError,
    ConfigurationError,
    UpstreamError,
    UpstreamTimeoutError,
)
from app.github.schemas import AccessibleRepositoriesResponse, BrokerErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/github", tags=["github"])

settings = get_settings()


def status_for_error(exc: BrokerError) -> int:
    """Map a broker failure onto the HTTP status returned to our caller."""
    if isinstance(exc, ConfigurationError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, UpstreamTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    return status.HTTP_502_BAD_GATEWAY


async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error(
            "GitHub API error on %s: %s %s",
            exc.endpoint,
            exc.status,
            exc.body[:200],
        )
    else:
        logger.error("GitHub App flow failed: %s", exc)

    return JSONResponse(
        status_code=status_for_error(exc),
        content=BrokerErrorResponse(error=str(exc)).model_dump(),
    )


@router.get(
    "/repositories",
    response_model=AccessibleRepositoriesResponse,
    responses={
        500: {"model": BrokerErrorResponse},
        502: {"model": BrokerErrorResponse},
        504: {"model": BrokerErrorResponse},
    },
)
@limiter.limit(settings.repositories_rate_limit)
async def list_repositories(
    request: Request,
    broker: InstallationTokenBroker = Depends(get_broker),
) -> AccessibleRepositoriesResponse:
    """List "owner/repo" names the GitHub App installation can access.

    Mints a fresh app JWT and installation token on every call. Only the
    first installation and the first page of repositories are returned.
    """
    repositories = await broker.list_accessible_repositories()
    return AccessibleRepositoriesResponse(result=repositories)
