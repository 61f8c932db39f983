"""FastAPI dependency that builds the installation token broker.

The broker is constructed per request from `Settings`, so a missing or
malformed GitHub App identity surfaces as `ConfigurationError` on the
request that needs it rather than at import time. Tests override this
dependency with a broker wired to an `httpx.MockTransport`.
"""

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.github.broker import InstallationTokenBroker


def get_broker(settings: Settings = Depends(get_settings)) -> InstallationTokenBroker:
    return InstallationTokenBroker.from_settings(settings)
