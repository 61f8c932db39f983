"""Sentry SDK integration for the broker API.

Captures exceptions without leaking secrets. The broker handles a GitHub
App private key, app JWTs and installation tokens, so the `before_send`
hook redacts any event field whose key looks like one of those.

  - `send_default_pii=False` — no request bodies or headers by default.
  - No-op when SENTRY_DSN is empty (local dev, CI).
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Keywords that indicate a value should be redacted from Sentry events
_SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "secret",
        "password",
        "token",
        "dsn",
        "private_key",
        "authorization",
        "jwt",
    }
)


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact values for sensitive keys.

    Walks the event's `extra`, `request.data` and `request.headers` dicts
    and replaces matching values with "[REDACTED]".
    """
    _scrub_dict(event.get("extra", {}))
    request = event.get("request", {})
    for section in ("data", "headers"):
        value = request.get(section, {})
        if isinstance(value, dict):
            _scrub_dict(value)
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialise the Sentry SDK.

    Args:
        dsn: Sentry DSN string. Empty string disables Sentry entirely.
        environment: Sentry environment tag ("development" | "production").
    """
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured, skipping initialisation")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[FastApiIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
