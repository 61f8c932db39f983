"""Error taxonomy for the installation token broker.

Every failure the broker can surface derives from `BrokerError`, so the
calling route needs a single except clause. The subclasses tell the caller
whether retrying makes sense:

  ConfigurationError   — identity material missing or malformed. Fatal.
  UpstreamError        — GitHub answered with a non-2xx status (or could not
                         be reached at all). Retryable at the caller's
                         discretion.
  ProtocolError        — GitHub answered 2xx with a body we cannot use.
  UpstreamTimeoutError — a call exceeded its deadline.

None of these messages ever include the private key, the app JWT or an
installation token.
"""

from typing import Optional


class BrokerError(Exception):
    """Base class for all broker failures."""


class ConfigurationError(BrokerError):
    """GitHub App identity is missing or invalid.

    Always raised before any network call is made.
    """


class UpstreamError(BrokerError):
    """GitHub returned a non-2xx response.

    `status` is None when the request never got a response (connection
    refused, DNS failure). `body` is the raw response text, kept for
    diagnostics.
    """

    def __init__(self, status: Optional[int], body: str, endpoint: str = ""):
        self.status = status
        self.body = body
        self.endpoint = endpoint
        where = f" from {endpoint}" if endpoint else ""
        if status is None:
            message = f"GitHub API unreachable{where}: {body[:200]}"
        else:
            message = f"GitHub API error {status}{where}: {body[:200]}"
        super().__init__(message)


class ProtocolError(BrokerError):
    """GitHub returned 2xx but the body does not have the expected shape."""

    def __init__(self, message: str, endpoint: str = ""):
        self.endpoint = endpoint
        super().__init__(f"{message} ({endpoint})" if endpoint else message)


class UpstreamTimeoutError(BrokerError, TimeoutError):
    """A GitHub API call did not complete within the configured timeout."""

    def __init__(self, endpoint: str, timeout: float):
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(f"GitHub API call to {endpoint} timed out after {timeout:g}s")
