from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalise_private_key(value: str) -> str:
    """Turn a single-line PEM value back into a multi-line PEM block.

    Deploy targets (Railway, GitHub Actions secrets, `.env` files) usually
    store the App's private key on one line with literal ``\\n`` escapes.
    PEM parsers need real newlines, so the escapes are expanded here once
    instead of at every call site. Surrounding quotes left over from shell
    quoting are stripped too.
    """
    if not value:
        return value
    value = value.strip().strip('"').strip("'")
    return value.replace("\\n", "\n")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The GitHub App identity (GITHUB_APP_ID + GITHUB_PRIVATE_KEY) is the only
    required configuration; it is validated lazily when the broker's
    `AppIdentity` is built, so the app still boots (and /health still works)
    without it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # GitHub App. The private key is the PEM contents (not a file path).
    github_app_id: str = ""
    github_private_key: str = ""

    @field_validator("github_private_key", mode="before")
    @classmethod
    def normalise_private_key(cls, v: str) -> str:
        return _normalise_private_key(v)

    # Upstream API
    github_api_base: str = "https://api.github.com"
    github_accept: str = "application/vnd.github+json"
    github_api_version: str = "2022-11-28"
    # GitHub rejects requests without a User-Agent.
    github_user_agent: str = "installation-broker/0.1"
    github_timeout_seconds: float = 10.0

    @field_validator("github_api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Every call to the repositories route mints a fresh installation token,
    # so the route is rate-limited per client. SlowAPI format.
    repositories_rate_limit: str = "30/minute"

    # CORS — comma-separated list of allowed origins.
    cors_origins: list[str] = ["*"]

    # Sentry — leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = True


def get_settings() -> Settings:
    return Settings()
