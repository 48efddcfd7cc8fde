"""Environment-driven settings for the CLI entry points."""

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_DB_URL = "sqlite:///data/exchange_rates.db"


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Read once at startup; command-line flags take precedence over these values.
    """

    db_url: str = DEFAULT_DB_URL
    pool_size: int = 4
    app_id: str | None = None
    http_timeout: float = 10.0
    http_retries: int = 3

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            db_url=env.get("FXSYNC_DB_URL") or DEFAULT_DB_URL,
            pool_size=_env_number(env, "FXSYNC_POOL_SIZE", 4, int),
            app_id=env.get("OPEN_EXCHANGE_RATES_APP_ID") or None,
            http_timeout=_env_number(env, "FXSYNC_HTTP_TIMEOUT", 10.0, float),
            http_retries=_env_number(env, "FXSYNC_HTTP_RETRIES", 3, int),
        )
