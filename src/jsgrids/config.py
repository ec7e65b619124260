"""Configuration settings for the jsgrids data pipeline."""

from pathlib import Path
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings


def _default_cache_dir() -> Path:
    """Get default cache directory (~/.jsgrids/)."""
    return Path.home() / ".jsgrids"


class Settings(BaseSettings):
    """jsgrids pipeline configuration.

    Environment variables:
    - DATA_DIR: Directory holding one YAML file per library (default: data)
    - CACHE_DIR: Cache database directory (default: ~/.jsgrids)
    - CACHE_TTL_GITHUB / CACHE_TTL_NPM / CACHE_TTL_BUNDLEPHOBIA: Seconds a
        cached API payload stays valid, per source kind
    - GITHUB_TOKEN: Optional token, raises the GitHub API rate limit
    - REQUEST_LIMIT: Requests allowed to start per REQUEST_INTERVAL (default: 5)
    - REQUEST_INTERVAL: Throttle window in seconds (default: 1.0)
    - REQUEST_CONCURRENCY: Requests in flight at once (default: 4)
    - REQUEST_TIMEOUT: Per-request timeout in seconds (default: 30)
    - FAILURE_POLICY: "fail-fast" | "collect" (default: fail-fast)
    """

    # Sources
    data_dir: str = "data"

    # Cache
    cache_dir: str = ""  # Default: ~/.jsgrids
    cache_ttl_github: int = 86400  # 1 day
    cache_ttl_npm: int = 86400  # 1 day
    cache_ttl_bundlephobia: int = 604800  # 7 days, sizes only change on release

    # External APIs
    github_token: SecretStr | None = None

    # Throttling (shared by every outgoing request)
    request_limit: int = 5
    request_interval: float = 1.0
    request_concurrency: int = 4
    request_timeout: float = 30.0

    # Aggregation
    failure_policy: Literal["fail-fast", "collect"] = "fail-fast"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    # --- Path helpers ---

    def get_data_dir(self) -> Path:
        """Get resolved source data directory."""
        return Path(self.data_dir).expanduser()

    def get_cache_dir(self) -> Path:
        """Get cache directory.

        Uses CACHE_DIR if set, otherwise ~/.jsgrids/.
        """
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return _default_cache_dir()

    def get_cache_db_path(self) -> Path:
        """Get resolved API cache database path."""
        return self.get_cache_dir() / "cache.db"

    # --- Cache TTLs ---

    def cache_ttls(self) -> dict[str, int]:
        """Return TTL per cache key kind, as used by ``ApiCache``."""
        return {
            "gh": self.cache_ttl_github,
            "npm": self.cache_ttl_npm,
            "bundlephobia": self.cache_ttl_bundlephobia,
        }

    # --- API auth ---

    def resolve_github_token(self) -> str | None:
        """Return the GitHub token, or None when unset or blank."""
        if self.github_token is None:
            return None
        token = self.github_token.get_secret_value().strip()
        return token or None


settings = Settings()
