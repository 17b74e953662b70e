"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os
from urllib.parse import urlsplit

from dotenv import load_dotenv

from nlsearch.core.errors import ConfigError

load_dotenv()


def normalize_base_url(raw: str) -> str:
    """Reduce a Sourcegraph URL to scheme://host[:port]; any path is dropped."""
    parts = urlsplit(raw.strip())
    # Credentials in the URL are never forwarded
    host = parts.netloc.rpartition("@")[2]
    if not parts.scheme or not host:
        raise ConfigError(f"Invalid SOURCEGRAPH_URL: {raw!r}")
    return f"{parts.scheme}://{host}"


# Sourcegraph instance (from env)
SOURCEGRAPH_URL: str = normalize_base_url(
    os.getenv("SOURCEGRAPH_URL", "").strip() or "https://sourcegraph.com"
)
SOURCEGRAPH_TOKEN: str = os.getenv("SOURCEGRAPH_TOKEN", "").strip()

# Server
PORT: int = int(os.getenv("PORT", "8080"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Optional directory of static frontend files served at /
FRONTEND_DIR: str = os.getenv("FRONTEND_DIR", "").strip()

# Sent as X-Requested-With on every Deep Search call
CLIENT_IDENTIFIER: str = "nlsearch-app 1.0.0"

# API timeouts (seconds)
DEEPSEARCH_HTTP_TIMEOUT: float = 30.0
# Conversation creation + answer wait, combined
QUERY_TIMEOUT: float = 60.0
POLL_INTERVAL: float = 1.0

# Streamlit UI -> backend
API_BASE: str = os.getenv("API_BASE", "http://localhost:8080")


def validate_config() -> None:
    """Fail startup when required settings are missing."""
    if not SOURCEGRAPH_TOKEN:
        raise ConfigError("SOURCEGRAPH_TOKEN environment variable is required")
