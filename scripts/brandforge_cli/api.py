"""Brandforge CLI API client - mockable for testing."""
import json
import os
from pathlib import Path
from typing import Iterator, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


# Config paths
DEFAULT_URL = "http://127.0.0.1:8767"
CONFIG_DIR = Path.home() / ".brandforge"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


class APIError(Exception):
    """API error with status code and details."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Error {status_code}: {detail}")


class ConfigError(Exception):
    """Configuration error (missing token, etc)."""
    pass


class ConnectionError(Exception):
    """Connection error."""
    pass


def load_config() -> dict:
    """Load config from ~/.brandforge/config.yaml."""
    if not CONFIG_FILE.exists():
        return {}
    config = {}
    with open(CONFIG_FILE) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and ":" in line:
                key, value = line.split(":", 1)
                config[key.strip()] = value.strip()
    return config


def save_config(config: dict):
    """Save config to ~/.brandforge/config.yaml."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        for key, value in config.items():
            f.write(f"{key}: {value}\n")
    CONFIG_FILE.chmod(0o600)


def get_url() -> str:
    """Get Brandforge URL from env or config."""
    return os.environ.get("BRANDFORGE_URL") or load_config().get("url") or DEFAULT_URL


def get_token() -> str:
    """Get the access token from env or config.

    Raises:
        ConfigError: If no token is configured
    """
    token = os.environ.get("BRANDFORGE_TOKEN") or load_config().get("token")
    if not token:
        raise ConfigError("BRANDFORGE_TOKEN not found. Set with env var or 'brandforge config set token'")
    return token


def _error_detail(e: HTTPError) -> str:
    try:
        error = json.loads(e.read().decode())
        return error.get("detail", str(error))
    except (ValueError, AttributeError):
        return f"HTTP {e.code}"


def _build_request(method: str, endpoint: str, data: Optional[dict], base_url: Optional[str],
                   token: Optional[str]) -> Request:
    url = f"{(base_url or get_url()).rstrip('/')}{endpoint}"
    headers = {
        "Authorization": f"Bearer {token or get_token()}",
        "Content-Type": "application/json",
    }
    body = json.dumps(data).encode() if data is not None else None
    return Request(url, data=body, headers=headers, method=method)


def api_request(
    method: str,
    endpoint: str,
    data: dict = None,
    timeout: int = 30,
    base_url: str = None,
    token: str = None,
) -> dict:
    """Make API request to Brandforge.

    Args:
        method: HTTP method (GET, POST, etc)
        endpoint: API endpoint (e.g., /api/video/generate)
        data: Request body (will be JSON encoded)
        timeout: Request timeout in seconds
        base_url: Override base URL (for testing)
        token: Override access token (for testing)

    Returns:
        Parsed JSON response

    Raises:
        APIError: On HTTP errors
        ConnectionError: On network errors
        ConfigError: If no token is configured
    """
    req = _build_request(method, endpoint, data, base_url, token)

    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except HTTPError as e:
        raise APIError(e.code, _error_detail(e))
    except URLError as e:
        raise ConnectionError(f"Connection error: {e.reason}")


def stream_events(
    endpoint: str,
    timeout: int = 900,
    base_url: str = None,
    token: str = None,
) -> Iterator[dict]:
    """Follow a server-sent events endpoint, yielding each `data:` payload.

    Raises:
        APIError: If the stream can't be opened
        ConnectionError: On network errors
    """
    req = _build_request("GET", endpoint, None, base_url, token)
    req.add_header("Accept", "text/event-stream")

    try:
        with urlopen(req, timeout=timeout) as resp:
            for raw in resp:
                line = raw.decode().strip()
                if line.startswith("data:"):
                    yield json.loads(line[5:].strip())
    except HTTPError as e:
        raise APIError(e.code, _error_detail(e))
    except URLError as e:
        raise ConnectionError(f"Connection error: {e.reason}")
