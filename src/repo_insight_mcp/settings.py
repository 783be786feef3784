import os
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".repo-insight-mcp"
DEFAULT_MODEL_CACHE_HOURS = 24
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0

SETTINGS_FILE_NAME = "settings.json"


def get_data_dir() -> Path:
    if data_dir := os.getenv("REPO_INSIGHT_DATA_DIR"):
        return Path(data_dir).expanduser()

    return DEFAULT_DATA_DIR


def get_settings_path() -> Path:
    return get_data_dir() / SETTINGS_FILE_NAME


def get_model_cache_hours() -> int:
    return int(os.getenv("REPO_INSIGHT_MODEL_CACHE_HOURS", str(DEFAULT_MODEL_CACHE_HOURS)))


def get_http_timeout() -> float:
    return float(os.getenv("REPO_INSIGHT_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT_SECONDS)))


def get_github_token() -> str | None:
    """The GitHub token is optional, unauthenticated requests are subject to a lower rate limit."""

    env_vars: list[str] = ["GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"]
    for env_var in env_vars:
        if token := os.getenv(env_var):
            return token

    return None
