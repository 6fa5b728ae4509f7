"""Configuration management for dbxsync."""

import os
from pathlib import Path
from typing import Optional

from .exceptions import DbxConfigError

DEFAULT_API_URL = "https://api.dropbox.com/1"
DEFAULT_CONTENT_URL = "https://api-content.dropbox.com/1"
DEFAULT_ROOT = "auto"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str, key: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise DbxConfigError(f"Invalid boolean value for {key}: {value!r}")


class Config:
    """Reads settings from the environment and the user config file.

    Environment variables take precedence over the config file. The file
    lives at ``~/.config/dbxsync/config`` and holds ``KEY=value`` lines.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            xdg = os.environ.get("XDG_CONFIG_HOME")
            base = Path(xdg) if xdg else Path.home() / ".config"
            config_dir = base / "dbxsync"
        self.config_dir = config_dir
        self.config_file = self.config_dir / "config"

    def get_config_path(self) -> Path:
        """Get the path to the config file."""
        return self.config_file

    def _load_file(self) -> dict[str, str]:
        """Load ``KEY=value`` pairs from the config file."""
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values
        try:
            text = self.config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise DbxConfigError(f"Cannot read config file {self.config_file}: {e}")
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip()
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key)

    def _save(self, key: str, value: Optional[str]) -> None:
        """Set or remove a key in the config file."""
        values = self._load_file()
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{k}={v}\n" for k, v in sorted(values.items()))
        self.config_file.write_text(content, encoding="utf-8")
        # The file holds the access token
        self.config_file.chmod(0o600)

    @property
    def access_token(self) -> Optional[str]:
        """Access token used to authenticate API requests."""
        return self._get("DBXSYNC_ACCESS_TOKEN")

    @property
    def api_url(self) -> str:
        """Base URL for metadata and file operations."""
        return self._get("DBXSYNC_API_URL") or DEFAULT_API_URL

    @property
    def content_url(self) -> str:
        """Base URL for file uploads and downloads."""
        return self._get("DBXSYNC_CONTENT_URL") or DEFAULT_CONTENT_URL

    @property
    def root(self) -> str:
        """Remote root namespace ("auto", "dropbox" or "sandbox")."""
        return self._get("DBXSYNC_ROOT") or DEFAULT_ROOT

    @property
    def escape_paths(self) -> bool:
        """Whether remote paths are percent-encoded in request URLs."""
        value = self._get("DBXSYNC_ESCAPE_PATHS")
        if value is None:
            return True
        return _parse_bool(value, "DBXSYNC_ESCAPE_PATHS")

    def is_configured(self) -> bool:
        """Check whether an access token is available."""
        return bool(self.access_token)

    def save_access_token(self, access_token: str) -> None:
        """Persist the access token to the config file."""
        self._save("DBXSYNC_ACCESS_TOKEN", access_token)

    def save_escape_paths(self, enabled: bool) -> None:
        """Persist the path escaping setting."""
        self._save("DBXSYNC_ESCAPE_PATHS", "true" if enabled else "false")


config = Config()
