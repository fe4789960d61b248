"""Configuration management for pygitpush.

Settings are read from ``~/.config/pygitpush/config`` (one ``KEY=VALUE``
pair per line) and can be overridden with environment variables:

- ``GITHUB_TOKEN``: personal access token
- ``PYGITPUSH_API_URL``: API base URL (GitHub Enterprise)
- ``PYGITPUSH_OWNER`` / ``PYGITPUSH_REPO`` / ``PYGITPUSH_BRANCH``: target
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class Config:
    """Configuration loaded from the config file and the environment."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/pygitpush
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pygitpush"
        self.config_dir = config_dir
        self._file_values: dict[str, str] = self._load_file()

    def get_config_path(self) -> Path:
        """Path of the config file."""
        return self.config_dir / "config"

    def _load_file(self) -> dict[str, str]:
        path = self.get_config_path()
        values: dict[str, str] = {}
        if not path.exists():
            return values
        try:
            for line in path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip()
        except OSError as e:
            logger.warning(f"Failed to read config file {path}: {e}")
        return values

    def _get(self, env_key: str) -> Optional[str]:
        value = os.environ.get(env_key)
        if value:
            return value
        return self._file_values.get(env_key) or None

    @property
    def token(self) -> Optional[str]:
        """GitHub token."""
        return self._get("GITHUB_TOKEN")

    @property
    def api_url(self) -> str:
        """GitHub API base URL."""
        return self._get("PYGITPUSH_API_URL") or DEFAULT_API_URL

    @property
    def repo_owner(self) -> Optional[str]:
        """Default repository owner."""
        return self._get("PYGITPUSH_OWNER")

    @property
    def repo_name(self) -> Optional[str]:
        """Default repository name."""
        return self._get("PYGITPUSH_REPO")

    @property
    def branch(self) -> Optional[str]:
        """Default target branch."""
        return self._get("PYGITPUSH_BRANCH")

    def is_configured(self) -> bool:
        """True if a token is available."""
        return self.token is not None

    def _save(self, updates: dict[str, str]) -> None:
        self._file_values.update(updates)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        lines = [f"{key}={value}" for key, value in sorted(self._file_values.items())]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        # The file holds a credential
        path.chmod(0o600)
        logger.debug(f"Saved configuration to {path}")

    def save_token(self, token: str) -> None:
        """Persist the GitHub token."""
        self._save({"GITHUB_TOKEN": token})

    def save_repository(
        self, owner: str, repo: str, branch: Optional[str] = None
    ) -> None:
        """Persist the default target repository."""
        updates = {"PYGITPUSH_OWNER": owner, "PYGITPUSH_REPO": repo}
        if branch:
            updates["PYGITPUSH_BRANCH"] = branch
        self._save(updates)

    def clear_token(self) -> bool:
        """Remove a stored token.

        Returns:
            True if a token was stored
        """
        if "GITHUB_TOKEN" not in self._file_values:
            return False
        del self._file_values["GITHUB_TOKEN"]
        self._save({})
        return True


config = Config()

__all__ = ["Config", "config", "DEFAULT_API_URL"]
