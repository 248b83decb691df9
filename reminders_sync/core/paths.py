"""
Path management for reminders-sync.

Resolves the per-user working directory that holds the configuration
file. Vault-local state (the mapping file, the output document) lives
inside each vault and is resolved by the sync engine instead.
"""

import os
import sys
from pathlib import Path
from typing import Optional
import logging


class PathManager:
    """Resolves reminders-sync file paths.

    Instances are created by the caller and passed down explicitly; there
    is no process-wide default instance.
    """

    APP_DIR_NAME = "reminders-sync"
    HOME_ENV_VAR = "REMINDERS_SYNC_HOME"

    CONFIG_FILE = "config.json"

    def __init__(self, working_dir: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._working_dir: Optional[Path] = (
            self.resolve_user_path(working_dir) if working_dir else None
        )

    def _default_user_dir(self) -> Path:
        """Platform-appropriate per-user data directory."""
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / self.APP_DIR_NAME
        if sys.platform.startswith("win"):
            appdata = os.environ.get("APPDATA")
            if appdata:
                return Path(appdata) / self.APP_DIR_NAME
            return Path.home() / "AppData" / "Roaming" / self.APP_DIR_NAME
        return Path.home() / ".config" / self.APP_DIR_NAME

    @property
    def working_dir(self) -> Path:
        """
        Get the working directory for reminders-sync data.

        Priority order:
        1. Explicit ``working_dir`` passed to the constructor
        2. REMINDERS_SYNC_HOME environment variable
        3. Platform user data directory
        """
        if self._working_dir is not None:
            return self._working_dir

        env_override = os.environ.get(self.HOME_ENV_VAR)
        if env_override:
            self._working_dir = self.resolve_user_path(env_override)
            self.logger.debug(f"Using {self.HOME_ENV_VAR} override: {self._working_dir}")
        else:
            self._working_dir = self._default_user_dir()
        return self._working_dir

    @property
    def config_path(self) -> Path:
        """Get the configuration file path."""
        return self.working_dir / self.CONFIG_FILE

    def ensure_directories(self) -> None:
        """Ensure the working directory exists."""
        self.working_dir.mkdir(parents=True, exist_ok=True)
        self.logger.debug(f"Ensured directory exists: {self.working_dir}")

    @staticmethod
    def resolve_user_path(path: str) -> Path:
        """Resolve a user-provided path, handling ~ expansion and relative paths."""
        return Path(os.path.expanduser(path)).resolve()
