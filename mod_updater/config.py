"""
Settings for the update engine

Settings live in a JSON file (``~/.config/mod_updater/config.json`` by default).
Missing keys keep their defaults; an unreadable file is logged and ignored.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional

from mod_updater import constants

logger = logging.getLogger("mod_updater.config")


def default_config_path() -> Path:
    """Return the default settings file location."""
    return Path.home() / ".config" / constants.CONFIG_DIR_NAME / constants.CONFIG_FILE_NAME


@dataclass
class UpdaterConfig:
    """
    Engine settings.

    Attributes:
        timeout: Timeout in seconds for every HTTP request
        retries: Attempts per request before giving up
        user_agent: User-Agent header sent to all sources
        github_token: Optional GitHub token, raises the API rate limit
        report_not_found: Report missing remote resources as errors instead of "no update"
        mods_dir: Folder under the game root that holds the mods
    """
    timeout: float = constants.DEFAULT_TIMEOUT
    retries: int = constants.DEFAULT_RETRIES
    user_agent: str = constants.USER_AGENT
    github_token: Optional[str] = None
    report_not_found: bool = False
    mods_dir: str = constants.MODS_DIR

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "UpdaterConfig":
        """
        Load settings from a JSON file.

        Args:
            config_path: Path to the settings file. If None, uses default location.

        Returns:
            UpdaterConfig with file values applied over the defaults
        """
        path = Path(config_path) if config_path else default_config_path()
        config = cls()

        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                known = {f.name for f in fields(cls)}
                for key, value in data.items():
                    if key in known:
                        setattr(config, key, value)
                    else:
                        logger.warning(f"Ignoring unknown setting {key!r} in {path}")
                logger.debug(f"Loaded settings from {path}")
            except (json.JSONDecodeError, IOError, AttributeError) as e:
                logger.error(f"Failed to load settings from {path}: {e}")

        token = os.environ.get(constants.GITHUB_TOKEN_ENV)
        if token:
            config.github_token = token

        return config

    def save(self, config_path: Optional[str] = None) -> None:
        """Write settings to a JSON file, creating the parent folder."""
        path = Path(config_path) if config_path else default_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)
        logger.debug(f"Saved settings to {path}")
