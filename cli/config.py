"""Configuration and token storage for the SFS CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from common.logging_config import get_logger
from cli.constants import DEFAULT_SERVER_URL

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration and the session token pair in a JSON file."""

    DEFAULT_CONFIG = {
        "server_url": os.environ.get("SFS_SERVER_URL", DEFAULT_SERVER_URL),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.sfs/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        A file that cannot be parsed is copied aside to config.json.bak and
        defaults are used instead.
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.sfs' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = self.DEFAULT_CONFIG.copy()

        if not self.config_path.exists():
            self.data = config
            self.save()
            return config

        try:
            with open(self.config_path, 'r') as f:
                config.update(json.load(f))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable config file {self.config_path}: {e}")
            backup_path = self.config_path.with_suffix('.json.bak')
            try:
                shutil.copy(self.config_path, backup_path)
            except OSError as copy_error:
                logger.warning(f"Could not back up config file: {copy_error}")
        return config

    def save(self) -> None:
        """Save current configuration to file, readable by the owner only."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
            os.chmod(self.config_path, 0o600)
        except OSError as e:
            logger.warning(f"Could not save config file {self.config_path}: {e}")

    def get_tokens(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Returns:
            (access_token, refresh_token); either may be None
        """
        return self.data.get('access_token'), self.data.get('refresh_token')

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        self.data['access_token'] = access_token
        self.data['refresh_token'] = refresh_token
        self.save()

    def clear_tokens(self) -> None:
        self.data.pop('access_token', None)
        self.data.pop('refresh_token', None)
        self.save()

    def get_base_url(self) -> str:
        """
        Get server base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8080")
        """
        return self.data.get('server_url', DEFAULT_SERVER_URL).rstrip('/')

    def get_timeout(self) -> int:
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
