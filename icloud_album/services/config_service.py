# icloud_album/services/config_service.py
"""
Provides a singleton configuration service for the library and its CLI.

This service is responsible for:
1. Loading environment variables from a `.env` file.
2. Loading the `config.yaml` file.
3. Setting up a centralized logging system for console and file output,
   on request only, so that importing the library never reconfigures the
   host application's logging.

Using a singleton pattern ensures that configuration is loaded once and is
consistent across all modules that import it.
"""
import yaml
import os
import logging
import sys
from pathlib import Path
import dotenv
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "ICLOUD_ALBUM_CONFIG"

class AppConfig:
    _instance: Optional['AppConfig'] = None
    _loaded: bool = False
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, *args, **kwargs) -> 'AppConfig':
        if cls._instance is None:
            with cls._lock:
                # Double-check pattern to prevent race conditions
                if cls._instance is None:
                    cls._instance = super(AppConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # The __init__ might be called multiple times, but the loading logic
        # is protected by the `_loaded` flag and thread lock.
        if not self._loaded:
            with self._lock:
                if not self._loaded:
                    # Load environment variables first, they may point at the config file.
                    dotenv.load_dotenv()
                    self.project_root = Path(__file__).resolve().parents[2]

                    self._load_yaml_config()
                    self._load_env_vars()

                    self._loaded = True

    def _config_path(self) -> Path:
        override = os.getenv(CONFIG_PATH_ENV)
        return Path(override) if override else self.project_root / 'config.yaml'

    def _load_yaml_config(self) -> None:
        """Loads config.yaml. A missing or broken file falls back to built-in defaults."""
        config_path = self._config_path()
        self.yaml: Dict[str, Any] = {}
        try:
            with open(config_path, 'r') as f:
                self.yaml = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Configuration file not found at {config_path}; using defaults.")
        except yaml.YAMLError as e:
            logger.warning(f"Error parsing YAML configuration file {config_path}: {e}; using defaults.")

        if not isinstance(self.yaml, dict):
            logger.warning(f"Configuration file {config_path} does not contain a mapping; using defaults.")
            self.yaml = {}

    def _load_env_vars(self) -> None:
        """Loads the optional environment overrides."""
        self.service_host = os.getenv("ICLOUD_ALBUM_HOST") or self.get('service.host', 'sharedstreams.icloud.com')
        self.default_token = os.getenv("ICLOUD_ALBUM_TOKEN")

    def setup_logging(self, level: Optional[str] = None) -> None:
        """Configures the root logger for consistent logging across the app."""
        log_config = self.get('logging', {}) or {}
        log_level_str = (level or log_config.get('level', 'INFO')).upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        handlers = [logging.StreamHandler(sys.stdout)]
        log_dir_name = log_config.get('directory')
        if log_dir_name:
            log_dir = self.project_root / log_dir_name
            log_dir.mkdir(exist_ok=True)
            handlers.append(logging.FileHandler(log_dir / log_config.get('filename', 'icloud_album.log')))

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - [%(levelname)s] - %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            handlers=handlers,
            force=True
        )

        # Silence overly verbose libraries
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Safely retrieves a value from the nested YAML configuration.

        Args:
            key_path (str): A dot-separated path to the desired key (e.g., 'retry.max_retries').
            default: The value to return if the key is not found.

        Returns:
            The configuration value or the default.
        """
        value = self.yaml
        try:
            for key in key_path.split('.'):
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

# Create the singleton instance that will be imported by other modules.
config = AppConfig()
