#!/usr/bin/env python3
"""
Configuration management for the Trend Aggregator.

This module centralizes all configuration loading, validation, and management.
It handles environment variables, the sources.yaml catalog and logging setup,
and provides a clean interface for accessing configuration values throughout
the application.
"""

from os import environ, path, access, R_OK
from typing import Dict, Any, List
from logging import getLogger, basicConfig, StreamHandler, INFO, DEBUG, WARNING, ERROR
import sys
import yaml
from dotenv import load_dotenv

def _setup_global_logger():
    """Setup a single global logger for the entire application.

    Environment Variables:
        LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR) - defaults to INFO
        LOG_TIMESTAMPS: Enable/disable timestamps in logs (true/false) - defaults to true

    The logger outputs to stdout with line buffering for real-time logging.
    All modules should use get_logger() to create module-specific loggers that inherit this configuration.
    """
    level_str = environ.get("LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": DEBUG,
        "INFO": INFO,
        "WARNING": WARNING,
        "ERROR": ERROR
    }
    level = level_map.get(level_str, INFO)

    show_timestamps = environ.get("LOG_TIMESTAMPS", "true").lower() != "false"

    if show_timestamps:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        log_format = '%(name)s - %(levelname)s - %(message)s'

    basicConfig(
        level=level,
        format=log_format,
        handlers=[StreamHandler(sys.stdout)],
        force=True  # Force reconfiguration if already configured
    )

    try:
        sys.stdout.reconfigure(line_buffering=True)
        sys.stderr.reconfigure(line_buffering=True)
    except AttributeError:
        # Captured streams (pytest) do not support reconfigure
        pass

    # aiohttp access/client chatter is only useful when debugging
    getLogger("aiohttp").setLevel(max(level, WARNING))

    return getLogger("TrendAggregator")

def get_logger(name: str):
    """Get a module-specific logger with the unified configuration.

    Args:
        name: The logger name (e.g., "fetcher", "sources", "aggregator")

    Returns:
        A logger named "TrendAggregator.{name}"
    """
    return getLogger(f"TrendAggregator.{name}")

logger = _setup_global_logger()

class Config:
    """Configuration manager for the Trend Aggregator.

    Values come from three places:
    1. Environment variables
    2. .env file (if present), which overrides the process environment
    3. sources.yaml catalog (channels, topics and optional endpoint overrides)

    Example sources.yaml:
    ```yaml
    endpoints:
      hn_search: "https://hn.algolia.com/api/v1/search"
    topics:
      - rust
      - machine learning
    channels:
      lex-fridman: UCSHZKyawb77ixDdsGog4iWA
    ```
    """

    def __init__(self):
        """Initialize configuration with environment variables and validation."""
        self._load_environment()
        self._validate_and_set_config()
        self._load_sources()

    def _load_environment(self):
        """Load environment variables from a .env file next to this module."""
        dotenv_path = path.join(path.dirname(path.abspath(__file__)), '.env')
        if path.exists(dotenv_path):
            load_dotenv(dotenv_path, override=True)
            logger.info(f"Loaded environment variables from {dotenv_path}")

    def _validate_positive_int(self, env_var: str, default: int, min_val: int = 1) -> int:
        """Validate and parse a positive integer environment variable."""
        try:
            value = int(environ.get(env_var, str(default)))
            if value < min_val:
                logger.warning(f"{env_var} must be at least {min_val}, using default {default}")
                return default
            return value
        except (ValueError, TypeError):
            logger.warning(f"Invalid {env_var} value, using default {default}")
            return default

    def _validate_positive_float(self, env_var: str, default: float, min_val: float = 0.1) -> float:
        """Validate and parse a positive float environment variable."""
        try:
            value = float(environ.get(env_var, str(default)))
            if value < min_val:
                logger.warning(f"{env_var} must be at least {min_val}, using default {default}")
                return default
            return value
        except (ValueError, TypeError):
            logger.warning(f"Invalid {env_var} value, using default {default}")
            return default

    def _validate_and_set_config(self):
        """Validate and set all configuration values."""
        self.USER_AGENT = environ.get("USER_AGENT", "Mozilla/5.0 (compatible; TrendAggregator/1.0)")

        # Source endpoints
        self.HN_SEARCH_URL = environ.get("HN_SEARCH_URL", "https://hn.algolia.com/api/v1/search")
        self.DEVTO_ARTICLES_URL = environ.get("DEVTO_ARTICLES_URL", "https://dev.to/api/articles")
        self.YOUTUBE_FEED_URL = environ.get("YOUTUBE_FEED_URL", "https://www.youtube.com/feeds/videos.xml")
        self.RELEASES_URL = environ.get("RELEASES_URL", "")

        # HTTP request configuration (seconds)
        self.FETCH_TIMEOUT = self._validate_positive_float("FETCH_TIMEOUT", 5.0, 0.1)
        self.FEED_FETCH_TIMEOUT = self._validate_positive_float("FEED_FETCH_TIMEOUT", 12.0, 0.1)
        self.MAX_ATTEMPTS = self._validate_positive_int("MAX_ATTEMPTS", 2, 1)
        self.RETRY_DELAY = self._validate_positive_float("RETRY_DELAY", 1.5, 0.0)

        # Cache lifetimes per namespace (seconds)
        self.TRENDING_CACHE_TTL = self._validate_positive_int("TRENDING_CACHE_TTL", 30 * 60, 1)
        self.CHANNEL_CACHE_TTL = self._validate_positive_int("CHANNEL_CACHE_TTL", 4 * 60 * 60, 1)

        # Batch fan-out for many independent keys
        self.BATCH_SIZE = self._validate_positive_int("BATCH_SIZE", 3, 1)
        self.BATCH_DELAY = self._validate_positive_float("BATCH_DELAY", 0.3, 0.0)

        # Result shaping
        self.MAX_RESULTS = self._validate_positive_int("MAX_RESULTS", 3, 1)
        self.MAX_VIDEOS = self._validate_positive_int("MAX_VIDEOS", 5, 1)
        self.LOOKBACK_DAYS = self._validate_positive_int("LOOKBACK_DAYS", 14, 1)
        self.HN_HITS_PER_PAGE = self._validate_positive_int("HN_HITS_PER_PAGE", 10, 1)
        self.DEVTO_PER_PAGE = self._validate_positive_int("DEVTO_PER_PAGE", 5, 1)
        self.DEVTO_TOP_DAYS = self._validate_positive_int("DEVTO_TOP_DAYS", 7, 1)

        base_dir = path.dirname(path.abspath(__file__))
        self.SOURCES_CONFIG_PATH = environ.get("SOURCES_FILE", path.join(base_dir, "sources.yaml"))

    def _safe_read_yaml(self, file_path: str, max_size: int, kind: str) -> Any | None:
        """Safely read a YAML file with consistent validation.

        Args:
            file_path: Path to the YAML file
            max_size: Maximum allowed file size in bytes
            kind: Short label for logging context (e.g. 'sources')

        Returns:
            Parsed YAML (mapping/list/primitive) or None on failure.
        """
        try:
            if not path.isfile(file_path):
                logger.warning(f"{kind.capitalize()} file not found at {file_path}")
                return None
            if not access(file_path, R_OK):
                logger.error(f"No read permission for {kind} file at {file_path}")
                return None
            size = path.getsize(file_path)
            if size > max_size:
                logger.error(f"{kind.capitalize()} file too large: {size} bytes (limit: {max_size} bytes)")
                return None
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f)
            if not data:
                logger.warning(f"Empty or invalid YAML in {kind} file {file_path}")
                return None
            return data
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML in {kind} file {file_path}: {e}")
        except OSError as e:
            logger.error(f"Error loading {kind} file {file_path}: {e}")
        return None

    def _load_sources(self) -> None:
        """Populate CHANNELS, TOPICS and endpoint overrides from sources.yaml.

        Any failure results in an empty catalog; endpoints keep their env/default values.
        """
        sources_path = self.SOURCES_CONFIG_PATH
        self.CHANNELS: Dict[str, str] = {}
        self.TOPICS: List[str] = []
        config_data = self._safe_read_yaml(sources_path, 1024 * 1024, 'sources')
        if not isinstance(config_data, dict):
            if config_data is not None:
                logger.warning(f"{sources_path} must be a YAML mapping at the top level")
            return

        endpoints = config_data.get('endpoints')
        if isinstance(endpoints, dict):
            overrides = {
                'hn_search': 'HN_SEARCH_URL',
                'devto_articles': 'DEVTO_ARTICLES_URL',
                'youtube_feed': 'YOUTUBE_FEED_URL',
                'releases': 'RELEASES_URL',
            }
            for key, attr in overrides.items():
                value = endpoints.get(key)
                # Environment wins over the catalog
                if isinstance(value, str) and value.strip() and attr not in environ:
                    setattr(self, attr, value.strip())
        elif endpoints is not None:
            logger.warning(f"endpoints section in {sources_path} must be a mapping; ignoring")

        channels = config_data.get('channels')
        if isinstance(channels, dict):
            for name, channel_id in channels.items():
                if isinstance(channel_id, str) and channel_id.strip():
                    self.CHANNELS[str(name)] = channel_id.strip()
                    logger.debug(f"Loaded channel {name}: {channel_id}")
                else:
                    logger.warning(f"Skipping invalid channel entry '{name}': {channel_id}")
        elif channels is not None:
            logger.warning(f"channels section in {sources_path} must be a mapping; ignoring")

        topics = config_data.get('topics')
        if isinstance(topics, list):
            self.TOPICS = [str(t).strip() for t in topics if str(t).strip()]
        elif topics is not None:
            logger.warning(f"topics section in {sources_path} must be a list; ignoring")

        logger.info(
            "Loaded %d channels and %d topics from %s",
            len(self.CHANNELS),
            len(self.TOPICS),
            sources_path,
        )

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration for logging/debugging."""
        return {
            "fetch_timeout": self.FETCH_TIMEOUT,
            "feed_fetch_timeout": self.FEED_FETCH_TIMEOUT,
            "max_attempts": self.MAX_ATTEMPTS,
            "retry_delay": self.RETRY_DELAY,
            "trending_cache_ttl": self.TRENDING_CACHE_TTL,
            "channel_cache_ttl": self.CHANNEL_CACHE_TTL,
            "batch_size": self.BATCH_SIZE,
            "batch_delay": self.BATCH_DELAY,
            "max_results": self.MAX_RESULTS,
            "channel_count": len(self.CHANNELS),
            "topic_count": len(self.TOPICS),
            "has_releases_endpoint": bool(self.RELEASES_URL),
        }

# Global configuration instance
config = Config()
