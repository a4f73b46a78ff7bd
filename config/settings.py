"""
Diagram Service Configuration Module
====================================

Centralized configuration management for the diagram generation service.
Handles environment variable loading, validation, and provides a clean
interface for accessing configuration values throughout the application.

Features:
- Dynamic environment variable loading with .env support
- Property-based configuration access for real-time updates
- Default values for every option, with range checks on numeric settings

Environment Variables:
- OPENAI_API_KEY: Required for any LLM call
- OPENAI_MODEL / OPENAI_FALLBACK_MODEL: capable and fast model ids
- LLM_PROTOCOL: 'responses' or 'chat'

Usage:
    from config.settings import config
    api_key = config.OPENAI_API_KEY
    is_valid = config.validate_openai_config()
"""

import os
import time
import logging
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()  # Load environment variables from .env file

DEFAULT_CAPABLE_MODEL = 'gpt-5'
DEFAULT_FAST_MODEL = 'gpt-5-mini'
DEFAULT_BASE_URL = 'https://api.openai.com/v1'

VALID_PROTOCOLS = ('responses', 'chat')
VALID_CLASSIFIER_MODES = ('heuristic', 'llm')
VALID_DIAGRAM_TYPES = ('flowchart', 'radial_mindmap', 'sequence_comparison')


class Config:
    """
    Centralized configuration for the diagram generation service.
    Values are cached briefly so a burst of reads sees consistent settings.
    """
    def __init__(self):
        self._cache = {}
        self._cache_timestamp = 0
        self._cache_duration = 30  # seconds
        self._version = None

    def _get_cached_value(self, key: str, default=None):
        current_time = time.time()
        if current_time - self._cache_timestamp > self._cache_duration:
            self._cache.clear()
            self._cache_timestamp = current_time
        if key not in self._cache:
            self._cache[key] = os.environ.get(key, default)
        return self._cache[key]

    def _get_int(self, key: str, default: int, minimum: int, maximum: int) -> int:
        try:
            val = int(self._get_cached_value(key, str(default)))
            if val < minimum or val > maximum:
                logger.warning(f"{key} {val} out of range, using {default}")
                return default
            return val
        except (ValueError, TypeError):
            logger.warning(f"Invalid {key} value, using {default}")
            return default

    def clear_cache(self):
        """Drop cached values so the next read goes back to the environment."""
        self._cache.clear()
        self._cache_timestamp = 0

    @property
    def VERSION(self) -> str:
        """
        Application version - read from VERSION file (single source of truth).
        Cached after first read.
        """
        if self._version is None:
            try:
                version_file = Path(__file__).parent.parent / 'VERSION'
                self._version = version_file.read_text().strip()
            except OSError as e:
                logger.warning(f"Failed to read VERSION file: {e}")
                self._version = "0.0.0"
        return self._version

    # ============================================================================
    # LLM PROVIDER
    # ============================================================================

    @property
    def OPENAI_API_KEY(self):
        api_key = self._get_cached_value('OPENAI_API_KEY')
        if not api_key or not isinstance(api_key, str) or not api_key.strip():
            return None
        return api_key.strip()

    @property
    def OPENAI_BASE_URL(self):
        """Provider base URL; endpoint paths are appended per protocol."""
        url = self._get_cached_value('OPENAI_BASE_URL', DEFAULT_BASE_URL) or DEFAULT_BASE_URL
        return url.strip().rstrip('/')

    @property
    def OPENAI_MODEL(self):
        """Capable model used for longer queries."""
        value = self._get_cached_value('OPENAI_MODEL', DEFAULT_CAPABLE_MODEL)
        return value.strip() if value and value.strip() else DEFAULT_CAPABLE_MODEL

    @property
    def OPENAI_FALLBACK_MODEL(self):
        """Fast model used for short queries and classification."""
        value = self._get_cached_value('OPENAI_FALLBACK_MODEL', DEFAULT_FAST_MODEL)
        return value.strip() if value and value.strip() else DEFAULT_FAST_MODEL

    @property
    def LLM_PROTOCOL(self):
        """Wire protocol: 'responses' (reasoning models) or 'chat' (chat completions)."""
        protocol = (self._get_cached_value('LLM_PROTOCOL', 'responses') or 'responses').strip().lower()
        if protocol not in VALID_PROTOCOLS:
            logger.warning(f"Invalid LLM_PROTOCOL '{protocol}', using responses")
            return 'responses'
        return protocol

    @property
    def LLM_TIMEOUT(self):
        """Wall-clock budget per LLM attempt, in seconds."""
        return self._get_int('LLM_TIMEOUT', 45, 5, 300)

    @property
    def SHORT_QUERY_THRESHOLD(self):
        """Queries shorter than this many characters go to the fast model."""
        return self._get_int('SHORT_QUERY_THRESHOLD', 60, 1, 10000)

    # ============================================================================
    # PIPELINE
    # ============================================================================

    @property
    def CONTENT_CACHE_TTL(self):
        """Seconds a generated result stays reusable."""
        return self._get_int('CONTENT_CACHE_TTL', 120, 1, 86400)

    @property
    def CLASSIFIER_MODE(self):
        mode = (self._get_cached_value('CLASSIFIER_MODE', 'heuristic') or 'heuristic').strip().lower()
        if mode not in VALID_CLASSIFIER_MODES:
            logger.warning(f"Invalid CLASSIFIER_MODE '{mode}', using heuristic")
            return 'heuristic'
        return mode

    @property
    def DEFAULT_DIAGRAM_TYPE(self):
        """Optional override that pins every request to one diagram type."""
        value = self._get_cached_value('DEFAULT_DIAGRAM_TYPE', '')
        if not value:
            return None
        normalized = value.strip().lower()
        return normalized if normalized in VALID_DIAGRAM_TYPES else None

    # ============================================================================
    # SERVER AND LOGGING
    # ============================================================================

    @property
    def HOST(self):
        """FastAPI application host address."""
        return self._get_cached_value('HOST', '0.0.0.0')

    @property
    def PORT(self):
        """FastAPI application port number."""
        return self._get_int('PORT', 8787, 1, 65535)

    @property
    def DEBUG(self):
        """FastAPI debug mode setting."""
        return self._get_cached_value('DEBUG', 'False').lower() == 'true'

    @property
    def LOG_LEVEL(self):
        """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""
        level = self._get_cached_value('LOG_LEVEL', 'INFO').upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if level not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{level}', using INFO")
            return 'INFO'
        return level

    @property
    def VERBOSE_LOGGING(self):
        """Enable verbose logging for debugging."""
        return self._get_cached_value('VERBOSE_LOGGING', 'False').lower() == 'true'

    # ============================================================================
    # VALIDATION AND SUMMARY
    # ============================================================================

    def validate_openai_config(self) -> bool:
        """
        Validate LLM provider configuration.

        Returns:
            bool: True if a credential is present and the base URL looks usable
        """
        if not self.OPENAI_API_KEY:
            return False
        if not self.OPENAI_BASE_URL.startswith(('http://', 'https://')):
            return False
        return self.LLM_TIMEOUT > 0

    def print_config_summary(self):
        """Log a configuration summary (never the credential itself)."""
        logger.info("Configuration Summary:")
        logger.info(f"   Version: {self.VERSION}")
        logger.info(f"   FastAPI: {self.HOST}:{self.PORT} (Debug: {self.DEBUG})")
        logger.info(f"   Provider: {self.OPENAI_BASE_URL} ({self.LLM_PROTOCOL} protocol)")
        logger.info(f"     - Capable: {self.OPENAI_MODEL}")
        logger.info(f"     - Fast: {self.OPENAI_FALLBACK_MODEL} (queries < {self.SHORT_QUERY_THRESHOLD} chars)")
        logger.info(f"     - API key configured: {bool(self.OPENAI_API_KEY)}")
        logger.info(f"   Classifier: {self.CLASSIFIER_MODE} (override: {self.DEFAULT_DIAGRAM_TYPE or 'none'})")
        logger.info(f"   Cache TTL: {self.CONTENT_CACHE_TTL}s, LLM timeout: {self.LLM_TIMEOUT}s")


# Create global configuration instance
config = Config()
