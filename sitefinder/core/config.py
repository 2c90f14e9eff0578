"""Configuration management for the Company Website Resolver."""

import logging
import os
import yaml
from typing import Dict, Any
from dotenv import load_dotenv

from sitefinder.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

API_KEY_HELP = (
    "Search API key is required but not properly configured. "
    "Please set the ANTHROPIC_API_KEY environment variable "
    "(or DUCKDUCKGO_API_KEY when search.provider is 'duckduckgo')."
)

KNOWN_STAGES = {
    'name_is_domain', 'domain_variation', 'official_site_search', 'name_search',
    'linkedin_search', 'cross_validation', 'domain_hint', 'directory_search',
    'last_resort_search', 'final_arbitration'
}


class Config:
    """Configuration manager for the application."""

    def __init__(self, config_path: str = "config/config.yaml"):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file
        """
        env_api_key = os.getenv('ANTHROPIC_API_KEY')
        dotenv_path = os.path.join(os.getcwd(), '.env')

        load_dotenv()  # Load environment variables from .env file
        self.config_path = config_path

        api_key_after_dotenv = os.getenv('ANTHROPIC_API_KEY')
        if env_api_key:
            logger.debug("API key loaded from environment variable")
        elif api_key_after_dotenv:
            logger.debug(f"API key loaded from .env file: {dotenv_path}")

        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as file:
                config = yaml.safe_load(file) or {}
            return self._process_env_variables(config)
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML configuration: {e}")

    def _process_env_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Process environment variable placeholders in configuration."""
        def process_value(value):
            if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                env_value = os.getenv(env_var)
                if env_value is None:
                    raise ValueError(f"Environment variable not set: {env_var}")
                return env_value
            elif isinstance(value, dict):
                return {k: process_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [process_value(item) for item in value]
            return value

        processed_config = process_value(config)

        api_key = processed_config.get('search', {}).get('api_key', '')
        if not api_key or len(str(api_key).strip()) < 10:
            raise ConfigurationError(API_KEY_HELP)

        return processed_config

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'scoring.acceptance_threshold')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    @property
    def search_config(self) -> Dict[str, Any]:
        """Get search configuration section."""
        return self._config.get('search', {})

    @property
    def probe_config(self) -> Dict[str, Any]:
        """Get liveness probe configuration section."""
        return self._config.get('probe', {})

    @property
    def scoring_config(self) -> Dict[str, Any]:
        """Get scoring configuration section."""
        return self._config.get('scoring', {})

    @property
    def pipeline_config(self) -> Dict[str, Any]:
        """Get pipeline configuration section."""
        return self._config.get('pipeline', {})

    @property
    def processing_config(self) -> Dict[str, Any]:
        """Get processing configuration section."""
        return self._config.get('processing', {})

    @property
    def filtering_config(self) -> Dict[str, Any]:
        """Get filtering configuration section."""
        return self._config.get('filtering', {})

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration section."""
        return self._config.get('logging', {})

    def get_all(self) -> Dict[str, Any]:
        """Get entire configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return self._config.copy()

    def validate(self) -> bool:
        """Validate configuration completeness.

        Returns:
            True if configuration is valid

        Raises:
            ValueError: If configuration is invalid
        """
        required_sections = ['search', 'probe', 'scoring', 'pipeline',
                             'processing', 'filtering', 'logging']

        for section in required_sections:
            if section not in self._config:
                raise ValueError(f"Missing configuration section: {section}")

        search = self.search_config
        if search.get('provider', 'anthropic') not in ('anthropic', 'duckduckgo'):
            raise ValueError(f"Unknown search provider: {search.get('provider')}")

        if search.get('timeout', 25) <= 0:
            raise ValueError("Search timeout must be positive")

        if not (0 <= search.get('max_retries', 5) <= 10):
            raise ValueError("Search max_retries must be between 0 and 10")

        if search.get('max_connection_failures', 5) < 0:
            raise ValueError("Search max_connection_failures must not be negative")

        if self.probe_config.get('timeout', 3) <= 0:
            raise ValueError("Probe timeout must be positive")

        scoring = self.scoring_config
        for key in ('acceptance_threshold', 'early_exit_similarity', 'cross_validation_confidence'):
            if key in scoring and not (0 <= scoring[key] <= 1):
                raise ValueError(f"scoring.{key} must be between 0 and 1")

        if scoring.get('cross_validation_min_stages', 2) < 2:
            raise ValueError("scoring.cross_validation_min_stages must be at least 2")

        stages = self.pipeline_config.get('stages', [])
        unknown = [s for s in stages if s not in KNOWN_STAGES]
        if unknown:
            raise ValueError(f"Unknown pipeline stages: {unknown}")

        for stage, policy in self.pipeline_config.get('rate_limit_policy', {}).items():
            if policy not in ('backoff', 'skip'):
                raise ValueError(f"Rate limit policy for {stage} must be 'backoff' or 'skip'")

        workers = self.processing_config.get('workers', 3)
        if not (1 <= workers <= 3):
            raise ValueError("processing.workers must be between 1 and 3")

        return True
