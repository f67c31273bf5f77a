"""Configuration loader with environment variable substitution."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict
import logging

import yaml

from ..metadata.profiles import ProfileKind

logger = logging.getLogger(__name__)

# ${VAR_NAME} or ${VAR_NAME:default_value}
ENV_PATTERN = re.compile(r'\$\{([A-Z_][A-Z0-9_]*?)(?::([^}]*))?\}')

DEFAULT_CONFIG: Dict[str, Any] = {
    'exiftool': {
        'path': '',
    },
    'metadata': {
        'keyword_source_order': ['iptc', 'xmp'],
        'sync_exif_description': True,
        'verify_images': True,
    },
    'tidy_up': {
        'trim_description_prefix': True,
        'description_prefix': (
            "Okay, here's a detailed description of the image, broken down as requested:"
        ),
        'split_categories': True,
    },
    'workflow': {
        'parallel_workers': 1,
    },
    'logging': {
        'level': 'INFO',
        'file': 'logs/metadata_sync.log',
        'max_bytes': 10485760,
        'backup_count': 5,
        'console_output': True,
    },
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Load and validate configuration from YAML file."""

    def __init__(self, config_path: str = "config/config.yaml"):
        """Initialize configuration loader.

        Args:
            config_path: Path to configuration YAML file
        """
        self.config_path = Path(config_path)

    def load(self) -> Dict[str, Any]:
        """Load configuration, fill in defaults and substitute environment variables.

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If neither the config file nor its .example exists
            yaml.YAMLError: If config file is invalid YAML
            ValueError: If the configuration is invalid
        """
        if not self.config_path.exists():
            example_path = Path(str(self.config_path) + ".example")
            if example_path.exists():
                logger.warning(
                    f"Config file not found: {self.config_path}. "
                    f"Using example: {example_path}"
                )
                self.config_path = example_path
            else:
                raise FileNotFoundError(
                    f"Configuration file not found: {self.config_path}"
                )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration must be a mapping: {self.config_path}")

        config = self._substitute_env_vars(merge_config(DEFAULT_CONFIG, loaded))
        self._validate(config)

        logger.info(f"Configuration loaded from: {self.config_path}")
        return config

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in config values."""
        if isinstance(config, dict):
            return {k: self._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return ENV_PATTERN.sub(self._replace_env_var, config)
        else:
            return config

    @staticmethod
    def _replace_env_var(match: 're.Match') -> str:
        var_name = match.group(1)
        default = match.group(2)

        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value

        if default is not None:
            logger.debug(f"Environment variable {var_name} not set, using default: {default!r}")
            return default

        logger.warning(f"Environment variable {var_name} not set and no default provided")
        return match.group(0)

    def _validate(self, config: Dict) -> None:
        """Validate configuration values.

        Args:
            config: Configuration dictionary

        Raises:
            ValueError: If a value is missing or invalid
        """
        for section in ('exiftool', 'metadata', 'logging'):
            if not isinstance(config.get(section), dict):
                raise ValueError(f"Missing required config section: {section}")

        # Keyword scan order must name profiles that carry keywords
        order = config['metadata'].get('keyword_source_order') or []
        kinds = [ProfileKind.parse(str(name)) for name in order]
        if ProfileKind.EXIF in kinds:
            raise ValueError("metadata.keyword_source_order cannot include exif")
        if len(set(kinds)) != len(kinds):
            raise ValueError("metadata.keyword_source_order lists a profile twice")

        workers = config.get('workflow', {}).get('parallel_workers', 1)
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            raise ValueError(f"workflow.parallel_workers must be a positive integer, got {workers!r}")

        exiftool_path = config['exiftool'].get('path') or ''
        if exiftool_path and '${' not in exiftool_path and not Path(exiftool_path).exists():
            logger.warning(f"Configured ExifTool executable does not exist: {exiftool_path}")

        logger.debug("Configuration validation passed")


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """Convenience function to load configuration.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    loader = ConfigLoader(config_path)
    return loader.load()
