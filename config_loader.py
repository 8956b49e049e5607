"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from errors import ConfigError


SUBDOMAIN_PATTERN = re.compile(r'^[a-zA-Z0-9-]+$')

# Environment variables read when no configuration file provides a value
ENV_KEYS = {
    'KIBELA_TEAM': 'kibela.team',
    'KIBELA_TOKEN': 'kibela.token',
    'KIBELA_ENDPOINT': 'kibela.endpoint',
}

DEFAULTS: Dict[str, Any] = {
    'kibela': {
        'verify_ssl': True,
    },
    'migration': {
        'apply': False,
        'private_groups': False,
        'log_directory': '.',
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'rate_limit': 0,
        'groups_page_size': 100,
    },
    'export': {
        'progress_bars': False,
    },
    'logging': {},
}


class ConfigLoader:
    """Handles loading and validation of configuration."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None, required: bool = False) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values absent from the file fall back to the KIBELA_* environment
        variables and then to built-in defaults.

        Args:
            config_path: Path to YAML configuration file
            required: Fail when the file does not exist

        Returns:
            Parsed configuration dictionary

        Raises:
            ConfigError: If the file is required but missing, or invalid
        """
        config_data: Dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                try:
                    config_data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

            if not isinstance(config_data, dict):
                raise ConfigError("Configuration file must contain a dictionary")

            config_data = cls._substitute_env_vars_recursive(config_data)
        elif required:
            raise ConfigError(f"Configuration file not found: {config_path}")

        merged = _deep_merge(copy.deepcopy(DEFAULTS), config_data)
        return cls.apply_env(merged)

    @classmethod
    def apply_env(cls, config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Fill unset connection settings from KIBELA_* environment variables."""
        environ = os.environ if environ is None else environ
        merged = copy.deepcopy(config)

        for env_name, path in ENV_KEYS.items():
            value = environ.get(env_name)
            if value and not get_nested(merged, path):
                set_nested(merged, path, value)

        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If validation fails
        """
        exported_from = get_nested(config, 'migration.exported_from')
        if exported_from is None or exported_from == '':
            raise ConfigError("--exported-from <subdomain> is required.")
        if not SUBDOMAIN_PATTERN.match(str(exported_from)):
            raise ConfigError(
                f"--exported-from must contain only letters, digits and hyphens: {exported_from}"
            )

        if get_nested(config, 'migration.apply', False):
            cls._validate_required_field(config, 'kibela.token')

            endpoint = get_nested(config, 'kibela.endpoint')
            if endpoint:
                cls._validate_url(endpoint, 'kibela.endpoint')
            else:
                cls._validate_required_field(config, 'kibela.team')
                team = str(get_nested(config, 'kibela.team'))
                if not SUBDOMAIN_PATTERN.match(team):
                    raise ConfigError(f"kibela.team is not a valid subdomain: {team}")

        log_directory = get_nested(config, 'migration.log_directory', '.')
        if not os.path.isdir(log_directory):
            raise ConfigError(f"migration.log_directory '{log_directory}' is not a directory")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ConfigError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
            raise ConfigError("advanced.max_retries must be a non-negative integer")

        rate_limit = get_nested(config, 'advanced.rate_limit', 0)
        if not isinstance(rate_limit, (int, float)) or isinstance(rate_limit, bool) or rate_limit < 0:
            raise ConfigError("advanced.rate_limit must be a non-negative number")

        page_size = get_nested(config, 'advanced.groups_page_size', 100)
        if not isinstance(page_size, int) or isinstance(page_size, bool) or not 1 <= page_size <= 100:
            raise ConfigError("advanced.groups_page_size must be an integer between 1 and 100")

        for flag in ('migration.apply', 'migration.private_groups', 'kibela.verify_ssl', 'export.progress_bars'):
            if not isinstance(get_nested(config, flag, False), bool):
                raise ConfigError(f"{flag} must be a boolean")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('migration', 'export', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'apply', False):
            merged['migration']['apply'] = True

        if getattr(args, 'exported_from', None):
            merged['migration']['exported_from'] = args.exported_from

        if getattr(args, 'private_groups', False):
            merged['migration']['private_groups'] = True

        if getattr(args, 'log_dir', None):
            merged['migration']['log_directory'] = args.log_dir

        if getattr(args, 'report', None):
            merged['migration']['report_path'] = args.report

        if getattr(args, 'progress', False):
            merged['export']['progress_bars'] = True

        verbose = getattr(args, 'verbose', 0) or 0
        quiet = getattr(args, 'quiet', False)
        if quiet:
            merged['logging']['level'] = 'WARNING'
        elif verbose:
            merged['logging']['level'] = 'DEBUG'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ConfigError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ConfigError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ConfigError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ConfigError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "kibela.team")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def set_nested(config: dict, path: str, value: Any) -> None:
    """Set a nested configuration value using dot notation, creating sections."""
    keys = path.split('.')
    target = config
    for key in keys[:-1]:
        target = target.setdefault(key, {})
    target[keys[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if value is None and isinstance(base.get(key), dict):
            # An empty YAML section keeps its defaults
            continue
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


__all__ = ['ConfigLoader', 'get_nested', 'set_nested']
