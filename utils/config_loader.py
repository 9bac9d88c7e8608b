"""
Configuration management for the music sorter.

This module handles loading and validating configuration from YAML files
with sensible defaults and environment variable support. Layers are applied
in order: built-in defaults, then the config file, then the environment.
"""

import json
import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

from utils.exceptions import configuration_error

logger = logging.getLogger(__name__)

ENV_PREFIX = "MUSIC_SORTER_"
CONFIG_PATH_ENV = "MUSIC_SORTER_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"

# Flat environment names kept for compatibility with existing deployments
ENV_ALIASES = {
    "MUSIC_SORTER_SOURCE_PATH": ["source_path"],
    "MUSIC_SORTER_DESTINATION_PATH": ["destination_path"],
    "MUSIC_SORTER_LOG_LEVEL": ["logging", "level"],
    "MUSIC_SORTER_LOG_DIR": ["logging", "directory"],
    "MUSIC_SORTER_LOG_FILE": ["logging", "file"],
}

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Keys whose values must stay strings even if they look like numbers or booleans
STRING_KEYS = {
    ("source_path",), ("destination_path",),
    ("metadata", "unknown_artist_name"), ("metadata", "unknown_album_name"),
    ("logging", "level"), ("logging", "directory"), ("logging", "file"),
}


@dataclass
class MetadataConfig:
    """Fallback labels and tag preference used by the normalizer."""

    prefer_album_artist: bool = True
    unknown_artist_name: str = "Unknown Artist"
    unknown_album_name: str = "Unknown Album"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file: str = "music-sorter.log"

    @property
    def log_file(self) -> Optional[Path]:
        if not self.directory:
            return None
        return Path(self.directory) / self.file


@dataclass
class SorterConfig:
    """Structured configuration with defaults."""

    source_path: str = "./music"
    destination_path: str = "./sorted"
    recursive: bool = True
    supported_formats: List[str] = field(default_factory=lambda: [
        '.mp3', '.flac', '.m4a', '.wav', '.aac'
    ])
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "SorterConfig":
        return cls(
            source_path=config['source_path'],
            destination_path=config['destination_path'],
            recursive=config['recursive'],
            supported_formats=list(config['supported_formats']),
            metadata=MetadataConfig(**config['metadata']),
            logging=LoggingConfig(**config['logging']),
        )


def load_config(config_path: Optional[Path] = None) -> SorterConfig:
    """
    Load configuration from YAML file with defaults and environment variable support.

    Args:
        config_path: Path to configuration file (optional). Falls back to
            ``$MUSIC_SORTER_CONFIG`` and then ``./config.yaml``.

    Returns:
        Validated SorterConfig with absolute paths

    Raises:
        MusicSorterError: CONFIGURATION_ERROR if configuration is invalid
    """
    # Start with default configuration
    config_dict = _dataclass_to_dict(SorterConfig())

    if config_path is None:
        config_path = Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILE))

    # Load from file if present
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise configuration_error(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise configuration_error(f"Cannot read config file {config_path}: {e}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise configuration_error(f"Config file {config_path} must contain a mapping")
            config_dict = _merge_configs(config_dict, file_config)

    # Override with environment variables
    config_dict = _apply_env_overrides(config_dict)

    _validate_config(config_dict)
    _normalize_config(config_dict)

    return SorterConfig.from_dict(config_dict)


def _dataclass_to_dict(obj) -> Dict[str, Any]:
    """Convert dataclass to dictionary recursively."""
    if hasattr(obj, '__dataclass_fields__'):
        result = {}
        for field_name in obj.__dataclass_fields__:
            value = getattr(obj, field_name)
            result[field_name] = _dataclass_to_dict(value)
        return result
    elif isinstance(obj, dict):
        return {k: _dataclass_to_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_dataclass_to_dict(item) for item in obj]
    else:
        return obj


def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge configuration dictionaries.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables should be prefixed with MUSIC_SORTER_ and use
    double underscores to represent nested keys.

    Examples:
        MUSIC_SORTER_DESTINATION_PATH=/srv/music
        MUSIC_SORTER_METADATA__UNKNOWN_ARTIST_NAME="Various"
        MUSIC_SORTER_LOG_LEVEL=DEBUG

    Variables that do not name a known option are ignored.
    """
    known_paths = _leaf_key_paths(_dataclass_to_dict(SorterConfig()))

    for env_var, value in os.environ.items():
        if not env_var.startswith(ENV_PREFIX) or env_var == CONFIG_PATH_ENV:
            continue

        if env_var in ENV_ALIASES:
            key_path = ENV_ALIASES[env_var]
        else:
            key_path = env_var[len(ENV_PREFIX):].lower().split('__')

        if tuple(key_path) not in known_paths:
            logger.warning(f"Ignoring {env_var}: not a music-sorter option")
            continue

        if tuple(key_path) in STRING_KEYS:
            converted_value = value
        else:
            converted_value = _convert_env_value(value)

        _set_nested_value(config, key_path, converted_value)

    return config


def _leaf_key_paths(config: Dict[str, Any], prefix: tuple = ()) -> set:
    """Key paths of every non-mapping value, e.g. ('logging', 'level')."""
    paths = set()
    for key, value in config.items():
        if isinstance(value, dict):
            paths |= _leaf_key_paths(value, prefix + (key,))
        else:
            paths.add(prefix + (key,))
    return paths


def _convert_env_value(value: str) -> Any:
    """Convert environment variable string to appropriate Python type."""
    # Boolean values
    if value.lower() in ('true', 'yes', '1', 'on'):
        return True
    elif value.lower() in ('false', 'no', '0', 'off'):
        return False

    # Integer values
    try:
        return int(value)
    except ValueError:
        pass

    # JSON/List values (if starts with [ or {)
    if value.startswith(('[', '{')):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    # Comma separated lists, e.g. ".mp3,.flac"
    if ',' in value:
        return [item.strip() for item in value.split(',') if item.strip()]

    return value


def _set_nested_value(config: Dict[str, Any], key_path: list, value: Any):
    """Set a value in a nested dictionary using a list of keys."""
    current = config

    for key in key_path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[key_path[-1]] = value


def _require_string(value: Any, name: str):
    if not isinstance(value, str) or not value.strip():
        raise configuration_error(f"{name} must be a non-empty string")


def _validate_config(config: Dict[str, Any]):
    """
    Validate configuration values.

    Raises:
        MusicSorterError: CONFIGURATION_ERROR if configuration is invalid
    """
    _require_string(config.get('source_path'), "source_path")
    _require_string(config.get('destination_path'), "destination_path")

    if not isinstance(config.get('recursive'), bool):
        raise configuration_error("recursive must be a boolean")

    formats = config.get('supported_formats')
    if isinstance(formats, str):
        formats = [formats]
        config['supported_formats'] = formats
    if not isinstance(formats, list) or not formats:
        raise configuration_error("supported_formats must be a non-empty list")
    for ext in formats:
        if not isinstance(ext, str) or not ext.startswith('.') or len(ext) < 2:
            raise configuration_error(
                f"supported_formats entries must be extensions with a leading dot, got {ext!r}"
            )

    metadata_config = config.get('metadata')
    if not isinstance(metadata_config, dict):
        raise configuration_error("metadata must be a mapping")
    unknown_keys = set(metadata_config) - set(MetadataConfig.__dataclass_fields__)
    if unknown_keys:
        raise configuration_error(f"Unknown metadata options: {sorted(unknown_keys)}")
    if not isinstance(metadata_config.get('prefer_album_artist'), bool):
        raise configuration_error("metadata.prefer_album_artist must be a boolean")
    _require_string(metadata_config.get('unknown_artist_name'), "metadata.unknown_artist_name")
    _require_string(metadata_config.get('unknown_album_name'), "metadata.unknown_album_name")

    logging_config = config.get('logging')
    if not isinstance(logging_config, dict):
        raise configuration_error("logging must be a mapping")
    unknown_keys = set(logging_config) - set(LoggingConfig.__dataclass_fields__)
    if unknown_keys:
        raise configuration_error(f"Unknown logging options: {sorted(unknown_keys)}")

    log_level = logging_config.get('level')
    if not isinstance(log_level, str) or log_level.upper() not in VALID_LOG_LEVELS:
        raise configuration_error(f"logging.level must be one of {VALID_LOG_LEVELS}")
    if not isinstance(logging_config.get('directory'), str):
        raise configuration_error("logging.directory must be a string")
    _require_string(logging_config.get('file'), "logging.file")

    unknown_keys = set(config) - set(SorterConfig.__dataclass_fields__)
    if unknown_keys:
        raise configuration_error(f"Unknown configuration options: {sorted(unknown_keys)}")


def _normalize_config(config: Dict[str, Any]):
    """Lower-case extensions and resolve paths to absolute form."""
    config['supported_formats'] = sorted({ext.lower() for ext in config['supported_formats']})
    config['source_path'] = str(Path(config['source_path']).expanduser().resolve())
    config['destination_path'] = str(Path(config['destination_path']).expanduser().resolve())
    config['logging']['level'] = config['logging']['level'].upper()
    if config['logging']['directory']:
        config['logging']['directory'] = str(
            Path(config['logging']['directory']).expanduser().resolve()
        )


def get_config_template() -> str:
    """
    Get a YAML template for the configuration file.

    Returns:
        YAML configuration template as string
    """
    return """# Configuration for music-sorter
source_path: "./music"          # Directory scanned for audio files
destination_path: "./sorted"    # Root of the <album artist>/<album> tree
recursive: true                 # Descend into subdirectories of source_path

supported_formats:
  - .mp3
  - .flac
  - .m4a
  - .wav
  - .aac

metadata:
  prefer_album_artist: true     # Use the album artist tag before the track artist
  unknown_artist_name: "Unknown Artist"
  unknown_album_name: "Unknown Album"

logging:
  level: INFO
  directory: "logs"             # Empty string disables the log file
  file: "music-sorter.log"
"""
