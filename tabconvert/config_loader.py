"""
Configuration loading and management.
Loads YAML settings for input limits, streaming, caching and logging.
"""

import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import logging


logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class LimitSettings:
    """Large-input protection."""
    max_input_bytes: int = 50 * MB
    max_xml_bytes: int = 50 * MB
    max_rows: Optional[int] = None  # None = unlimited
    max_columns: Optional[int] = None


@dataclass
class StreamingSettings:
    """Chunked CSV/JSON parsing."""
    chunk_size: int = 1000
    max_rows: int = 100000
    threshold_bytes: int = 10 * MB


@dataclass
class CacheSettings:
    """Conversion cache sizing."""
    enabled: bool = True
    max_size_bytes: int = 50 * MB
    max_age_seconds: float = 300.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    json_format: bool = True
    log_dir: Optional[str] = None


@dataclass
class ConverterSettings:
    """All converter settings, with defaults for every key."""
    limits: LimitSettings = field(default_factory=LimitSettings)
    streaming: StreamingSettings = field(default_factory=StreamingSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def default(cls) -> 'ConverterSettings':
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'ConverterSettings':
        """Build settings from a parsed YAML mapping; unknown keys are ignored."""
        def section(section_cls, key):
            values = data.get(key) or {}
            known = section_cls.__dataclass_fields__
            unknown = set(values) - set(known)
            if unknown:
                logger.warning(f"Ignoring unknown {key} settings: {sorted(unknown)}")
            return section_cls(**{k: v for k, v in values.items() if k in known})

        return cls(
            limits=section(LimitSettings, 'limits'),
            streaming=section(StreamingSettings, 'streaming'),
            cache=section(CacheSettings, 'cache'),
            logging=section(LoggingSettings, 'logging'),
        )


class ConfigLoader:
    """Loads and caches configuration from YAML files."""

    DEFAULT_FILENAME = "converter.yaml"

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)
        self._cache = {}

    def _load_yaml(self, filepath: Path) -> dict[str, Any]:
        """Load a YAML file and cache it."""
        if filepath in self._cache:
            return self._cache[filepath]

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.info(f"Loading config: {filepath}")
        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}

        self._cache[filepath] = data
        return data

    def load_settings(self, filename: Optional[str] = None) -> ConverterSettings:
        """Load converter settings from the config directory."""
        data = self._load_yaml(self.config_dir / (filename or self.DEFAULT_FILENAME))
        settings = ConverterSettings.from_dict(data)
        logger.debug(f"Loaded settings: {settings}")
        return settings

    def clear_cache(self):
        """Clear configuration cache (useful for testing or reload)."""
        self._cache.clear()
        logger.debug("Config cache cleared")


def load_settings(config_path: Optional[Path] = None) -> ConverterSettings:
    """Load settings from a YAML file, or defaults when no path is given."""
    if config_path is None:
        return ConverterSettings.default()
    config_path = Path(config_path)
    return ConfigLoader(config_path.parent).load_settings(config_path.name)
