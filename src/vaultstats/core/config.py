"""
Configuration module for vaultstats.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section, {})
    return section_defaults.get(key, fallback)


def parse_exclude_directories(value: str | None) -> set[str]:
    """
    Parse a comma-separated exclusion list.

    Entries are trimmed and empty entries are dropped, so " a, ,b " yields
    {"a", "b"}.
    """
    if not value:
        return set()
    return {entry.strip() for entry in value.split(",") if entry.strip()}


@dataclass
class CollectorConfig:
    """Configuration for the metrics collector."""

    exclude_directories: str = field(
        default_factory=lambda: _get_default("collector", "exclude_directories", "")
    )
    max_file_size: int = field(
        default_factory=lambda: _get_default("collector", "max_file_size", 512 * 1024)
    )
    batch_size: int = field(default_factory=lambda: _get_default("collector", "batch_size", 8))
    concurrency: Optional[int] = field(
        default_factory=lambda: _get_default("collector", "concurrency", None)
    )

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.max_file_size < 0:
            raise ValueError(f"max_file_size must not be negative, got {self.max_file_size}")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

    @property
    def excluded(self) -> set[str]:
        return parse_exclude_directories(self.exclude_directories)


@dataclass
class VaultConfig:
    """Configuration for the filesystem vault and its watcher."""

    ignore_patterns: list[str] = field(
        default_factory=lambda: _get_default(
            "vault",
            "ignore_patterns",
            [".git", ".obsidian", ".trash", "*.tmp", "*.swp", ".DS_Store"],
        )
    )


@dataclass
class WatchConfig:
    """Configuration for watch mode."""

    refresh_ms: int = field(default_factory=lambda: _get_default("watch", "refresh_ms", 2000))

    def __post_init__(self) -> None:
        if self.refresh_ms < 0:
            raise ValueError(f"refresh_ms must not be negative, got {self.refresh_ms}")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default("logging", "format", "%(message)s")
    )


@dataclass
class VaultStatsConfig:
    """Main configuration class for vaultstats."""

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "VaultStatsConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            VaultStatsConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "VaultStatsConfig":
        """Create VaultStatsConfig from a dictionary."""
        config = cls()

        if "collector" in data:
            config.collector = CollectorConfig(**data["collector"])
        if "vault" in data:
            config.vault = VaultConfig(**data["vault"])
        if "watch" in data:
            config.watch = WatchConfig(**data["watch"])
        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])

        return config

    def apply_env_overrides(self) -> "VaultStatsConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: VAULTSTATS_<SECTION>_<KEY>
        Examples:
            - VAULTSTATS_COLLECTOR_EXCLUDE_DIRECTORIES
            - VAULTSTATS_COLLECTOR_BATCH_SIZE
            - VAULTSTATS_WATCH_REFRESH_MS
            - VAULTSTATS_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied

        Raises:
            ValueError: If an overridden value is malformed or out of range
        """
        env_mappings = {
            "VAULTSTATS_COLLECTOR_EXCLUDE_DIRECTORIES": ("collector", "exclude_directories", str),
            "VAULTSTATS_COLLECTOR_MAX_FILE_SIZE": ("collector", "max_file_size", int),
            "VAULTSTATS_COLLECTOR_BATCH_SIZE": ("collector", "batch_size", int),
            "VAULTSTATS_COLLECTOR_CONCURRENCY": ("collector", "concurrency", int),
            "VAULTSTATS_WATCH_REFRESH_MS": ("watch", "refresh_ms", int),
            "VAULTSTATS_LOGGING_LEVEL": ("logging", "level", str),
        }

        overridden: set[str] = set()
        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))
                overridden.add(section)

        # Rebuild touched sections so __post_init__ checks the new values
        for section in overridden:
            section_obj = getattr(self, section)
            setattr(self, section, type(section_obj)(**asdict(section_obj)))

        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> VaultStatsConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        VaultStatsConfig instance
    """
    if config_path:
        config = VaultStatsConfig.from_file(config_path)
    else:
        config = VaultStatsConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
