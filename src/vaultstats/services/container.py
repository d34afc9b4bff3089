"""
Centralized services container module for vaultstats.

Provides a shared container wiring the filesystem collaborators to the
collector, used by every CLI command.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vaultstats.core.config import VaultStatsConfig, load_config
from vaultstats.core.metrics import AggregateMetrics
from vaultstats.infrastructure.filesystem_vault import FileSystemVault
from vaultstats.infrastructure.markdown_metadata import MarkdownMetadataSource
from vaultstats.services.collector_service import MetricsCollectorService


@dataclass
class ServicesContainer:
    """
    Container holding all shared service instances.

    Attributes:
        config: Application configuration
        vault: Directory-backed vault
        metadata_source: Markdown metadata extractor
        aggregate: Running totals
        collector: Incremental metrics collector
    """

    config: VaultStatsConfig
    vault: FileSystemVault
    metadata_source: MarkdownMetadataSource
    aggregate: AggregateMetrics
    collector: MetricsCollectorService


def create_services(
    vault_path: Path,
    config: Optional[VaultStatsConfig] = None,
    config_path: Optional[Path] = None,
) -> ServicesContainer:
    """
    Create and wire all services for a vault directory.

    Args:
        vault_path: Vault root directory
        config: Ready-made configuration; takes precedence over config_path
        config_path: Optional path to configuration file. If None, uses
                    environment variables and defaults.

    Returns:
        ServicesContainer with all initialized services.
    """
    if config is None:
        config = load_config(config_path)

    vault = FileSystemVault(vault_path, ignore_patterns=config.vault.ignore_patterns)
    metadata_source = MarkdownMetadataSource(vault)
    aggregate = AggregateMetrics()
    collector = MetricsCollectorService(
        vault=vault,
        metadata_source=metadata_source,
        aggregate=aggregate,
        config=config.collector,
    )

    return ServicesContainer(
        config=config,
        vault=vault,
        metadata_source=metadata_source,
        aggregate=aggregate,
        collector=collector,
    )
