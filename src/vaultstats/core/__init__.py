"""
Core Layer - Documents, tokenization, metric records, caching and configuration.
"""

from vaultstats.core.classifier import NOTE_EXTENSIONS, FileType, classify
from vaultstats.core.config import (
    CollectorConfig,
    LoggingConfig,
    VaultConfig,
    VaultStatsConfig,
    WatchConfig,
    load_config,
    parse_exclude_directories,
)
from vaultstats.core.documents import (
    Document,
    DocumentMetadata,
    MetadataSourceInterface,
    Section,
    VaultInterface,
)
from vaultstats.core.file_events import FileEvent, FileEventType
from vaultstats.core.metrics import (
    QUALITY_EPSILON,
    AggregateMetrics,
    VaultMetrics,
    derive_quality,
)
from vaultstats.core.metrics_cache import CacheEntry, MetricsCache
from vaultstats.core.tokenizer import (
    MARKDOWN_TOKENIZER,
    UNIT_TOKENIZER,
    MarkdownTokenizer,
    TokenizerInterface,
    UnitTokenizer,
    extract_tags,
    markdown_tokenize,
    unit_tokenize,
)

__all__ = [
    # Documents
    "Document",
    "DocumentMetadata",
    "Section",
    "VaultInterface",
    "MetadataSourceInterface",
    "FileType",
    "NOTE_EXTENSIONS",
    "classify",
    # Events
    "FileEvent",
    "FileEventType",
    # Metrics
    "VaultMetrics",
    "AggregateMetrics",
    "QUALITY_EPSILON",
    "derive_quality",
    "CacheEntry",
    "MetricsCache",
    # Tokenizers
    "TokenizerInterface",
    "UnitTokenizer",
    "MarkdownTokenizer",
    "UNIT_TOKENIZER",
    "MARKDOWN_TOKENIZER",
    "unit_tokenize",
    "markdown_tokenize",
    "extract_tags",
    # Config
    "VaultStatsConfig",
    "CollectorConfig",
    "VaultConfig",
    "LoggingConfig",
    "WatchConfig",
    "load_config",
    "parse_exclude_directories",
]
