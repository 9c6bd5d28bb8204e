"""
Configuration module for docchunk.
"""

from .settings import (
    Config,
    ChunkConfig,
    SourceConfig,
    ConfigurationError,
    DEFAULT_CHUNK_CONFIG,
    get_chunk_config,
)

__all__ = [
    "Config",
    "ChunkConfig",
    "SourceConfig",
    "ConfigurationError",
    "DEFAULT_CHUNK_CONFIG",
    "get_chunk_config",
]
