"""
Configuration management for docchunk.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class ConfigurationError(ValueError):
    """Raised when a source or chunking configuration cannot be used."""


class ChunkConfig(BaseModel):
    """Character budgets for one source."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_chunk_size: int = Field(1800, alias="maxChunkSize", ge=100, le=10000)
    min_chunk_size: int = Field(150, alias="minChunkSize", ge=1, le=5000)
    ideal_chunk_size: int = Field(800, alias="idealChunkSize", ge=2, le=9999)

    # A fenced code block larger than max_chunk_size is emitted whole
    keep_oversized_code_blocks: bool = Field(True, alias="keepOversizedCodeBlocks")

    @model_validator(mode="after")
    def check_ordering(self) -> "ChunkConfig":
        if not self.min_chunk_size < self.ideal_chunk_size < self.max_chunk_size:
            raise ValueError(
                "chunk sizes must satisfy minChunkSize < idealChunkSize < maxChunkSize "
                f"(got {self.min_chunk_size} / {self.ideal_chunk_size} / {self.max_chunk_size})"
            )
        return self

    def with_min_chunk_size(self, min_chunk_size: int) -> "ChunkConfig":
        """Copy with a different floor, skipping the ordering check."""
        return self.model_copy(update={"min_chunk_size": min_chunk_size})


# Per-parser defaults (~4 characters per token)
DEFAULT_CHUNK_CONFIG = ChunkConfig(max_chunk_size=1800, min_chunk_size=150, ideal_chunk_size=800)
MDX_CHUNK_CONFIG = DEFAULT_CHUNK_CONFIG
FUMADOCS_CHUNK_CONFIG = ChunkConfig(max_chunk_size=2000, min_chunk_size=120, ideal_chunk_size=1000)
MARKDOWN_CHUNK_CONFIG = ChunkConfig(max_chunk_size=2000, min_chunk_size=150, ideal_chunk_size=1000)
OPENAPI_CHUNK_CONFIG = ChunkConfig(max_chunk_size=2500, min_chunk_size=200, ideal_chunk_size=1200)

PARSER_CHUNK_CONFIGS: Dict[str, ChunkConfig] = {
    "mdx": MDX_CHUNK_CONFIG,
    "markdown": MARKDOWN_CHUNK_CONFIG,
    "openapi": OPENAPI_CHUNK_CONFIG,
}

ParserType = Literal["mdx", "markdown", "openapi"]


def get_chunk_config(parser: str) -> ChunkConfig:
    """Get the default chunk configuration for a parser type."""
    return PARSER_CHUNK_CONFIGS.get(parser, DEFAULT_CHUNK_CONFIG)


class SourceConfig(BaseModel):
    """One documentation source as described in the sources file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: Optional[str] = Field(None, alias="displayName")
    parser: ParserType

    # Where the fetched files live on disk
    local_path: Optional[str] = Field(None, alias="localPath")
    path: str = "."

    # Metadata enrichment
    repository: Optional[str] = None
    branch: str = "main"
    base_url: Optional[str] = Field(None, alias="baseUrl")
    language: Optional[str] = None

    skip_dirs: List[str] = Field(default_factory=list, alias="skipDirs")
    skip_files: List[str] = Field(default_factory=list, alias="skipFiles")

    # OpenAPI only: directory of MDX files carrying `openapi:` frontmatter
    url_mapping_dir: Optional[str] = Field(None, alias="urlMappingDir")

    optional: bool = False
    chunking: Optional[ChunkConfig] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not re.fullmatch(r"[a-z0-9-]+", value):
            raise ValueError("name must be lowercase alphanumeric with hyphens")
        return value

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else value

    @property
    def context_name(self) -> str:
        return self.display_name or self.name


class SourcesFile(BaseModel):
    """Top level layout of the YAML sources file."""

    sources: List[SourceConfig] = Field(min_length=1)
    chunking: Optional[ChunkConfig] = None


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(content: str) -> str:
    """Replace ${VAR} and ${VAR:-default} with environment values."""

    def replace(match: re.Match) -> str:
        var_name, _, default = match.group(1).partition(":-")
        value = os.environ.get(var_name.strip())
        if value is not None:
            return value
        if ":-" in match.group(1):
            return default
        # Unknown variable without default stays as written
        return match.group(0)

    return _ENV_PATTERN.sub(replace, content)


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "(root)"
        lines.append(f"{location}: {issue['msg']}")
    return "; ".join(lines)


class Config:
    """Configuration settings for docchunk."""

    CONFIG_PATHS = ["config.yaml", "config.yml", "config/config.yaml", ".config.yaml"]

    def __init__(self, data_dir: Optional[str] = None, config_file: Optional[str] = None):
        """Initialize configuration with optional data directory."""
        # Base directories
        self.project_root = Path(__file__).parent.parent.parent
        env_data_dir = os.getenv("DOCCHUNK_DATA_DIR")
        if data_dir:
            self.data_dir = Path(data_dir)
        elif env_data_dir:
            self.data_dir = Path(env_data_dir)
        else:
            self.data_dir = Path.cwd() / "data"

        self.chunks_dir = self.data_dir / "chunks"

        # Sources file
        config_file = config_file or os.getenv("DOCCHUNK_CONFIG_FILE")
        self.config_file = Path(config_file) if config_file else None

        # Chunking settings (only applied when set)
        self.max_chunk_size = self._env_int("DOCCHUNK_MAX_CHUNK_SIZE")
        self.min_chunk_size = self._env_int("DOCCHUNK_MIN_CHUNK_SIZE")
        self.ideal_chunk_size = self._env_int("DOCCHUNK_IDEAL_CHUNK_SIZE")

        # File paths
        self.chunks_file = self.chunks_dir / "chunks.json"

        # Logging
        self.log_level = os.getenv("DOCCHUNK_LOG_LEVEL", "INFO")
        self.log_file = self.data_dir / "docchunk.log"

        self.show_progress = os.getenv("DOCCHUNK_SHOW_PROGRESS", "true").lower() == "true"

        # Filled by load_sources()
        self.sources: List[SourceConfig] = []
        self.chunking: Optional[ChunkConfig] = None

    @staticmethod
    def _env_int(name: str) -> Optional[int]:
        raw = os.getenv(name)
        if raw is None or raw == "":
            return None
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}")

    def ensure_directories(self) -> None:
        """Create the output directories."""
        for dir_path in [self.data_dir, self.chunks_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def find_config_file(self) -> Optional[Path]:
        """Find the sources file in the standard locations."""
        if self.config_file is not None:
            return self.config_file
        for candidate in self.CONFIG_PATHS:
            path = Path(candidate)
            if path.exists():
                return path
        return None

    def load_sources(self, config_file: Optional[str] = None) -> List[SourceConfig]:
        """Load and validate the YAML sources file."""
        path = Path(config_file) if config_file else self.find_config_file()
        if path is None:
            raise FileNotFoundError(
                f"Configuration file not found. Looked for: {', '.join(self.CONFIG_PATHS)}"
            )
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            content = substitute_env_vars(f.read())

        parsed = self.parse_sources(content)
        self.config_file = path
        self.sources = parsed.sources
        self.chunking = parsed.chunking
        return self.sources

    @staticmethod
    def parse_sources(content: str) -> SourcesFile:
        """Parse the YAML text of a sources file."""
        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML: {e}")

        try:
            return SourcesFile.model_validate(raw or {})
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {_format_validation_error(e)}")

    def get_source(self, name: str) -> SourceConfig:
        """Get a loaded source by name."""
        for source in self.sources:
            if source.name == name:
                return source
        raise ConfigurationError(f"Unknown source: {name}")

    def env_chunk_overrides(self) -> Dict[str, Any]:
        overrides = {}
        if self.max_chunk_size is not None:
            overrides["max_chunk_size"] = self.max_chunk_size
        if self.min_chunk_size is not None:
            overrides["min_chunk_size"] = self.min_chunk_size
        if self.ideal_chunk_size is not None:
            overrides["ideal_chunk_size"] = self.ideal_chunk_size
        return overrides

    def chunk_override_for(self, source: SourceConfig) -> Optional[ChunkConfig]:
        """Explicitly configured chunk sizes for a source, or None for the parser preset.

        Precedence: the source's own ``chunking`` block, then the file level
        ``chunking`` block, then ``DOCCHUNK_*`` environment overrides applied
        on top of the parser preset.
        """
        if source.chunking is not None:
            return source.chunking
        if self.chunking is not None:
            return self.chunking

        overrides = self.env_chunk_overrides()
        if not overrides:
            return None
        base = get_chunk_config(source.parser)
        try:
            return ChunkConfig(**{**base.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid chunk size overrides: {_format_validation_error(e)}")

    def chunk_config_for(self, source: SourceConfig) -> ChunkConfig:
        """Resolve the chunk configuration for a source."""
        return self.chunk_override_for(source) or get_chunk_config(source.parser)

    def __repr__(self):
        """String representation of config."""
        return f"Config(data_dir={self.data_dir}, config_file={self.config_file})"
