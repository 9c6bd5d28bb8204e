"""
docchunk - Documentation chunker for retrieval pipelines

Splits MDX, Markdown and OpenAPI documentation into self-contained,
size-bounded chunks ready for embedding and search.
"""

__version__ = "0.1.0"

from .config.settings import Config, ChunkConfig, SourceConfig, ConfigurationError
from .chunking.chunker import DocumentChunker
from .chunking.models import DocChunk


class DocChunker:
    """Main docchunk interface for chunking operations."""

    def __init__(self, data_dir=None, config_file=None, config=None):
        """Initialize with optional data directory and sources file."""
        self.config = config or Config(data_dir=data_dir, config_file=config_file)
        self.chunker = None

    def get_chunker(self):
        """Get or create chunker instance."""
        if self.chunker is None:
            self.chunker = DocumentChunker(self.config)
        return self.chunker

    def chunk_sources(self, names=None, output_file=None):
        """Chunk configured sources (all of them, or the named ones) and save the snapshot."""
        if not self.config.sources:
            self.config.load_sources()

        sources = self.config.sources
        if names:
            sources = [self.config.get_source(name) for name in names]

        chunker = self.get_chunker()
        chunks = chunker.process_sources(sources)
        chunker.save_chunks(output_file)
        return chunks

    def chunk_directory(self, input_dir, parser="markdown", name=None, base_url=None):
        """Chunk an ad hoc directory of documentation."""
        return self.get_chunker().process_directory(input_dir, parser=parser, name=name, base_url=base_url)

    def chunk_text(self, text, parser="markdown", **kwargs):
        """Chunk a single in-memory document."""
        return self.get_chunker().chunk_text(text, parser=parser, **kwargs)


__all__ = [
    "DocChunker",
    "Config",
    "ChunkConfig",
    "SourceConfig",
    "ConfigurationError",
    "DocumentChunker",
    "DocChunk",
    "__version__",
]
