"""
Document chunking module for docchunk.
"""

from .models import DocChunk, ChunkMetadata, SourceDocument, Section, FlatSection
from .chunker import DocumentChunker
from .strategies import ChunkingStrategy, MdxChunkStrategy, MarkdownChunkStrategy
from .openapi import OpenApiChunkStrategy
from .sections import parse_into_tree, merge_hierarchical_sections, split_content

__all__ = [
    "DocChunk",
    "ChunkMetadata",
    "SourceDocument",
    "Section",
    "FlatSection",
    "DocumentChunker",
    "ChunkingStrategy",
    "MdxChunkStrategy",
    "MarkdownChunkStrategy",
    "OpenApiChunkStrategy",
    "parse_into_tree",
    "merge_hierarchical_sections",
    "split_content",
]
