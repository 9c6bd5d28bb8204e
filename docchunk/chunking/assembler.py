"""
Turns finished sections into DocChunk records.
"""

import re
from typing import List, Optional

from ..utils.helpers import clean_text, truncate_text
from .models import ChunkMetadata, DocChunk, SourceDocument
from .normalizer import split_code_segments

DESCRIPTION_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 30


def _strip_inline_markdown(text: str) -> str:
    text = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', text)
    text = re.sub(r'`([^`]+)`', r'\1', text)
    text = re.sub(r'\*\*([^*]+)\*\*', r'\1', text)
    return text


def clean_heading(heading: str) -> str:
    """Remove markdown formatting, links and newlines from a heading."""
    heading = re.sub(r'`([^`]+)`', r'\1', heading)
    heading = re.sub(r'\*\*([^*]+)\*\*', r'\1', heading)
    heading = re.sub(r'\*([^*]+)\*', r'\1', heading)
    heading = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', heading)
    return clean_text(heading)


def _is_prose(paragraph: str) -> bool:
    if len(paragraph) < DESCRIPTION_MIN_LENGTH:
        return False
    if paragraph.startswith(('#', '-', '|', '>', '[')):
        return False
    if paragraph.startswith('*') and not paragraph.startswith('**'):
        return False
    if paragraph.startswith('**') and paragraph.endswith('**'):
        return False
    return True


def extract_description(content: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Return the first prose paragraph of ``content``, or an empty string.

    Headings, lists, tables, quotes, link lines and code blocks are skipped.
    The result is flattened to one line and truncated with ``...``.
    """
    prose = '\n'.join(segment for is_code, segment in split_code_segments(content) if not is_code)

    for paragraph in re.split(r'\n\s*\n', prose):
        paragraph = paragraph.strip()
        if not _is_prose(paragraph):
            continue

        return truncate_text(_strip_inline_markdown(clean_text(paragraph)).strip(), max_length)

    return ''


class ChunkAssembler:
    """Builds the chunks of one document with sequential ``{slug}#{index}`` IDs."""

    def __init__(self, slug: str, title: str, category: str, document_path: str = "",
                 source_url: Optional[str] = None, description: Optional[str] = None,
                 repository: Optional[str] = None, language: Optional[str] = None):
        self.slug = slug
        self.title = title
        self.category = category
        self.document_path = document_path
        self.source_url = source_url
        self.description = description
        self.repository = repository
        self.language = language
        self.chunks: List[DocChunk] = []

    @classmethod
    def for_document(cls, document: SourceDocument) -> "ChunkAssembler":
        return cls(
            slug=document.slug,
            title=document.title,
            category=document.category,
            document_path=document.path,
            source_url=document.source_url or None,
            description=document.description,
            repository=document.repository,
            language=document.language,
        )

    @property
    def next_id(self) -> str:
        return f"{self.slug}#{len(self.chunks)}"

    def describe(self, content: str, heading: str, fallback: Optional[str] = None) -> str:
        """First prose paragraph, else the fallback, document description or heading."""
        return extract_description(content) or fallback or self.description or heading

    def add(self, heading: str, content: str, description: Optional[str] = None,
            method: Optional[str] = None, path: Optional[str] = None,
            version: Optional[str] = None, source_url: Optional[str] = None,
            language: Optional[str] = None) -> DocChunk:
        """Append a chunk and return it."""
        heading = clean_heading(heading)
        metadata = ChunkMetadata(
            description=description or self.describe(content, heading),
            source_url=source_url or self.source_url,
            repository=self.repository,
            language=language or self.language,
            method=method,
            path=path,
            version=version,
        )

        chunk = DocChunk(
            id=self.next_id,
            document_path=self.document_path,
            document_title=self.title,
            category=self.category,
            heading=heading,
            content=content,
            metadata=metadata,
        )
        self.chunks.append(chunk)
        return chunk
