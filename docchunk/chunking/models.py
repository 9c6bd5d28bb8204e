"""
Data models for chunking module.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Section:
    """One heading and the body text directly under it."""
    heading: str
    level: int
    content: str = ""
    children: List["Section"] = field(default_factory=list)


@dataclass
class FlatSection:
    """A merged, non-nested chunk candidate with its ancestor headings."""
    heading: str
    level: int
    content: str
    breadcrumbs: List[str] = field(default_factory=list)


# JSON key for each metadata attribute, in output order
_METADATA_KEYS = [
    ("description", "description"),
    ("source_url", "sourceUrl"),
    ("repository", "repository"),
    ("language", "language"),
    ("method", "method"),
    ("path", "path"),
    ("version", "version"),
]


@dataclass(frozen=True)
class ChunkMetadata:
    """Filtering and display metadata attached to a chunk."""
    description: Optional[str] = None
    source_url: Optional[str] = None
    repository: Optional[str] = None
    language: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    version: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary, leaving out unset fields."""
        data = {}
        for attr, key in _METADATA_KEYS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkMetadata":
        return cls(**{attr: data.get(key) for attr, key in _METADATA_KEYS})


@dataclass(frozen=True)
class DocChunk:
    """Represents a chunk of documentation ready for embedding."""
    id: str
    document_path: str
    document_title: str
    category: str
    heading: str
    content: str
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)

    @property
    def chunk_text(self) -> str:
        """Full text with context for embedding."""
        parts = []

        if self.metadata.repository:
            parts.append(f"SDK: {self.metadata.repository}")
        if self.metadata.language:
            parts.append(f"Language: {self.metadata.language}")

        parts.append(self.document_title)
        if self.heading and self.heading != self.document_title:
            parts.append(self.heading)

        if self.metadata.method and self.metadata.path:
            parts.append(f"{self.metadata.method.upper()} {self.metadata.path}")

        if self.metadata.description:
            parts.append(self.metadata.description)

        parts.append(self.content)
        return "\n\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape consumed by the embedding stage."""
        return {
            "id": self.id,
            "documentPath": self.document_path,
            "documentTitle": self.document_title,
            "category": self.category,
            "heading": self.heading,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocChunk":
        return cls(
            id=data["id"],
            document_path=data["documentPath"],
            document_title=data["documentTitle"],
            category=data["category"],
            heading=data["heading"],
            content=data["content"],
            metadata=ChunkMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass
class SourceDocument:
    """A single file read from a documentation source."""
    path: str
    slug: str
    title: str
    content: str
    category: str
    source_url: str = ""
    description: Optional[str] = None
    file_name: str = ""
    repository: Optional[str] = None
    language: Optional[str] = None
    frontmatter: Dict[str, Any] = field(default_factory=dict)
