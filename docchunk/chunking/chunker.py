"""
Document chunker for docchunk.
"""

import json
import os
import re
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from ..config.settings import ChunkConfig, Config, ConfigurationError, SourceConfig
from ..utils.helpers import lower_set, slugify
from ..utils.logging import get_logger, log_performance
from .models import DocChunk, SourceDocument
from .normalizer import extract_frontmatter
from .openapi import OpenApiChunkStrategy, build_doc_url_map
from .strategies import ChunkingStrategy, MarkdownChunkStrategy, MdxChunkStrategy

SOURCE_EXTENSIONS = {
    "mdx": (".md", ".mdx"),
    "markdown": (".md",),
    "openapi": (".yaml", ".yml", ".json"),
}

_TITLE_HEADING = re.compile(r'^#\s+(.+?)\s*$', re.MULTILINE)


class DocumentChunker:
    """Reads documentation sources from disk and chunks every document."""

    def __init__(self, config: Config):
        """Initialize document chunker with configuration."""
        self.config = config
        self.logger = get_logger(__name__)
        self.chunks: List[DocChunk] = []

    # -------------------------------------------------------------------------
    # Source discovery
    # -------------------------------------------------------------------------

    @staticmethod
    def source_root(source: SourceConfig) -> Path:
        """Checkout or download directory the source lives in."""
        return Path(source.local_path or ".")

    def source_dir(self, source: SourceConfig) -> Path:
        return self.source_root(source) / source.path

    def find_files(self, directory: Path, extensions: Tuple[str, ...],
                   skip_dirs: Optional[List[str]] = None, skip_files: Optional[List[str]] = None) -> List[str]:
        """Find documentation files below a directory, sorted, as relative POSIX paths.

        Skip lists match directory and file names case-insensitively.
        """
        skip_dirs_set = lower_set(skip_dirs or [])
        skip_files_set = lower_set(skip_files or [])
        files = []

        for root, dirs, names in os.walk(directory):
            dirs[:] = sorted(d for d in dirs if d.lower() not in skip_dirs_set)
            for name in sorted(names):
                if not name.lower().endswith(extensions):
                    continue
                if name.lower() in skip_files_set:
                    continue
                files.append(Path(root, name).relative_to(directory).as_posix())

        return sorted(files)

    def create_strategy(self, source: SourceConfig, chunk_config: Optional[ChunkConfig] = None) -> ChunkingStrategy:
        """Build the chunking strategy for a source's parser type."""
        if source.parser == "mdx":
            return MdxChunkStrategy(chunk_config)
        if source.parser == "markdown":
            return MarkdownChunkStrategy(chunk_config)
        if source.parser == "openapi":
            if not source.base_url:
                raise ConfigurationError(
                    f"baseUrl is required for OpenAPI sources. Add baseUrl to source '{source.name}' in your configuration."
                )
            doc_url_map: Dict[str, str] = {}
            if source.url_mapping_dir:
                doc_url_map = build_doc_url_map(str(self.source_root(source)), source.url_mapping_dir, source.base_url)
            return OpenApiChunkStrategy(chunk_config, base_url=source.base_url, doc_url_map=doc_url_map)

        raise ConfigurationError(f"Unknown parser type: {source.parser}")

    # -------------------------------------------------------------------------
    # Document reading
    # -------------------------------------------------------------------------

    @staticmethod
    def build_source_url(source: SourceConfig, rel_path: str) -> str:
        """Documentation URL for a file, or its repository blob URL."""
        page = re.sub(r'\.(mdx?|MDX?)$', '', rel_path)
        page = re.sub(r'(^|/)index$', '', page)
        web_url = f"{source.base_url}/{page}".rstrip("/") if source.base_url else ""

        blob_url = ""
        if source.repository:
            file_path = "/".join(part for part in [source.path, rel_path] if part and part != ".")
            blob_url = f"https://github.com/{source.repository}/blob/{source.branch}/{file_path}"

        # Plain markdown is read on GitHub, MDX on the rendered docs site
        if source.parser == "markdown":
            return blob_url or web_url
        return web_url or blob_url

    def read_document(self, source: SourceConfig, directory: Path, rel_path: str) -> SourceDocument:
        """Read one file into a SourceDocument."""
        with open(directory / rel_path, 'r', encoding='utf-8') as f:
            raw = f.read()

        file_name = os.path.basename(rel_path)
        stem = os.path.splitext(rel_path)[0]

        if source.parser == "openapi":
            frontmatter, body = {}, raw
        else:
            frontmatter, body = extract_frontmatter(raw)

        title = frontmatter.get("title")
        if not title:
            match = _TITLE_HEADING.search(body)
            title = match.group(1) if match else os.path.basename(stem)

        slug = re.sub(r'/index$', '', stem)
        parts = rel_path.split("/")
        category = source.context_name
        if len(parts) > 1:
            category = f"{category}/{parts[0]}"

        return SourceDocument(
            path=rel_path,
            slug=f"{source.name}/{slug}",
            title=str(title),
            content=body,
            category=category,
            source_url=self.build_source_url(source, rel_path),
            description=frontmatter.get("description"),
            file_name=file_name,
            repository=source.repository,
            language=source.language,
            frontmatter=frontmatter,
        )

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def chunk_text(self, text: str, parser: str = "markdown", name: str = "docs", file_name: str = "README.md",
                   chunk_config: Optional[ChunkConfig] = None, base_url: Optional[str] = None) -> List[DocChunk]:
        """Chunk a single in-memory document without touching the filesystem."""
        source = SourceConfig(name=name, parser=parser, base_url=base_url)
        strategy = self.create_strategy(source, chunk_config)

        if parser == "openapi":
            frontmatter, body = {}, text
        else:
            frontmatter, body = extract_frontmatter(text)

        document = SourceDocument(
            path=file_name,
            slug=f"{name}/{os.path.splitext(file_name)[0]}",
            title=str(frontmatter.get("title") or os.path.splitext(file_name)[0]),
            content=body,
            category=source.context_name,
            description=frontmatter.get("description"),
            file_name=file_name,
            frontmatter=frontmatter,
        )
        return strategy.chunk_document(document)

    @log_performance
    def process_source(self, source: SourceConfig) -> List[DocChunk]:
        """Chunk every file of one source."""
        directory = self.source_dir(source)
        if not directory.exists():
            if source.optional:
                self.logger.warning(f"Skipping optional source '{source.name}': {directory} not found")
                return []
            raise FileNotFoundError(f"Source directory not found: {directory}")

        override = self.config.chunk_override_for(source)
        strategy = self.create_strategy(source, override)

        if directory.is_file():
            directory, files = directory.parent, [directory.name]
        else:
            files = self.find_files(directory, SOURCE_EXTENSIONS[source.parser], source.skip_dirs, source.skip_files)
            if source.parser == "openapi":
                # One spec per source, at the top of its directory
                files = [f for f in files if "/" not in f][:1]

        if not files:
            self.logger.warning(f"No {source.parser} files found in {directory}")
            return []

        self.logger.info(f"Processing {len(files)} files from source '{source.name}'...")

        chunks: List[DocChunk] = []
        progress = tqdm(files, desc=source.context_name, unit="file", disable=not self.config.show_progress)
        for rel_path in progress:
            self.logger.debug(f"Processing: {rel_path}")
            try:
                document = self.read_document(source, directory, rel_path)
            except (OSError, UnicodeDecodeError) as e:
                self.logger.error(f"Error reading {directory / rel_path}: {e}")
                continue
            chunks.extend(strategy.chunk_document(document))

        self.logger.info(f"Created {len(chunks)} chunks from source '{source.name}'")
        return chunks

    def process_sources(self, sources: Optional[List[SourceConfig]] = None) -> List[DocChunk]:
        """Chunk all configured sources in order."""
        if sources is None:
            sources = self.config.sources

        self.chunks = []
        for source in sources:
            self.chunks.extend(self.process_source(source))

        self.logger.info(f"Created {len(self.chunks)} total chunks")
        return self.chunks

    def process_directory(self, input_dir: str, parser: str = "markdown", name: Optional[str] = None,
                          base_url: Optional[str] = None) -> List[DocChunk]:
        """Chunk an ad hoc directory as a single source."""
        path = Path(input_dir)
        source = SourceConfig(
            name=name or slugify(path.resolve().name) or "docs",
            parser=parser,
            local_path=str(path),
            base_url=base_url,
        )
        return self.process_sources([source])

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def save_chunks(self, output_file: Optional[str] = None) -> Path:
        """Save chunks to JSON file."""
        output_path = Path(output_file) if output_file else self.config.chunks_file
        output_path.parent.mkdir(parents=True, exist_ok=True)

        chunks_data = [chunk.to_dict() for chunk in self.chunks]
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(chunks_data, f, indent=2, ensure_ascii=False)

        self.logger.info(f"Saved {len(chunks_data)} chunks to {output_path}")
        return output_path

    def load_chunks(self, input_file: Optional[str] = None) -> List[DocChunk]:
        """Load chunks from JSON file."""
        input_path = Path(input_file) if input_file else self.config.chunks_file

        if not input_path.exists():
            raise FileNotFoundError(f"Chunks file not found: {input_path}")

        with open(input_path, 'r', encoding='utf-8') as f:
            chunks_data = json.load(f)

        self.chunks = [DocChunk.from_dict(data) for data in chunks_data]
        self.logger.info(f"Loaded {len(self.chunks)} chunks from {input_path}")
        return self.chunks

    def save_text(self, output_file: str) -> Path:
        """Write a plain-text dump with one block per chunk, for inspection."""
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        separator = "=" * 80
        with open(output_path, 'w', encoding='utf-8') as f:
            for chunk in self.chunks:
                f.write(f"{separator}\n")
                f.write(f"ID: {chunk.id}\n")
                f.write(f"Heading: {chunk.heading}\n")
                if chunk.metadata.source_url:
                    f.write(f"URL: {chunk.metadata.source_url}\n")
                f.write(f"{separator}\n\n")
                f.write(chunk.chunk_text)
                f.write("\n\n")

        self.logger.info(f"Wrote {len(self.chunks)} chunks to {output_path}")
        return output_path

    def get_stats(self) -> Dict[str, int]:
        """Get chunk counts per category plus the total."""
        stats = dict(sorted(Counter(chunk.category for chunk in self.chunks).items()))
        stats['total'] = len(self.chunks)
        return stats

    def print_stats(self) -> None:
        """Print chunking statistics."""
        stats = self.get_stats()

        self.logger.info("Chunking Statistics:")
        for category, count in stats.items():
            if category != 'total':
                self.logger.info(f"  {category}: {count}")
        self.logger.info(f"  Total chunks: {stats['total']}")
