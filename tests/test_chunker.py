"""
Tests for the document chunker.
"""

import json
import logging

import pytest
import yaml

from docchunk.chunking.chunker import DocumentChunker
from docchunk.chunking.models import DocChunk
from docchunk.chunking.strategies import MarkdownChunkStrategy, MdxChunkStrategy
from docchunk.config.settings import Config, ConfigurationError, SourceConfig
from docchunk.utils.logging import LogCapture

BASE_URL = "https://docs.acme.dev"

OPENAPI_SPEC = {
    "openapi": "3.0.0",
    "paths": {
        "/payments": {
            "get": {
                "operationId": "list_payments",
                "summary": "List payments",
                "responses": {"200": {"description": "OK"}},
            },
        },
    },
}


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestDocumentChunker:
    """Test cases for DocumentChunker."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = Config()
        self.config.show_progress = False
        self.chunker = DocumentChunker(self.config)

    def mdx_source(self, root, **kwargs):
        return SourceConfig(
            name="acme",
            display_name="Acme Docs",
            parser="mdx",
            local_path=str(root),
            path="docs",
            base_url=BASE_URL,
            **kwargs,
        )

    def test_find_files(self, tmp_path):
        """Test sorted discovery with case-insensitive skip lists."""
        for rel_path in ["b.mdx", "a.md", "guides/c.mdx", "Snippets/x.mdx", "DRAFT.mdx", "notes.txt"]:
            write(tmp_path / rel_path, "text")

        files = self.chunker.find_files(tmp_path, (".md", ".mdx"), skip_dirs=["snippets"], skip_files=["draft.mdx"])

        assert files == ["a.md", "b.mdx", "guides/c.mdx"]

    def test_process_mdx_source(self, tmp_path):
        """Test chunking an MDX source into documents with metadata."""
        docs = tmp_path / "docs"
        write(docs / "index.mdx", "---\ntitle: Welcome\ndescription: Start here\n---\n\n## Getting started\n\nRead the guides.")
        write(docs / "guides" / "auth.mdx", "import { Note } from 'x'\n\n## Tokens\n\nTokens expire after an hour.")

        chunks = self.chunker.process_sources([self.mdx_source(tmp_path)])

        assert [chunk.id for chunk in chunks] == ["acme/guides/auth#0", "acme/index#0"]
        auth, index = chunks
        assert auth.category == "Acme Docs/guides"
        assert auth.document_title == "auth"
        assert auth.metadata.source_url == f"{BASE_URL}/guides/auth"
        assert "import" not in auth.content
        assert index.document_title == "Welcome"
        assert index.category == "Acme Docs"
        assert index.metadata.source_url == BASE_URL
        assert index.metadata.description == "Start here"
        assert self.chunker.chunks == chunks

    def test_markdown_source_urls(self, tmp_path):
        """Test that markdown sources link to the repository file."""
        write(tmp_path / "sdk" / "README.md", "# Acme SDK\n\nThe Acme SDK wraps the REST API for Python applications.")
        source = SourceConfig(
            name="acme-python",
            parser="markdown",
            local_path=str(tmp_path),
            path="sdk",
            repository="acme/acme-python",
            branch="develop",
            language="python",
        )

        chunks = self.chunker.process_sources([source])

        assert len(chunks) == 1
        assert chunks[0].heading == "Acme SDK"
        assert chunks[0].metadata.source_url == "https://github.com/acme/acme-python/blob/develop/sdk/README.md"
        assert chunks[0].metadata.repository == "acme/acme-python"
        assert chunks[0].metadata.language == "python"

    def test_openapi_source(self, tmp_path):
        """Test chunking an OpenAPI source with mapped documentation URLs."""
        write(tmp_path / "api" / "openapi.yaml", yaml.safe_dump(OPENAPI_SPEC))
        write(tmp_path / "api" / "old" / "legacy.yaml", yaml.safe_dump(OPENAPI_SPEC))
        write(tmp_path / "api-reference" / "payments" / "list.mdx", "---\nopenapi: get /payments\n---\n")
        source = SourceConfig(
            name="acme-api",
            parser="openapi",
            local_path=str(tmp_path),
            path="api",
            base_url=BASE_URL,
            url_mapping_dir="api-reference",
        )

        chunks = self.chunker.process_sources([source])

        assert len(chunks) == 1
        assert chunks[0].id == "api/list_payments#0"
        assert chunks[0].metadata.source_url == f"{BASE_URL}/payments/list"

    def test_openapi_requires_base_url(self, tmp_path):
        """Test that an OpenAPI source without a base URL is rejected."""
        write(tmp_path / "api" / "openapi.yaml", yaml.safe_dump(OPENAPI_SPEC))
        source = SourceConfig(name="acme-api", parser="openapi", local_path=str(tmp_path), path="api")

        with pytest.raises(ConfigurationError):
            self.chunker.process_sources([source])

    def test_create_strategy(self):
        """Test strategy selection by parser type."""
        assert isinstance(self.chunker.create_strategy(SourceConfig(name="a", parser="mdx")), MdxChunkStrategy)
        assert isinstance(self.chunker.create_strategy(SourceConfig(name="b", parser="markdown")), MarkdownChunkStrategy)

    def test_missing_source_directory(self, tmp_path):
        """Test required and optional sources whose directory is missing."""
        with pytest.raises(FileNotFoundError):
            self.chunker.process_sources([self.mdx_source(tmp_path)])

        with LogCapture(level=logging.WARNING) as capture:
            chunks = self.chunker.process_sources([self.mdx_source(tmp_path, optional=True)])

        assert chunks == []
        assert any("Skipping optional source 'acme'" in message for message in capture.get_messages())

    def test_unreadable_file_skipped(self, tmp_path):
        """Test that a file that cannot be decoded is logged and skipped."""
        write(tmp_path / "docs" / "good.mdx", "## Good\n\nThis page is fine.")
        (tmp_path / "docs" / "bad.mdx").write_bytes(b"\xff\xfe\xfa broken")

        with LogCapture(level=logging.ERROR) as capture:
            chunks = self.chunker.process_sources([self.mdx_source(tmp_path)])

        assert [chunk.heading for chunk in chunks] == ["Good"]
        assert any("bad.mdx" in message for message in capture.get_messages(logging.ERROR))

    def test_process_directory(self, tmp_path):
        """Test chunking an ad hoc directory."""
        write(tmp_path / "my_docs" / "CHANGELOG.md", "# Changelog\n\n## 1.1.0\n\n- Added retries\n\n## 1.0.0\n\n- First release")

        chunks = self.chunker.process_directory(str(tmp_path / "my_docs"), parser="markdown")

        assert len(chunks) == 1
        assert chunks[0].id == "my-docs/CHANGELOG#0"
        assert chunks[0].heading == "Versions 1.0.0 - 1.1.0"
        assert chunks[0].category == "changelog"

    def test_chunk_text(self):
        """Test chunking an in-memory document."""
        chunks = self.chunker.chunk_text("# Title\n\nSome README content that is long enough.", name="demo")

        assert len(chunks) == 1
        assert chunks[0].id == "demo/README#0"
        assert chunks[0].heading == "Title"

    def test_save_and_load_chunks(self, tmp_path):
        """Test the JSON snapshot round trip."""
        write(tmp_path / "docs" / "page.mdx", "## One\n\nFirst section.\n\n## Two\n\nSecond section.")
        chunks = self.chunker.process_sources([self.mdx_source(tmp_path)])
        output_file = tmp_path / "out" / "chunks.json"

        self.chunker.save_chunks(str(output_file))

        data = json.loads(output_file.read_text(encoding="utf-8"))
        assert [item["id"] for item in data] == ["acme/page#0", "acme/page#1"]
        assert set(data[0]) == {"id", "documentPath", "documentTitle", "category", "heading", "content", "metadata"}

        loaded = DocumentChunker(self.config).load_chunks(str(output_file))
        assert loaded == chunks
        assert all(isinstance(chunk, DocChunk) for chunk in loaded)

    def test_load_missing_chunks(self, tmp_path):
        """Test loading a snapshot that does not exist."""
        with pytest.raises(FileNotFoundError):
            self.chunker.load_chunks(str(tmp_path / "missing.json"))

    def test_save_text(self, tmp_path):
        """Test the plain-text dump."""
        self.chunker.chunks =self.chunker.chunk_text("# Title\n\nSome README content that is long enough.", name="demo")

        output_path = self.chunker.save_text(str(tmp_path / "chunks.txt"))

        text = output_path.read_text(encoding="utf-8")
        assert "ID: demo/README#0" in text
        assert "Heading: Title" in text

    def test_stats(self, tmp_path):
        """Test chunk counts per category."""
        write(tmp_path / "docs" / "index.mdx", "## A\n\nText a.\n\n## B\n\nText b.")
        write(tmp_path / "docs" / "guides" / "one.mdx", "## C\n\nText c.")
        self.chunker.process_sources([self.mdx_source(tmp_path)])

        assert self.chunker.get_stats() == {"Acme Docs": 2, "Acme Docs/guides": 1, "total": 3}
