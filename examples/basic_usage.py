#!/usr/bin/env python3
"""
Basic usage examples for docchunk.

This script demonstrates the fundamental operations of docchunk:
- Chunking a single in-memory document
- Chunking a directory of documentation
- Saving and inspecting the resulting chunks
"""

import tempfile
from pathlib import Path

from docchunk import DocChunker
from docchunk.utils.logging import setup_logging

README = """# Example Project

Example Project turns long documentation pages into retrieval-sized chunks.

## Installation

Install the package with pip and make sure the command line entry point is on your path.

```bash
pip install example-project
```

## Usage

Run the chunker over a directory and inspect the generated JSON snapshot.
"""


def main():
    """Demonstrate basic docchunk usage."""

    setup_logging(log_level="INFO")

    print("docchunk Basic Usage Example")
    print("=" * 50)

    with tempfile.TemporaryDirectory() as tmp:
        data_dir = Path(tmp) / "data"
        docs = DocChunker(data_dir=str(data_dir))

        # Example 1: Chunk a single document
        print("1. Chunking a README")
        print("-" * 30)

        chunks = docs.chunk_text(README, parser="markdown", name="example")
        for chunk in chunks:
            print(f"  {chunk.id}: {chunk.heading} ({len(chunk.content)} chars)")
        print()

        # Example 2: Chunk a directory
        print("2. Chunking a directory")
        print("-" * 30)

        docs_dir = Path(tmp) / "docs"
        docs_dir.mkdir()
        (docs_dir / "README.md").write_text(README, encoding="utf-8")

        chunks = docs.chunk_directory(str(docs_dir), parser="markdown", name="example")
        output_path = docs.get_chunker().save_chunks()
        print(f"  Saved {len(chunks)} chunks to {output_path}")
        print()

        # Example 3: Statistics
        print("3. Statistics")
        print("-" * 30)
        docs.get_chunker().print_stats()


if __name__ == "__main__":
    main()
