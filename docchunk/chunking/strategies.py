"""
Chunking strategies for the different documentation formats.
"""

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config.settings import ChunkConfig, FUMADOCS_CHUNK_CONFIG, get_chunk_config
from ..utils.logging import get_logger
from .assembler import ChunkAssembler, clean_heading
from .cleaners import Dialect, clean_document, detect_dialect, final_cleanup
from .models import DocChunk, FlatSection, SourceDocument
from .normalizer import iter_fence_state, normalize
from .sections import (
    DOCUMENTATION,
    INTRODUCTION,
    merge_hierarchical_sections,
    parse_into_tree,
    split_content,
)


class ChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""

    parser = ""

    def __init__(self, chunk_config: Optional[ChunkConfig] = None):
        """Initialize with an explicit chunk configuration or the parser preset."""
        self.chunk_config = chunk_config or get_chunk_config(self.parser)
        self.config_overridden = chunk_config is not None
        self.logger = get_logger(__name__)

    @abstractmethod
    def chunk_document(self, document: SourceDocument) -> List[DocChunk]:
        """Create chunks from one source document."""
        pass

    def _add_split(self, assembler: ChunkAssembler, heading: str, content: str,
                   config: ChunkConfig, fallback: Optional[str] = None):
        """Add content as one chunk, or as ``(Part N)`` chunks when over the cap.

        Split fragments below ``min_chunk_size`` are not emitted.
        """
        if len(content) <= config.max_chunk_size:
            assembler.add(heading, content, description=assembler.describe(content, heading, fallback))
            return

        fragments = split_content(content, config)
        pieces = [piece for piece in fragments if len(piece) >= config.min_chunk_size]
        if len(pieces) < len(fragments):
            self.logger.debug(f"Skipped {len(fragments) - len(pieces)} undersized fragment(s) of '{heading}'")

        for number, piece in enumerate(pieces, 1):
            piece_heading = f"{heading} (Part {number})" if len(pieces) > 1 else heading
            assembler.add(piece_heading, piece, description=assembler.describe(piece, heading, fallback))


# =============================================================================
# MDX
# =============================================================================

@dataclass
class TabContent:
    title: str
    content: str
    # Prose between this tab and the next one, or after the last tab
    after: str = ""


@dataclass
class NumberedExample:
    number: str
    title: str
    content: str


_TOP_LEVEL_HEADING = re.compile(r'^##\s+(.+?)\s*$')
_NUMBERED_HEADING = re.compile(r'^###\s+(\d+)[.:)]\s*(.*)$')
_MINTLIFY_TAB = re.compile(r'<Tab\s+title="([^"]+)"[^>]*>([\s\S]*?)</Tab>', re.IGNORECASE)
_FUMADOCS_TABS = re.compile(r'<Tabs\s+items=\{\[')
_FUMADOCS_TAB = re.compile(r'<Tab\s+value="([^"]+)"[^>]*>([\s\S]*?)</Tab>', re.IGNORECASE)
_TAB_START = re.compile(r'<Tabs?[\s>]', re.IGNORECASE)

EXAMPLE_INTRO_RANGE = (30, 300)
TAB_INTRO_RANGE = (50, 500)


def split_top_level(content: str) -> List[Tuple[Optional[str], str]]:
    """Split content at ``##`` headings outside code, as ``(heading, body)`` pairs.

    Text before the first ``##`` heading has a heading of ``None``.
    """
    sections: List[Tuple[Optional[str], List[str]]] = [(None, [])]

    for line, in_code in iter_fence_state(content):
        match = None if in_code else _TOP_LEVEL_HEADING.match(line)
        if match:
            sections.append((match.group(1), []))
        else:
            sections[-1][1].append(line)

    return [
        (heading, '\n'.join(lines).strip())
        for heading, lines in sections
        if heading is not None or '\n'.join(lines).strip()
    ]


def split_numbered_examples(body: str) -> Tuple[str, List[NumberedExample]]:
    """Split a section at ``### 1.``, ``### 2.`` ... headings outside code.

    Returns the text before the first example and the examples found.
    """
    intro: List[str] = []
    examples: List[Tuple[str, str, List[str]]] = []

    for line, in_code in iter_fence_state(body):
        match = None if in_code else _NUMBERED_HEADING.match(line)
        if match:
            examples.append((match.group(1), match.group(2).strip(), [line]))
        elif examples:
            examples[-1][2].append(line)
        else:
            intro.append(line)

    return '\n'.join(intro).strip(), [
        NumberedExample(
            number=number,
            title=title or f"Example {number}",
            content='\n'.join(lines).strip(),
        )
        for number, title, lines in examples
    ]


def _join_text(*parts: str) -> str:
    return "\n\n".join(part for part in parts if part)


def extract_tabs(body: str) -> List[TabContent]:
    """Extract non-empty Mintlify ``<Tab title>`` or Fumadocs ``<Tab value>`` panels.

    Text that follows a tab, up to the next tab, is kept on that tab as
    ``after``, so prose between separate tab groups is not lost.
    """
    if _MINTLIFY_TAB.search(body):
        pattern = _MINTLIFY_TAB
    elif _FUMADOCS_TABS.search(body):
        pattern = _FUMADOCS_TAB
    else:
        return []

    matches = list(pattern.finditer(body))
    tabs: List[TabContent] = []
    leading = ""

    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        content = final_cleanup(match.group(2))
        after = final_cleanup(body[match.end():end])

        if content:
            tabs.append(TabContent(title=match.group(1).strip(), content=_join_text(leading, content), after=after))
            leading = ""
        elif tabs:
            tabs[-1].after = _join_text(tabs[-1].after, after)
        else:
            leading = _join_text(leading, after)

    return tabs


def text_before_tabs(body: str) -> str:
    """Return the cleaned text before the first tab group."""
    start = _TAB_START.search(body)
    return final_cleanup(body[:start.start()] if start else body)


def unwrap_single_tab(body: str) -> str:
    body = _MINTLIFY_TAB.sub(lambda m: f"\n### {m.group(1)}\n\n{m.group(2).strip()}\n", body)
    return _FUMADOCS_TAB.sub(lambda m: f"\n### {m.group(1)}\n\n{m.group(2).strip()}\n", body)


def _in_range(text: str, bounds: Tuple[int, int]) -> bool:
    return bounds[0] < len(text) < bounds[1]


class MdxChunkStrategy(ChunkingStrategy):
    """Strategy for MDX documentation with Mintlify or Fumadocs components.

    Documents are split at ``##`` headings. Sections with numbered examples
    become one chunk per example, tab groups are combined or split per tab,
    and everything else is cleaned and split only when over the cap.
    """

    parser = "mdx"

    def config_for(self, dialect: Dialect) -> ChunkConfig:
        if dialect is Dialect.FUMADOCS and not self.config_overridden:
            return FUMADOCS_CHUNK_CONFIG
        return self.chunk_config

    def chunk_document(self, document: SourceDocument) -> List[DocChunk]:
        if document.frontmatter.get("openapi") and not document.content.strip():
            self.logger.debug(f"Skipping OpenAPI stub page {document.path}")
            return []

        content = normalize(document.content)
        dialect = detect_dialect(content)
        config = self.config_for(dialect)
        cleaned = clean_document(content, dialect)

        assembler = ChunkAssembler.for_document(document)

        for heading, body in split_top_level(cleaned):
            if not body:
                continue
            self._chunk_section(assembler, heading, body, config)

        return assembler.chunks

    def _chunk_section(self, assembler: ChunkAssembler, heading: Optional[str], body: str, config: ChunkConfig):
        section_heading = heading or INTRODUCTION
        header = f"## {heading}\n\n" if heading else ""

        intro, examples = split_numbered_examples(body)
        if len(examples) >= 2:
            self._chunk_examples(assembler, section_heading, header, final_cleanup(intro), examples, config)
            return

        tabs = extract_tabs(body)
        if len(tabs) >= 2:
            self._chunk_tabs(assembler, section_heading, header, body, tabs, config)
            return
        if len(tabs) == 1:
            body = unwrap_single_tab(body)

        if not final_cleanup(body):
            return
        self._add_split(assembler, section_heading, final_cleanup(header + body), config)

    def _chunk_examples(self, assembler: ChunkAssembler, section_heading: str, header: str,
                        intro: str, examples: List[NumberedExample], config: ChunkConfig):
        prefix = header
        if _in_range(intro, EXAMPLE_INTRO_RANGE):
            prefix += intro + "\n\n"
        elif len(intro) >= EXAMPLE_INTRO_RANGE[1]:
            self._add_split(assembler, section_heading, final_cleanup(header + intro), config)
        elif intro:
            self.logger.debug(f"Leaving out short example intro of '{section_heading}'")

        for example in examples:
            content = final_cleanup(prefix + example.content)
            self._add_split(assembler, f"{section_heading}: {example.title}", content, config, fallback=example.title)

    def _chunk_tabs(self, assembler: ChunkAssembler, section_heading: str, header: str,
                    body: str, tabs: List[TabContent], config: ChunkConfig):
        intro = text_before_tabs(body)

        parts = [header.strip()] if header else []
        if intro:
            parts.append(intro)
        for tab in tabs:
            parts.append(f"### {tab.title}\n\n{tab.content}")
            if tab.after:
                parts.append(tab.after)
        combined = "\n\n".join(parts)

        if len(combined) <= config.max_chunk_size:
            description = assembler.describe(intro or tabs[0].content, section_heading)
            assembler.add(section_heading, combined, description=description)
            return

        if _in_range(intro, TAB_INTRO_RANGE):
            shared_intro = intro + "\n\n"
        else:
            shared_intro = ""
            if len(intro) >= TAB_INTRO_RANGE[1]:
                self._add_split(assembler, section_heading, final_cleanup(header + intro), config)
            elif intro:
                self.logger.debug(f"Leaving out short tab intro of '{section_heading}'")

        for tab in tabs:
            content = f"{header}### {tab.title}\n\n{shared_intro}{tab.content}"
            if tab.after:
                content += "\n\n" + tab.after
            self._add_split(assembler, f"{section_heading} - {tab.title}", content, config, fallback=tab.title)


# =============================================================================
# MARKDOWN
# =============================================================================

VERSION_HEADING = re.compile(r'^##?\s*\[?v?(\d+\.\d+\.\d+[^\]\n]*)\]?')
_VERSION_PREFIX = re.compile(r'^\[?v?(\d+\.\d+\.\d+)')

MIGRATION_MIN_CHUNK_SIZE = 100

# READMEs keep the category of their source directory
ROLE_CATEGORIES = {
    "changelog": "changelog",
    "migration": "migration",
}


@dataclass
class VersionEntry:
    version: str
    content: str


def detect_markdown_role(file_name: str) -> str:
    """Classify a markdown file as ``changelog``, ``migration`` or ``readme``."""
    lower_name = os.path.basename(file_name).lower()
    if "changelog" in lower_name:
        return "changelog"
    if "migration" in lower_name or "upgrade" in lower_name:
        return "migration"
    return "readme"


def build_heading(section: FlatSection, context_name: str) -> str:
    """Heading from the nearest meaningful breadcrumb and the section heading."""
    meaningful = [
        crumb for crumb in section.breadcrumbs
        if crumb and crumb not in (INTRODUCTION, DOCUMENTATION) and len(crumb) > 3
    ]

    parts = []
    if meaningful:
        parts.append(clean_heading(meaningful[-1]))

    if section.heading and section.heading != INTRODUCTION:
        version = _VERSION_PREFIX.match(section.heading)
        parts.append(f"v{version.group(1)}" if version else clean_heading(section.heading))

    if not parts:
        return f"{context_name} Documentation"
    return ": ".join(parts)


def split_versions(content: str) -> Tuple[str, List[VersionEntry]]:
    """Split a changelog at version headings outside code.

    Returns the preface before the first version and one entry per version,
    each entry including its heading line.
    """
    preface: List[str] = []
    entries: List[Tuple[str, List[str]]] = []

    for line, in_code in iter_fence_state(content):
        match = None if in_code else VERSION_HEADING.match(line)
        if match:
            entries.append((match.group(1).strip(), [line]))
        elif entries:
            entries[-1][1].append(line)
        else:
            preface.append(line)

    return '\n'.join(preface).strip(), [
        VersionEntry(version=version, content='\n'.join(lines).strip())
        for version, lines in entries
    ]


class MarkdownChunkStrategy(ChunkingStrategy):
    """Strategy for plain markdown: READMEs, changelogs and migration guides."""

    parser = "markdown"

    def chunk_document(self, document: SourceDocument) -> List[DocChunk]:
        role = detect_markdown_role(document.file_name or document.path)
        content = normalize(document.content)

        assembler = ChunkAssembler.for_document(document)
        assembler.category = ROLE_CATEGORIES.get(role, document.category)

        if role == "changelog":
            self._chunk_changelog(assembler, document, content)
        elif role == "migration":
            config = self.chunk_config.with_min_chunk_size(MIGRATION_MIN_CHUNK_SIZE)
            self._chunk_tree(assembler, document, content, config)
        else:
            self._chunk_tree(assembler, document, content, self.chunk_config)

        return assembler.chunks

    def _chunk_tree(self, assembler: ChunkAssembler, document: SourceDocument, content: str, config: ChunkConfig):
        tree = parse_into_tree(content)
        for section in merge_hierarchical_sections(tree, config):
            assembler.add(build_heading(section, document.category), section.content)

    def _chunk_changelog(self, assembler: ChunkAssembler, document: SourceDocument, content: str):
        preface, entries = split_versions(content)
        if not entries:
            self.logger.debug(f"No version headings in {document.path}, chunking as a README")
            self._chunk_tree(assembler, document, content, self.chunk_config)
            return

        # Drop the document title line from the preface
        preface = re.sub(r'^#\s+.*(?:\n|$)', '', preface).strip()
        if preface:
            self._add_split(assembler, document.title, preface, self.chunk_config)

        config = self.chunk_config
        batch: List[VersionEntry] = []
        batch_size = 0

        for entry in entries:
            size = len(entry.content)

            if size > config.max_chunk_size:
                self._flush_versions(assembler, batch)
                batch, batch_size = [], 0
                pieces = split_content(entry.content, config)
                for number, piece in enumerate(pieces, 1):
                    heading = f"Version {entry.version}"
                    if len(pieces) > 1:
                        heading += f" (Part {number})"
                    assembler.add(heading, piece, version=entry.version)
            elif size >= config.min_chunk_size:
                self._flush_versions(assembler, batch)
                batch, batch_size = [], 0
                assembler.add(f"Version {entry.version}", entry.content, version=entry.version)
            elif batch_size + size + (2 if batch else 0) <= config.ideal_chunk_size:
                batch_size += size + (2 if batch else 0)
                batch.append(entry)
            else:
                self._flush_versions(assembler, batch)
                batch, batch_size = [entry], size

        self._flush_versions(assembler, batch)

    def _flush_versions(self, assembler: ChunkAssembler, batch: List[VersionEntry]):
        if not batch:
            return

        if len(batch) == 1:
            heading = f"Version {batch[0].version}"
        else:
            # Changelogs list newest first
            heading = f"Versions {batch[-1].version} - {batch[0].version}"

        assembler.add(
            heading,
            "\n\n".join(entry.content for entry in batch),
            version=batch[0].version,
        )
