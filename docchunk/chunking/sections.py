"""
Section tree building and the merge/split engine.

A cleaned document is parsed into a tree of heading sections, then walked
bottom-up: small siblings are batched together, large subtrees are broken
apart, and anything still over the size cap is split between code blocks
and paragraphs. Fenced code blocks are never cut.
"""

import re
from typing import List

from ..config.settings import ChunkConfig, DEFAULT_CHUNK_CONFIG
from ..utils.logging import get_logger
from .models import FlatSection, Section
from .normalizer import iter_fence_state, split_code_segments

logger = get_logger(__name__)

MAX_SECTION_DEPTH = 10

INTRODUCTION = "Introduction"
DOCUMENTATION = "Documentation"

# Preambles this short before the first heading are discarded
INTRO_MIN_LENGTH = 50

_HEADING = re.compile(r'^(#{1,6})\s+(.+?)\s*$')
_CLOSING_HASHES = re.compile(r'\s+#+$')
_FENCE = re.compile(r'^([ \t]*)(`{3,}|~{3,})')
_PARAGRAPH_BREAK = re.compile(r'\n[ \t]*\n')

_JOINER = "\n\n"


# =============================================================================
# LINE HELPERS
# =============================================================================

def _is_heading_line(text: str) -> bool:
    return '\n' not in text and bool(_HEADING.match(text))


# =============================================================================
# TREE BUILDING
# =============================================================================

def parse_into_tree(content: str) -> List[Section]:
    """Parse markdown into a list of root sections nested by heading level.

    Text before the first heading becomes an ``Introduction`` section when it
    is longer than ``INTRO_MIN_LENGTH``; text without any heading becomes a
    single ``Documentation`` section. Lines inside fenced code blocks are
    never treated as headings.
    """
    roots: List[Section] = []
    stack: List[Section] = []
    intro_lines: List[str] = []
    current_lines: List[str] = []
    saw_heading = False

    for line, in_code in iter_fence_state(content):
        match = None if in_code else _HEADING.match(line)
        if match is None:
            if saw_heading:
                current_lines.append(line)
            else:
                intro_lines.append(line)
            continue

        if saw_heading:
            stack[-1].content = '\n'.join(current_lines).strip()
        else:
            intro = '\n'.join(intro_lines).strip()
            if len(intro) > INTRO_MIN_LENGTH:
                roots.append(Section(heading=INTRODUCTION, level=0, content=intro))
            saw_heading = True

        section = Section(
            heading=_CLOSING_HASHES.sub('', match.group(2)).strip(),
            level=len(match.group(1)),
        )

        # Pop until the top of the stack is a strictly lower level
        while stack and stack[-1].level >= section.level:
            stack.pop()

        if stack:
            stack[-1].children.append(section)
        else:
            roots.append(section)

        stack.append(section)
        current_lines = []

    if saw_heading:
        stack[-1].content = '\n'.join(current_lines).strip()
    else:
        text = '\n'.join(intro_lines).strip()
        if text:
            roots.append(Section(heading=DOCUMENTATION, level=0, content=text))

    return roots


def flatten_section(section: Section) -> str:
    """Render a section and all its descendants back into markdown."""
    parts = []

    if section.level > 0 and section.heading:
        parts.append(f"{'#' * min(section.level, 6)} {section.heading}")

    if section.content:
        parts.append(section.content)

    for child in section.children:
        parts.append(flatten_section(child))

    return _JOINER.join(parts)


def get_section_size(section: Section) -> int:
    """Total size of a section and its descendants, heading markers included."""
    return len(flatten_section(section))


# =============================================================================
# CONTENT SPLITTING
# =============================================================================

def _hard_split(paragraph: str, max_size: int) -> List[str]:
    """Split an over-long paragraph at whitespace, cutting words only if unavoidable."""
    pieces = []
    current = ""

    for token in re.findall(r'\S+\s*', paragraph):
        if current and len(current) + len(token.rstrip()) > max_size:
            pieces.append(current.rstrip())
            current = ""
        while len(token.rstrip()) > max_size:
            pieces.append(token[:max_size])
            token = token[max_size:]
        current += token

    if current.strip():
        pieces.append(current.rstrip())
    return pieces


def _split_code_block(block: str, max_size: int) -> List[str]:
    """Split a code block at line boundaries, re-fencing every piece."""
    lines = block.split('\n')
    match = _FENCE.match(lines[0])
    if match is None or len(lines) < 3:
        return [block]

    opening = lines[0]
    closing = match.group(1) + match.group(2)
    body = lines[1:-1] if lines[-1].strip().startswith(match.group(2)) else lines[1:]
    budget = max_size - len(opening) - len(closing) - 2

    if budget <= 0:
        return [block]

    pieces = []
    group: List[str] = []
    group_size = 0
    for line in body:
        if group and group_size + len(line) + 1 > budget:
            pieces.append('\n'.join([opening] + group + [closing]))
            group = []
            group_size = 0
        group.append(line)
        group_size += len(line) + 1

    if group:
        pieces.append('\n'.join([opening] + group + [closing]))
    return pieces


def split_into_units(content: str, config: ChunkConfig) -> List[str]:
    """Break content into the atomic units that splitting may never cut.

    Units are whole code blocks and paragraphs; paragraphs longer than the
    cap are split at whitespace. A lone heading line is attached to the unit
    that follows it when the pair still fits.
    """
    max_size = config.max_chunk_size
    units: List[str] = []

    for is_code, segment in split_code_segments(content):
        if is_code:
            block = segment.strip('\n')
            if not block.strip():
                continue
            if len(block) > max_size and not config.keep_oversized_code_blocks:
                units.extend(_split_code_block(block, max_size))
            else:
                units.append(block)
            continue

        for paragraph in _PARAGRAPH_BREAK.split(segment):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) > max_size:
                units.extend(_hard_split(paragraph, max_size))
            else:
                units.append(paragraph)

    glued: List[str] = []
    pending = None
    for unit in units:
        if pending is not None:
            combined = pending + _JOINER + unit
            if len(combined) <= max_size:
                glued.append(combined)
                pending = None
                continue
            glued.append(pending)
            pending = None
        if _is_heading_line(unit):
            pending = unit
        else:
            glued.append(unit)

    if pending is not None:
        glued.append(pending)
    return glued


def _piece_size(piece: List[str]) -> int:
    return sum(len(unit) for unit in piece) + len(_JOINER) * (len(piece) - 1)


def pack_units(units: List[str], config: ChunkConfig) -> List[List[str]]:
    """Greedily pack units into pieces no larger than ``max_chunk_size``.

    Only a unit that alone exceeds the cap produces an oversized piece. The
    last piece borrows trailing units from the one before it so that it
    reaches ``min_chunk_size`` where possible.
    """
    max_size = config.max_chunk_size
    min_size = config.min_chunk_size
    pieces: List[List[str]] = []
    current: List[str] = []
    current_size = 0

    for unit in units:
        added = len(unit) + (len(_JOINER) if current else 0)
        if current and current_size + added > max_size:
            pieces.append(current)
            current = [unit]
            current_size = len(unit)
        else:
            current.append(unit)
            current_size += added

    if current:
        pieces.append(current)

    if len(pieces) > 1:
        previous, last = pieces[-2], pieces[-1]
        while (
            len(previous) > 1
            and _piece_size(last) < min_size
            and _piece_size(last) + len(_JOINER) + len(previous[-1]) <= max_size
            and _piece_size(previous[:-1]) >= min_size
        ):
            last.insert(0, previous.pop())

    return pieces


def split_content(content: str, config: ChunkConfig = DEFAULT_CHUNK_CONFIG) -> List[str]:
    """Split content into pieces within ``max_chunk_size``.

    Cuts fall between code blocks first, then between paragraphs, and only
    inside a paragraph when one paragraph alone is too large.
    """
    content = content.strip()
    if not content:
        return []
    if len(content) <= config.max_chunk_size:
        return [content]

    pieces = pack_units(split_into_units(content, config), config)
    return [_JOINER.join(piece) for piece in pieces]


def split_large_flat_section(section: FlatSection, config: ChunkConfig = DEFAULT_CHUNK_CONFIG) -> List[FlatSection]:
    """Split a FlatSection that exceeds the cap into continued pieces."""
    if len(section.content) <= config.max_chunk_size:
        return [section]

    result = []
    for index, piece in enumerate(split_content(section.content, config)):
        heading = section.heading if index == 0 else f"{section.heading} (continued {index + 1})"
        result.append(FlatSection(
            heading=heading,
            level=section.level,
            content=piece,
            breadcrumbs=list(section.breadcrumbs),
        ))
    return result


# =============================================================================
# HIERARCHICAL MERGING
# =============================================================================

class _SectionMerger:
    """Walks a section tree and collects FlatSections in document order."""

    def __init__(self, config: ChunkConfig):
        self.config = config
        self.result: List[FlatSection] = []

    def emit(self, heading: str, level: int, content: str, breadcrumbs: List[str]):
        content = content.strip()
        if content:
            self.result.append(FlatSection(
                heading=heading,
                level=level,
                content=content,
                breadcrumbs=list(breadcrumbs),
            ))

    def process(self, section: Section, breadcrumbs: List[str], depth: int):
        config = self.config
        own_size = len(section.content)
        total_size = get_section_size(section)

        if depth >= MAX_SECTION_DEPTH:
            self.emit(section.heading, section.level, flatten_section(section), breadcrumbs)
            return

        # Leaf that stands on its own
        if not section.children and own_size >= config.min_chunk_size:
            self.emit(section.heading, section.level, section.content, breadcrumbs)
            return

        # Whole subtree fits
        if config.min_chunk_size <= total_size <= config.max_chunk_size:
            self.emit(section.heading, section.level, flatten_section(section), breadcrumbs)
            return

        # Too large: own content alone, then the children
        if total_size > config.max_chunk_size and section.children:
            if own_size >= config.min_chunk_size / 2:
                self.emit(section.heading, section.level, section.content, breadcrumbs)
            elif section.content.strip():
                logger.debug(f"Dropping {own_size} chars of intro text under '{section.heading}'")

            child_breadcrumbs = list(breadcrumbs)
            if section.level > 0 and section.heading:
                child_breadcrumbs.append(section.heading)
            self.process_siblings(section.children, child_breadcrumbs, depth + 1)
            return

        # Undersized: keep rather than lose it
        self.emit(section.heading, section.level, flatten_section(section), breadcrumbs)

    def process_siblings(self, sections: List[Section], breadcrumbs: List[str], depth: int):
        """Greedy batching of consecutive small siblings up to ``ideal_chunk_size``."""
        batch: List[Section] = []
        batch_size = 0

        for section in sections:
            size = get_section_size(section)

            if size >= self.config.min_chunk_size:
                self.flush(batch, breadcrumbs)
                batch, batch_size = [], 0
                self.process(section, breadcrumbs, depth)
            elif batch_size + size + (len(_JOINER) if batch else 0) <= self.config.ideal_chunk_size:
                batch_size += size + (len(_JOINER) if batch else 0)
                batch.append(section)
            else:
                self.flush(batch, breadcrumbs)
                batch, batch_size = [section], size

        self.flush(batch, breadcrumbs)

    def flush(self, batch: List[Section], breadcrumbs: List[str]):
        if not batch:
            return

        if len(batch) == 1:
            section = batch[0]
            self.emit(section.heading, section.level, flatten_section(section), breadcrumbs)
            return

        heading = " / ".join(
            section.heading for section in batch
            if section.heading and section.heading != INTRODUCTION
        ) or "Overview"

        self.emit(
            heading,
            min(section.level for section in batch),
            _JOINER.join(flatten_section(section) for section in batch),
            breadcrumbs,
        )


def merge_hierarchical_sections(tree: List[Section], config: ChunkConfig = DEFAULT_CHUNK_CONFIG) -> List[FlatSection]:
    """Merge and split a section tree into FlatSections with breadcrumbs.

    Root sections are batched like the children of any node. Every result
    is at most ``max_chunk_size`` unless a single code block exceeds it.
    """
    merger = _SectionMerger(config)
    merger.process_siblings(tree, [], 0)

    result: List[FlatSection] = []
    for section in merger.result:
        result.extend(split_large_flat_section(section, config))
    return result
