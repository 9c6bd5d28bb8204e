"""
Text normalization for raw documentation files.

Everything here is a pure string transform. Fenced code blocks are tracked
line by line so that normalization never touches example code.
"""

import re
from typing import Any, Callable, Dict, Iterator, List, Tuple

import yaml

from ..utils.logging import get_logger

logger = get_logger(__name__)

_FENCE_OPEN = re.compile(r'^[ \t]*(`{3,}|~{3,})')
_FENCE_CLOSE = re.compile(r'^[ \t]*(`{3,}|~{3,})[ \t]*$')

_FRONTMATTER = re.compile(r'\A---[ \t]*\n(.*?\n)?---[ \t]*(?:\n+|\Z)', re.DOTALL)

_IMPORT_LINE = re.compile(r'^import\s')
_EXPORT_LINE = re.compile(r'^export\s')


# =============================================================================
# CODE FENCE TRACKING
# =============================================================================

def iter_fence_state(text: str) -> Iterator[Tuple[str, bool]]:
    """Yield ``(line, in_code)`` for every line; fence lines count as code."""
    fence = None
    for line in text.split('\n'):
        if fence is None:
            match = _FENCE_OPEN.match(line)
            if match:
                fence = match.group(1)
                yield line, True
            else:
                yield line, False
        else:
            match = _FENCE_CLOSE.match(line)
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
                fence = None
            yield line, True


def split_code_segments(text: str) -> List[Tuple[bool, str]]:
    """Split text into alternating ``(is_code, segment)`` runs.

    A code segment is one complete fenced block, fences included. An
    unterminated fence runs to the end of the text.
    """
    segments: List[Tuple[bool, str]] = []
    buffer: List[str] = []
    buffer_is_code = False
    fence = None

    def flush():
        if buffer:
            segments.append((buffer_is_code, '\n'.join(buffer)))

    for line in text.split('\n'):
        if fence is None:
            match = _FENCE_OPEN.match(line)
            if match:
                flush()
                buffer = [line]
                buffer_is_code = True
                fence = match.group(1)
            else:
                if buffer_is_code:
                    flush()
                    buffer = []
                    buffer_is_code = False
                buffer.append(line)
        else:
            buffer.append(line)
            match = _FENCE_CLOSE.match(line)
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
                fence = None
                flush()
                buffer = []
                buffer_is_code = False

    flush()
    return segments


def apply_outside_code(text: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to the prose between fenced code blocks only."""
    parts = []
    for is_code, segment in split_code_segments(text):
        parts.append(segment if is_code else transform(segment))
    return '\n'.join(parts)


# =============================================================================
# NORMALIZATION STEPS
# =============================================================================

def normalize_line_endings(content: str) -> str:
    """Normalize line endings to LF."""
    return content.replace('\r\n', '\n').replace('\r', '\n')


def remove_frontmatter(content: str) -> str:
    """Remove a well-formed frontmatter block at the very start of the text."""
    return _FRONTMATTER.sub('', content, count=1)


def extract_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split text into its parsed frontmatter mapping and the remaining body."""
    content = normalize_line_endings(content)
    match = _FRONTMATTER.match(content)
    if not match:
        return {}, content

    body = content[match.end():]
    try:
        data = yaml.safe_load(match.group(1) or '')
    except yaml.YAMLError as e:
        logger.debug(f"Ignoring unparseable frontmatter: {e}")
        return {}, body

    return (data if isinstance(data, dict) else {}), body


def _bracket_balance(line: str) -> int:
    opens = line.count('{') + line.count('(') + line.count('[')
    closes = line.count('}') + line.count(')') + line.count(']')
    return opens - closes


def remove_imports_exports(content: str) -> str:
    """Remove import/export statements that sit outside fenced code blocks."""
    kept: List[str] = []
    depth = 0

    for line, in_code in iter_fence_state(content):
        if in_code:
            kept.append(line)
            continue

        # Continuation of a multi-line statement
        if depth > 0:
            depth += _bracket_balance(line)
            continue

        if _IMPORT_LINE.match(line) or _EXPORT_LINE.match(line):
            depth = max(_bracket_balance(line), 0)
            continue

        kept.append(line)

    return '\n'.join(kept)


def _strip_embeds(segment: str) -> str:
    # YouTube style embeds wrapped in an inline-styled div
    segment = re.sub(r'<div\s+style=\{\{[^}]*\}\}[^>]*>[\s\S]*?</div>', '', segment, flags=re.IGNORECASE)
    segment = re.sub(r'<iframe[\s\S]*?/>', '', segment, flags=re.IGNORECASE)
    segment = re.sub(r'<iframe[\s\S]*?</iframe>', '', segment, flags=re.IGNORECASE)
    return segment


def remove_html_embeds(content: str) -> str:
    """Remove iframes and inline-styled embed wrappers."""
    return apply_outside_code(content, _strip_embeds)


def normalize_whitespace(content: str) -> str:
    """Strip trailing whitespace and collapse runs of blank lines."""
    content = re.sub(r'[ \t]+$', '', content, flags=re.MULTILINE)
    content = re.sub(r'\n{3,}', '\n\n', content)
    return content.strip()


def normalize(content: str) -> str:
    """Run the full normalization pipeline over raw document text."""
    content = normalize_line_endings(content)
    content = remove_frontmatter(content)
    content = remove_imports_exports(content)
    content = remove_html_embeds(content)
    return normalize_whitespace(content)
