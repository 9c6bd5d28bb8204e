"""
Component cleaning for MDX documentation dialects.

Each dialect maps to an ordered pipeline of regex transforms that turn
documentation components into plain markdown. ``<Tab>`` elements are left
in place so the MDX strategy can detect tab groups; ``final_cleanup`` strips
whatever JSX is left once a chunk has been cut.
"""

import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .normalizer import apply_outside_code, normalize_line_endings, normalize_whitespace, split_code_segments

_FLAGS = re.IGNORECASE


class Dialect(Enum):
    """MDX component dialects understood by the cleaner."""
    MINTLIFY = "mintlify"
    FUMADOCS = "fumadocs"
    PLAIN = "plain"


_FUMADOCS_MARKERS = re.compile(r'items=\{\[|<Callout\b')
_COMPONENT_TAG = re.compile(r'</?[A-Z][a-zA-Z]*(?:[\s/>]|$)')


def _prose_only(text: str) -> str:
    return '\n'.join(segment for is_code, segment in split_code_segments(text) if not is_code)


def detect_dialect(text: str) -> Dialect:
    """Classify a document by the components it uses outside code blocks."""
    prose = _prose_only(text)
    if _FUMADOCS_MARKERS.search(prose):
        return Dialect.FUMADOCS
    if _COMPONENT_TAG.search(prose):
        return Dialect.MINTLIFY
    return Dialect.PLAIN


# =============================================================================
# MINTLIFY COMPONENTS
# =============================================================================

_WRAPPERS = "Frame|Expandable|ParamField|ResponseField|CodeGroup"


def remove_wrapper_components(content: str) -> str:
    """Unwrap layout components, keeping what they contain."""
    content = re.sub(rf'<({_WRAPPERS})\b[^>]*>', '', content, flags=_FLAGS)
    content = re.sub(rf'</({_WRAPPERS})>', '', content, flags=_FLAGS)
    # Tabs wrapper only; the <Tab> children stay for tab detection
    content = re.sub(r'<Tabs\b[^>]*>', '', content)
    content = re.sub(r'</Tabs>', '', content)
    return content


def convert_accordions(content: str) -> str:
    """Turn accordions into ``####`` subheadings followed by their body."""
    content = re.sub(r'<Accordion\s+title="([^"]+)"[^>]*>', r'\n#### \1\n', content, flags=_FLAGS)
    content = re.sub(r'</Accordion>', '', content, flags=_FLAGS)
    content = re.sub(r'</?AccordionGroup[^>]*>', '', content, flags=_FLAGS)
    return content


def remove_cards(content: str) -> str:
    """Drop navigational cards."""
    content = re.sub(r'<CardGroup\b[^>]*>[\s\S]*?</CardGroup>', '', content, flags=_FLAGS)
    content = re.sub(r'<Card\b[^>]*/>', '', content)
    content = re.sub(r'<Card\b[^>]*>[\s\S]*?</Card>', '', content)
    return content


def convert_callouts(content: str) -> str:
    """Turn Note/Warning/Tip/Info/Check callouts into labelled blockquotes."""
    def replace(match):
        label = match.group(1).capitalize()
        return f"\n> **{label}:** {match.group(2).strip()}\n"

    return re.sub(r'<(Note|Warning|Tip|Info|Check)\b[^>]*>([\s\S]*?)</\1>', replace, content, flags=_FLAGS)


def convert_steps(content: str) -> str:
    """Turn a Steps group into numbered bold step titles."""
    def number_group(match):
        counter = 0

        def title(step):
            nonlocal counter
            counter += 1
            return f"\n**{counter}. {step.group(1)}**\n"

        body = re.sub(r'<Step\s+title="([^"]+)"[^>]*>', title, match.group(1), flags=_FLAGS)
        body = re.sub(r'<Step\b[^>]*>', '', body)
        return re.sub(r'</Step>', '', body)

    content = re.sub(r'<Steps\b[^>]*>([\s\S]*?)</Steps>', number_group, content)
    # Unpaired leftovers
    content = re.sub(r'</?Steps?\b[^>]*>', '', content)
    return content


# =============================================================================
# FUMADOCS COMPONENTS
# =============================================================================

def convert_fumadocs_callouts(content: str) -> str:
    """Turn Callout components into blockquotes, labelled when titled."""
    content = re.sub(
        r'<Callout\s+[^>]*?title="([^"]+)"[^>]*>([\s\S]*?)</Callout>',
        lambda m: f"\n> **{m.group(1)}:** {m.group(2).strip()}\n",
        content,
    )
    content = re.sub(
        r'<Callout\b[^>]*>([\s\S]*?)</Callout>',
        lambda m: f"\n> {m.group(1).strip()}\n",
        content,
    )
    return content


def _card_bullet(match) -> str:
    title, body = match.group(1), match.group(2).strip()
    return f"- **{title}**: {body}" if body else f"- **{title}**"


def convert_fumadocs_cards(content: str) -> str:
    """Turn Card components into bullet points."""
    content = re.sub(r'</?Cards\b[^>]*>', '', content)
    content = re.sub(r'<Card\s+[^>]*?title="([^"]+)"[^>]*?(?<!/)>([\s\S]*?)</Card>', _card_bullet, content)
    content = re.sub(r'<Card\s+[^>]*?title="([^"]+)"[^>]*/>', r'- **\1**', content)
    return content


def remove_component_previews(content: str) -> str:
    """Drop live component previews and demos."""
    content = re.sub(r'<PreviewComponents\b[^>]*>[\s\S]*?</PreviewComponents>', '', content, flags=_FLAGS)
    content = re.sub(r'<include\b[^>]*>[\s\S]*?</include>', '[Code example - see documentation]', content)
    content = re.sub(r'<[A-Z][a-zA-Z]*Demo\b[^>]*/>', '', content)
    return content


# =============================================================================
# PIPELINES
# =============================================================================

CLEANING_PIPELINES: Dict[Dialect, List[Callable[[str], str]]] = {
    Dialect.MINTLIFY: [
        remove_wrapper_components,
        convert_accordions,
        remove_cards,
        convert_callouts,
        convert_steps,
    ],
    Dialect.FUMADOCS: [
        convert_fumadocs_callouts,
        convert_fumadocs_cards,
        remove_component_previews,
        convert_steps,
    ],
    Dialect.PLAIN: [],
}


_CODE_PLACEHOLDER = re.compile(r'\x00CODE(\d+)\x00')


def mask_code_blocks(content: str) -> Tuple[str, List[str]]:
    """Replace every fenced code block with a one-line placeholder.

    Components that wrap code (steps, callouts) still match as a whole,
    while the code itself is never rewritten.
    """
    blocks: List[str] = []
    parts = []
    for is_code, segment in split_code_segments(content):
        if is_code:
            parts.append(f"\x00CODE{len(blocks)}\x00")
            blocks.append(segment)
        else:
            parts.append(segment)
    return '\n'.join(parts), blocks


def restore_code_blocks(content: str, blocks: List[str]) -> str:
    return _CODE_PLACEHOLDER.sub(lambda match: blocks[int(match.group(1))], content)


def clean_document(content: str, dialect: Optional[Dialect] = None) -> str:
    """Run the component pipeline for a dialect (detected when not given).

    Fenced code blocks pass through unchanged.
    """
    if dialect is None:
        dialect = detect_dialect(content)

    masked, blocks = mask_code_blocks(content)
    for step in CLEANING_PIPELINES[dialect]:
        masked = step(masked)
    return restore_code_blocks(normalize_whitespace(masked), blocks)


def _strip_jsx(segment: str) -> str:
    segment = re.sub(r'<[A-Z][a-zA-Z]*[^>]*/>', '', segment)
    segment = re.sub(r'<[A-Z][a-zA-Z]*[^>]*>', '', segment)
    segment = re.sub(r'</[A-Z][a-zA-Z]*>', '', segment)
    return segment


def final_cleanup(content: str) -> str:
    """Strip remaining component tags outside code and tidy whitespace."""
    content = normalize_line_endings(content)
    content = apply_outside_code(content, _strip_jsx)
    return normalize_whitespace(content)
