"""
Tests for section tree building and the merge/split engine.
"""

import pytest

from docchunk.chunking.models import FlatSection, Section
from docchunk.chunking.sections import (
    DOCUMENTATION,
    INTRODUCTION,
    flatten_section,
    get_section_size,
    merge_hierarchical_sections,
    pack_units,
    parse_into_tree,
    split_content,
    split_into_units,
    split_large_flat_section,
)
from docchunk.config.settings import ChunkConfig


def paragraph(index: int, length: int) -> str:
    """Build a single-word paragraph of an exact length."""
    head = f"P{index:02d}-"
    return head + "a" * (length - len(head))


def paragraphs(count: int, length: int) -> str:
    return "\n\n".join(paragraph(i, length) for i in range(count))


class TestParseIntoTree:
    """Test cases for heading tree parsing."""

    def test_nesting_by_level(self):
        """Test that headings nest under the closest lower level."""
        tree = parse_into_tree("# Guide\nintro\n## Install\nsteps\n### Linux\napt\n## Usage\nrun")

        assert len(tree) == 1
        guide = tree[0]
        assert guide.heading == "Guide"
        assert guide.content == "intro"
        assert [child.heading for child in guide.children] == ["Install", "Usage"]
        assert guide.children[0].children[0].heading == "Linux"
        assert guide.children[0].children[0].level == 3

    def test_skipped_levels(self):
        """Test that a jump from # to ### still nests."""
        tree = parse_into_tree("# A\n### C\n## B")

        assert [child.heading for child in tree[0].children] == ["C", "B"]

    def test_long_intro_kept(self):
        """Test that a long preamble becomes an Introduction section."""
        intro = "This preamble explains what the whole page is about in detail."
        tree = parse_into_tree(f"{intro}\n\n# Title\nbody")

        assert tree[0].heading == INTRODUCTION
        assert tree[0].level == 0
        assert tree[0].content == intro

    def test_short_intro_dropped(self):
        """Test that a short preamble is discarded."""
        tree = parse_into_tree("Short intro.\n\n# Title\nbody")

        assert [section.heading for section in tree] == ["Title"]

    def test_no_headings(self):
        """Test that heading-free text becomes one Documentation section."""
        tree = parse_into_tree("Just some text.")

        assert len(tree) == 1
        assert tree[0].heading == DOCUMENTATION
        assert tree[0].content == "Just some text."

    def test_empty_content(self):
        """Test that empty text yields no sections."""
        assert parse_into_tree("") == []
        assert parse_into_tree("\n\n  \n") == []

    def test_headings_in_code_ignored(self):
        """Test that comment lines inside code blocks are not headings."""
        content = "## Setup\n\n```bash\n# install deps\nnpm install\n```\n\nDone."
        tree = parse_into_tree(content)

        assert len(tree) == 1
        assert tree[0].children == []
        assert "# install deps" in tree[0].content

    def test_closing_hashes_stripped(self):
        """Test that ATX closing hashes are removed from headings."""
        tree = parse_into_tree("## Options ##\ntext")

        assert tree[0].heading == "Options"

    def test_flatten_round_trip(self):
        """Test that flattening renders headings and nested content."""
        section = Section(heading="A", level=2, content="body", children=[
            Section(heading="B", level=3, content="child"),
        ])

        assert flatten_section(section) == "## A\n\nbody\n\n### B\n\nchild"
        assert get_section_size(section) == len("## A\n\nbody\n\n### B\n\nchild")

    def test_flatten_sentinel_has_no_heading(self):
        """Test that level 0 sections render without a heading line."""
        assert flatten_section(Section(heading=INTRODUCTION, level=0, content="text")) == "text"


class TestSplitContent:
    """Test cases for size-bounded content splitting."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = ChunkConfig(max_chunk_size=2000, min_chunk_size=250, ideal_chunk_size=1000)

    def test_small_content_unchanged(self):
        """Test that content under the cap is returned whole."""
        assert split_content("  hello  ", self.config) == ["hello"]
        assert split_content("   ", self.config) == []

    def test_large_section_split(self):
        """Test that a ~3000 char section splits into bounded pieces."""
        content = paragraphs(15, 198)
        assert len(content) > 2900

        pieces = split_content(content, self.config)

        assert len(pieces) >= 2
        assert all(len(piece) <= 2000 for piece in pieces)
        assert all(len(piece) >= 250 for piece in pieces[:-1])

    def test_tail_rebalanced(self):
        """Test that an undersized last piece borrows from the previous one."""
        units = [paragraph(i, 198) for i in range(21)]

        pieces = pack_units(units, self.config)
        sizes = [len("\n\n".join(piece)) for piece in pieces]

        assert len(pieces) == 3
        assert sizes == [1998, 1798, 398]
        assert [unit for piece in pieces for unit in piece] == units

    def test_code_block_never_cut(self):
        """Test that a code block is kept in a single piece."""
        code = "```python\n" + "\n".join(f"print({i})" for i in range(60)) + "\n```"
        content = paragraphs(8, 198) + "\n\n" + code + "\n\n" + paragraphs(8, 198)

        pieces = split_content(content, self.config)

        assert sum(code in piece for piece in pieces) == 1
        assert all(piece.count("```") % 2 == 0 for piece in pieces)

    def test_oversized_code_block_kept_whole(self):
        """Test that a code block larger than the cap is emitted whole."""
        code = "```\n" + "\n".join("x = 1" * 10 for _ in range(60)) + "\n```"
        assert len(code) > 2000

        pieces = split_content("Intro text.\n\n" + code, self.config)

        assert code in pieces

    def test_oversized_code_block_split_when_disabled(self):
        """Test re-fenced splitting of huge code blocks when configured."""
        config = ChunkConfig(max_chunk_size=200, min_chunk_size=20, ideal_chunk_size=100,
                             keep_oversized_code_blocks=False)
        code = "```python\n" + "\n".join(f"value_{i} = {i}" for i in range(40)) + "\n```"

        pieces = split_content(code, config)

        assert len(pieces) > 1
        for piece in pieces:
            assert len(piece) <= 200
            assert piece.startswith("```python\n")
            assert piece.endswith("\n```")

    def test_long_paragraph_hard_split(self):
        """Test that a paragraph over the cap is split at whitespace."""
        words = " ".join(f"word{i}" for i in range(800))

        pieces = split_content(words, self.config)

        assert len(pieces) >= 2
        assert all(len(piece) <= 2000 for piece in pieces)
        assert " ".join(pieces).split() == words.split()

    def test_heading_glued_to_next_unit(self):
        """Test that a lone heading stays with the unit after it."""
        units = split_into_units("### Title\n\nBody text here.", self.config)

        assert units == ["### Title\n\nBody text here."]


class TestMergeHierarchicalSections:
    """Test cases for hierarchical merging."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = ChunkConfig(max_chunk_size=1800, min_chunk_size=250, ideal_chunk_size=800)

    def test_small_siblings_merged(self):
        """Test that two small sibling sections become one chunk."""
        content = (
            "## HeadingA\n\n" + "Alpha text that is short and sweet here." + "\n\n"
            "## HeadingB\n\n" + "Beta text that is also rather short too."
        )
        tree = parse_into_tree(content)
        assert all(get_section_size(section) < 60 for section in tree)

        result = merge_hierarchical_sections(tree, self.config)

        assert len(result) == 1
        assert result[0].heading == "HeadingA / HeadingB"
        assert "Alpha text" in result[0].content
        assert "Beta text" in result[0].content

    def test_large_leaf_emitted_alone(self):
        """Test that a big leaf is emitted as its own section."""
        tree = parse_into_tree("## Big\n\n" + paragraphs(3, 198))

        result = merge_hierarchical_sections(tree, self.config)

        assert len(result) == 1
        assert result[0].heading == "Big"
        assert not result[0].content.startswith("## Big")

    def test_oversized_leaf_continued(self):
        """Test that a leaf over the cap is split into continued pieces."""
        config = ChunkConfig(max_chunk_size=2000, min_chunk_size=250, ideal_chunk_size=1000)
        tree = parse_into_tree("## Reference\n\n" + paragraphs(15, 198))

        result = merge_hierarchical_sections(tree, config)

        assert len(result) >= 2
        assert result[0].heading == "Reference"
        assert result[1].heading == "Reference (continued 2)"
        assert all(len(section.content) <= 2000 for section in result)

    def test_subtree_that_fits_is_flattened(self):
        """Test that a subtree within bounds becomes one section."""
        content = "# Guide\n\n" + paragraph(0, 150) + "\n\n## Step\n\n" + paragraph(1, 150)

        result = merge_hierarchical_sections(parse_into_tree(content), self.config)

        assert len(result) == 1
        assert result[0].heading == "Guide"
        assert "## Step" in result[0].content

    def test_breadcrumbs_and_intro_drop(self):
        """Test that children carry the parent heading and tiny intros are dropped."""
        config = ChunkConfig(max_chunk_size=1000, min_chunk_size=150, ideal_chunk_size=800)
        content = "# Guide\n\nShort.\n\n## A\n\n" + paragraph(0, 600) + "\n\n## B\n\n" + paragraph(1, 600)

        result = merge_hierarchical_sections(parse_into_tree(content), config)

        assert [section.heading for section in result] == ["A", "B"]
        assert all(section.breadcrumbs == ["Guide"] for section in result)
        assert all("Short." not in section.content for section in result)

    def test_intro_kept_when_large_enough(self):
        """Test that parent text of at least half the minimum survives."""
        config = ChunkConfig(max_chunk_size=1000, min_chunk_size=150, ideal_chunk_size=800)
        intro = paragraph(9, 100)
        content = f"# Guide\n\n{intro}\n\n## A\n\n" + paragraph(0, 600) + "\n\n## B\n\n" + paragraph(1, 600)

        result = merge_hierarchical_sections(parse_into_tree(content), config)

        assert result[0].heading == "Guide"
        assert result[0].content == intro

    def test_size_invariant(self):
        """Test that no section exceeds the cap without an oversized code block."""
        content = "\n\n".join(
            f"## Section {i}\n\n" + paragraphs(i % 5 + 1, 180) + f"\n\n### Detail {i}\n\n" + paragraphs(i % 3 + 1, 220)
            for i in range(12)
        )

        result = merge_hierarchical_sections(parse_into_tree(content), self.config)

        assert all(len(section.content) <= 1800 for section in result)

    def test_order_and_completeness(self):
        """Test that every paragraph appears once and in document order."""
        texts = [paragraph(i, 120 + (i * 37) % 300) for i in range(20)]
        content = "\n\n".join(f"## Part {i}\n\n{text}" for i, text in enumerate(texts))

        result = merge_hierarchical_sections(parse_into_tree(content), self.config)
        combined = "\n\n".join(section.content for section in result)

        positions = [combined.index(text) for text in texts]
        assert positions == sorted(positions)
        assert all(combined.count(text) == 1 for text in texts)

    def test_deterministic(self):
        """Test that merging twice gives identical output."""
        content = "# Doc\n\n" + "\n\n".join(f"## S{i}\n\n" + paragraph(i, 90 * (i + 1)) for i in range(8))

        first = merge_hierarchical_sections(parse_into_tree(content), self.config)
        second = merge_hierarchical_sections(parse_into_tree(content), self.config)

        assert first == second

    @pytest.mark.parametrize("content", [
        "# Doc\n\n" + "\n\n".join(f"## Part {i}\n\n" + paragraph(i, 600) for i in range(3)),
        "## Long\n\n" + paragraphs(30, 150),
    ])
    def test_larger_cap_never_adds_chunks(self, content):
        """Test that raising the cap does not increase the chunk count."""
        counts = []
        for max_size in (1000, 2000, 3000):
            config = ChunkConfig(max_chunk_size=max_size, min_chunk_size=150, ideal_chunk_size=800)
            counts.append(len(merge_hierarchical_sections(parse_into_tree(content), config)))

        assert counts == sorted(counts, reverse=True)

    def test_deep_nesting_bounded(self):
        """Test that pathologically deep trees are flattened past the depth cap."""
        config = ChunkConfig(max_chunk_size=1000, min_chunk_size=150, ideal_chunk_size=500)
        root = Section(heading="Level 0", level=1, content=paragraph(0, 400))
        node = root
        for depth in range(1, 15):
            child = Section(heading=f"Level {depth}", level=min(depth + 1, 6), content=paragraph(depth, 400))
            node.children.append(child)
            node = child

        result = merge_hierarchical_sections([root], config)
        combined = "\n\n".join(section.content for section in result)

        assert all(len(section.content) <= 1000 for section in result)
        assert all(paragraph(depth, 400) in combined for depth in range(15))

    def test_split_large_flat_section_passthrough(self):
        """Test that sections within the cap are returned untouched."""
        section = FlatSection(heading="H", level=2, content="small", breadcrumbs=["A"])

        assert split_large_flat_section(section, self.config) == [section]
