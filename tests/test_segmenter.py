"""Unit tests for content unit splitting and chunking."""

import pytest

from babelblocks.segmenter import chunk, split_content_units

PARAGRAPH_WRAPPER = "<!-- wp:paragraph -->\n<p>{}</p>\n<!-- /wp:paragraph -->\n\n"


def paragraph_block(size):
    """Build a paragraph block (plus separator) of exactly ``size`` characters."""
    filler_length = size - len(PARAGRAPH_WRAPPER.format(""))
    filler = ("lorem " * size)[:filler_length]
    return PARAGRAPH_WRAPPER.format(filler)


class TestChunk:
    def test_greedy_accumulation(self):
        units = ["aaaa", "bbb", "cc", "dddd", "e"]
        chunks = chunk(units, 7)
        assert [c.units for c in chunks] == [["aaaa", "bbb"], ["cc", "dddd", "e"]]
        assert [c.size for c in chunks] == [7, 7]
        assert [c.chunk_id for c in chunks] == [1, 2]

    def test_oversized_unit_forms_its_own_chunk(self):
        units = ["aa", "x" * 20, "bb", "cc"]
        chunks = chunk(units, 5)
        assert [c.units for c in chunks] == [["aa"], ["x" * 20], ["bb", "cc"]]

    def test_empty_input(self):
        assert chunk([], 10) == []

    @pytest.mark.parametrize("max_size", [5, 6, 9, 13, 50, 1000])
    def test_chunks_partition_units_in_order(self, max_size):
        units = ["alpha", "be", "gamma!", "d", "epsilon", "zeta", "eta", "th"]
        chunks = chunk(units, max_size)
        assert [unit for c in chunks for unit in c.units] == units
        for c in chunks:
            assert c.size <= max_size or len(c.units) == 1

    def test_custom_size_function(self):
        units = [{"n": 3}, {"n": 3}, {"n": 3}]
        chunks = chunk(units, 6, size=lambda unit: unit["n"])
        assert [len(c.units) for c in chunks] == [2, 1]

    def test_forty_thousand_characters_make_three_chunks(self):
        content = paragraph_block(1000) * 40
        assert len(content) == 40000

        units = split_content_units(content)
        assert len(units) == 40
        chunks = chunk(units, 15000)
        assert len(chunks) == 3
        assert [unit for c in chunks for unit in c.units] == units
        assert "".join(unit for c in chunks for unit in c.units) == content


class TestSplitContentUnits:
    def test_block_content_splits_at_top_level_blocks(self, block_document):
        units = split_content_units(block_document)
        assert "".join(units) == block_document
        assert len(units) == 5
        assert units[2].startswith("<!-- wp:group")
        assert units[2].endswith("<!-- /wp:group -->\n\n")

    def test_classic_markup_splits_at_top_level_elements(self):
        content = "<p>One</p>\n<ul>\n\n<li>Two</li>\n</ul>\n<p>Three</p>"
        units = split_content_units(content)
        assert units == ["<p>One</p>\n", "<ul>\n\n<li>Two</li>\n</ul>\n", "<p>Three</p>"]

    def test_plain_text_splits_at_paragraphs(self):
        content = "First paragraph.\n\nSecond paragraph.\n  \nThird."
        units = split_content_units(content)
        assert units == ["First paragraph.\n\n", "Second paragraph.\n  \n", "Third."]

    def test_malformed_block_content_stays_whole(self):
        content = "<!-- wp:paragraph --><p>Never closed</p>"
        assert split_content_units(content) == [content]

    def test_empty_content(self):
        assert split_content_units("") == []
