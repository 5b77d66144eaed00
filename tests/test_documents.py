"""Unit tests for block document parsing and serialization."""

import pytest

from babelblocks.documents import (
    build_opener,
    has_blocks,
    parse_blocks,
    parse_document,
    serialize_attributes,
    serialize_document,
    with_attributes,
)
from babelblocks.errors import StructuralParseError
from babelblocks.structures import NodeKind


class TestParseBlocks:
    """Tree shape produced by the block parser."""

    def test_top_level_blocks_and_freeform_gaps(self, block_document):
        nodes = parse_blocks(block_document)
        kinds = [node.kind for node in nodes]
        assert kinds == [
            NodeKind.BLOCK,
            NodeKind.FRAGMENT,
            NodeKind.BLOCK,
            NodeKind.FRAGMENT,
            NodeKind.BLOCK,
            NodeKind.FRAGMENT,
            NodeKind.BLOCK,
            NodeKind.FRAGMENT,
            NodeKind.BLOCK,
        ]
        assert [node.type_name for node in nodes if node.is_block] == [
            "core/heading",
            "core/code",
            "core/group",
            "core/button",
            "core/spacer",
        ]

    def test_attributes_are_decoded(self, block_document):
        heading = parse_blocks(block_document)[0]
        assert heading.attributes == {"level": 2}

    def test_nested_children_keep_their_position(self, block_document):
        group = parse_blocks(block_document)[4]
        assert len(group.children) == 1
        assert group.children[0].type_name == "core/paragraph"
        assert group.inner_content == ['\n<div class="wp-block-group">', None, "</div>\n"]

    def test_void_block_has_no_closer(self, block_document):
        button = parse_blocks(block_document)[6]
        assert button.closer == ""
        assert button.attributes["text"] == "Read more"

    def test_namespaced_block_name(self):
        nodes = parse_blocks("<!-- wp:acme/hero -->\n<p>Hi there</p>\n<!-- /wp:acme/hero -->")
        assert nodes[0].type_name == "acme/hero"

    def test_plain_markup_is_single_fragment(self):
        nodes = parse_blocks("<p>Hello world</p>")
        assert len(nodes) == 1
        assert nodes[0].kind is NodeKind.FRAGMENT
        assert nodes[0].inner_markup == "<p>Hello world</p>"

    @pytest.mark.parametrize(
        "markup",
        [
            "<!-- wp:paragraph --><p>Never closed</p>",
            "<p>Orphan</p><!-- /wp:paragraph -->",
            "<!-- wp:paragraph --><p>x</p><!-- /wp:heading -->",
            '<!-- wp:paragraph {"a":} --><p>x</p><!-- /wp:paragraph -->',
            "<!-- wp:paragraph [1,2] --><p>x</p><!-- /wp:paragraph -->",
        ],
    )
    def test_malformed_markup_raises(self, markup):
        with pytest.raises(StructuralParseError):
            parse_blocks(markup)


class TestParseDocument:
    """Tolerant parsing used by the pipeline."""

    def test_empty_input(self):
        assert parse_document("") == []

    def test_malformed_input_falls_back_to_one_fragment(self):
        markup = "<!-- wp:paragraph --><p>Never closed</p>"
        nodes = parse_document(markup)
        assert len(nodes) == 1
        assert nodes[0].kind is NodeKind.FRAGMENT
        assert serialize_document(nodes) == markup


class TestSerialization:
    """serialize(parse(x)) reproduces the input."""

    @pytest.mark.parametrize(
        "markup",
        [
            "",
            "<p>Classic content</p>\n\n<p>Second paragraph</p>",
            "<!-- wp:separator /-->",
            "<!--   wp:paragraph   -->\n<p>Odd spacing</p>\n<!--   /wp:paragraph   -->",
            '<!-- wp:columns -->\n<div class="wp-block-columns"><!-- wp:column -->\n'
            '<div class="wp-block-column"><!-- wp:paragraph -->\n<p>Deep</p>\n'
            "<!-- /wp:paragraph --></div>\n<!-- /wp:column --></div>\n<!-- /wp:columns -->",
        ],
    )
    def test_round_trip_is_exact(self, markup):
        assert serialize_document(parse_document(markup)) == markup

    def test_round_trip_of_mixed_document(self, block_document):
        assert serialize_document(parse_blocks(block_document)) == block_document

    def test_attribute_escaping_keeps_comment_intact(self):
        attributes = {"content": 'a -- <b> & "q"'}
        encoded = serialize_attributes(attributes)
        assert "--" not in encoded
        assert "<" not in encoded and ">" not in encoded and "&" not in encoded
        markup = build_opener("core/paragraph", attributes, void=True)
        assert parse_blocks(markup)[0].attributes == attributes

    def test_value_ending_in_backslash_stays_valid_json(self):
        attributes = {"content": "ends with a backslash\\", "label": 'say "hi"'}
        encoded = serialize_attributes(attributes)
        assert encoded.count("\\u0022") == 2
        markup = build_opener("core/paragraph", attributes, void=True)
        assert parse_blocks(markup)[0].attributes == attributes

    def test_with_attributes_regenerates_opener(self, block_document):
        button = parse_blocks(block_document)[6]
        updated = with_attributes(button, {**button.attributes, "text": "Leer mas"})
        assert updated.opener == (
            '<!-- wp:button {"text":"Leer mas","url":"https://example.com/read-more"} /-->'
        )
        assert button.attributes["text"] == "Read more"

    def test_with_identical_attributes_returns_same_node(self, block_document):
        heading = parse_blocks(block_document)[0]
        assert with_attributes(heading, {"level": 2}) is heading


class TestHasBlocks:
    def test_detects_delimiters(self, block_document):
        assert has_blocks(block_document)

    def test_classic_content(self):
        assert not has_blocks("<p>No blocks <!-- just a comment --></p>")
        assert not has_blocks("")
