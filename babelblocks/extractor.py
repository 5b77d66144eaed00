"""Extraction of translatable text segments from a document tree."""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional, Sequence, Tuple

from .classifier import BlockClassifier
from .markup import MarkupView
from .structures import (
    DocumentNode,
    Locator,
    PipelineConfig,
    SegmentKind,
    TextSegment,
)

MIN_SEGMENT_LENGTH = 2


def is_meaningful_text(text: str) -> bool:
    """Return True when text holds at least one letter and two characters."""

    stripped = text.strip()
    if len(stripped) < MIN_SEGMENT_LENGTH:
        return False
    return any(unicodedata.category(char)[0] in ("L", "M") for char in stripped)


class SegmentExtractor:
    """Walks a tree depth-first and lists the segments worth translating."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        classifier: Optional[BlockClassifier] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.classifier = classifier or BlockClassifier(self.config.opaque_blocks)
        pattern = self.config.opaque_text_pattern
        self.placeholder = re.compile(pattern) if pattern else None

    def extract(self, nodes: Sequence[DocumentNode]) -> List[TextSegment]:
        segments: List[TextSegment] = []
        for index, node in enumerate(nodes):
            segments.extend(self.extract_node(node, (index,)))
        return segments

    def extract_node(
        self,
        node: DocumentNode,
        path: Tuple[int, ...],
    ) -> List[TextSegment]:
        if node.is_block and self.classifier.is_opaque(node.type_name):
            return []

        segments: List[TextSegment] = []
        if node.is_block:
            segments.extend(self._attribute_segments(node, path))
        segments.extend(self._text_node_segments(node, path))
        for child_index, child in enumerate(node.children):
            segments.extend(self.extract_node(child, path + (child_index,)))
        return segments

    def _attribute_segments(
        self,
        node: DocumentNode,
        path: Tuple[int, ...],
    ) -> List[TextSegment]:
        segments: List[TextSegment] = []
        for key, value in node.attributes.items():
            if key not in self.config.attribute_allowlist:
                continue
            if not isinstance(value, str) or not is_meaningful_text(value):
                continue
            segments.append(
                TextSegment(
                    text=value.strip(),
                    locator=Locator(
                        path=path,
                        kind=SegmentKind.ATTRIBUTE,
                        index=len(segments),
                        attribute=key,
                    ),
                )
            )
        return segments

    def is_placeholder(self, text: str) -> bool:
        """Return True for text that stands in for markup, such as a shortcode."""

        return self.placeholder is not None and bool(self.placeholder.search(text.strip()))

    def _text_node_segments(
        self,
        node: DocumentNode,
        path: Tuple[int, ...],
    ) -> List[TextSegment]:
        if not node.inner_markup.strip():
            return []
        view = MarkupView(node.inner_content, opaque_tags=self.config.opaque_tags)
        return [
            TextSegment(
                text=ref.value.strip(),
                locator=Locator(path=path, kind=SegmentKind.TEXT_NODE, index=ref.ordinal),
            )
            for ref in view.text_nodes()
            if not ref.opaque
            and is_meaningful_text(ref.value)
            and not self.is_placeholder(ref.value)
        ]


def extract(
    nodes: Sequence[DocumentNode],
    config: Optional[PipelineConfig] = None,
) -> List[TextSegment]:
    """Return the ordered translatable segments of a parsed document."""

    return SegmentExtractor(config).extract(nodes)
