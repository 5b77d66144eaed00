"""Reinsertion of translated segments into a document tree."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from .classifier import BlockClassifier
from .documents import with_attributes
from .errors import BabelBlocksError, MismatchError, StructuralParseError
from .extractor import SegmentExtractor
from .markup import MarkupView, surround_like
from .structures import (
    DocumentNode,
    PipelineConfig,
    SegmentKind,
    TranslationUnit,
    UnitStatus,
)

Path = Tuple[int, ...]


@dataclass
class MergeOutcome:
    """Merged nodes, or the untouched originals plus the reason."""

    nodes: List[DocumentNode]
    error: Optional[BabelBlocksError] = None
    applied: int = 0


@dataclass
class _Replacements:
    attributes: Dict[Path, Dict[str, str]]
    text_nodes: Dict[Path, Dict[int, str]]

    def touches(self, path: Path) -> bool:
        return path in self.attributes or path in self.text_nodes


class SegmentMerger:
    """Writes successful translations back at their recorded locators."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        classifier: Optional[BlockClassifier] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.classifier = classifier or BlockClassifier(self.config.opaque_blocks)
        self.extractor = SegmentExtractor(self.config, classifier=self.classifier)

    def merge(
        self,
        nodes: Sequence[DocumentNode],
        units: Sequence[TranslationUnit],
    ) -> MergeOutcome:
        originals = list(nodes)
        segments = self.extractor.extract(originals)
        if len(units) != len(segments):
            return MergeOutcome(
                nodes=originals,
                error=MismatchError(len(segments), len(units)),
            )

        for position, (segment, unit) in enumerate(zip(segments, units)):
            if unit.segment.locator != segment.locator:
                return MergeOutcome(
                    nodes=originals,
                    error=MismatchError(
                        len(segments),
                        len(units),
                        detail=(
                            f"Unit {position} points at {unit.segment.locator} "
                            f"but the tree has {segment.locator} there"
                        ),
                    ),
                )

        replacements, applied = self._collect(units)
        try:
            merged = [
                self._merge_node(node, (index,), replacements)
                for index, node in enumerate(originals)
            ]
        except StructuralParseError as exc:
            return MergeOutcome(nodes=originals, error=exc)
        return MergeOutcome(nodes=merged, applied=applied)

    def _collect(self, units: Sequence[TranslationUnit]) -> Tuple[_Replacements, int]:
        attributes: Dict[Path, Dict[str, str]] = defaultdict(dict)
        text_nodes: Dict[Path, Dict[int, str]] = defaultdict(dict)
        applied = 0
        for unit in units:
            if unit.status is not UnitStatus.SUCCEEDED or unit.translated_text is None:
                continue
            locator = unit.segment.locator
            if locator.kind is SegmentKind.ATTRIBUTE:
                attributes[locator.path][locator.attribute or ""] = unit.translated_text
            else:
                text_nodes[locator.path][locator.index] = unit.translated_text
            if unit.translated_text != unit.segment.text:
                applied += 1
        return _Replacements(dict(attributes), dict(text_nodes)), applied

    def _merge_node(
        self,
        node: DocumentNode,
        path: Path,
        replacements: _Replacements,
    ) -> DocumentNode:
        if node.is_block and self.classifier.is_opaque(node.type_name):
            return node

        children = [
            self._merge_node(child, path + (index,), replacements)
            for index, child in enumerate(node.children)
        ]
        children_changed = any(
            new is not old for new, old in zip(children, node.children)
        )
        if not replacements.touches(path) and not children_changed:
            return node

        inner_content = node.inner_content
        updates = replacements.text_nodes.get(path)
        if updates:
            view = MarkupView(inner_content, opaque_tags=self.config.opaque_tags)
            for ref in view.text_nodes():
                if ref.ordinal in updates:
                    view.set_text(ref, surround_like(ref.value, updates[ref.ordinal]))
            inner_content = view.render()

        merged = replace(node, inner_content=inner_content, children=children)

        attribute_updates = replacements.attributes.get(path)
        if attribute_updates and node.is_block:
            attributes = dict(node.attributes)
            for key, translated in attribute_updates.items():
                attributes[key] = surround_like(attributes[key], translated)
            merged = with_attributes(merged, attributes)
        return merged


def merge(
    nodes: Sequence[DocumentNode],
    units: Sequence[TranslationUnit],
    config: Optional[PipelineConfig] = None,
) -> MergeOutcome:
    """Merge translated units, aligned to ``extract(nodes)``, into a new tree."""

    return SegmentMerger(config).merge(nodes, units)
