"""Markup-level access to the text nodes of a document node."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from bs4 import BeautifulSoup, NavigableString
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from .errors import StructuralParseError

CHILD_SENTINEL = "babelblocks-child:{index}"
CHILD_SENTINEL_PATTERN = re.compile(r"<!--babelblocks-child:(?P<index>\d+)-->")

NON_TEXT_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)

# Everything html.parser reports as something other than character data.
MARKUP_TOKEN_PATTERN = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<![^>]*>"
    r"|<\?[^>]*>"
    r"|</[A-Za-z][^>]*>"
    r"|<(?P<tag>[A-Za-z][^\s/>]*)(?:\"[^\"]*\"|'[^']*'|[^'\">])*>",
    re.DOTALL,
)

# Elements whose content html.parser passes through without decoding entities.
RAW_TEXT_TAGS = frozenset({"script", "style"})

_LEADING_SPACE = re.compile(r"^\s*")
_TRAILING_SPACE = re.compile(r"\s*$")


@dataclass(frozen=True)
class TextSpan:
    """Source offsets of one run of character data."""

    start: int
    end: int
    raw: bool = False

    def decode(self, source: str) -> str:
        text = source[self.start:self.end]
        return text if self.raw else html.unescape(text)


@dataclass
class TextNodeRef:
    """A text node of a parsed markup view."""

    ordinal: int
    node: NavigableString
    opaque: bool
    span: Optional[TextSpan] = None

    @property
    def value(self) -> str:
        return str(self.node)


def _join_with_sentinels(inner_content: Sequence[Optional[str]]) -> str:
    parts: List[str] = []
    child_index = 0
    for piece in inner_content:
        if piece is None:
            parts.append(f"<!--{CHILD_SENTINEL.format(index=child_index)}-->")
            child_index += 1
        else:
            parts.append(piece)
    return "".join(parts)


def text_spans(markup: str) -> List[TextSpan]:
    """Locate the runs of character data in markup, in document order."""

    spans: List[TextSpan] = []
    cursor = 0
    while cursor < len(markup):
        match = MARKUP_TOKEN_PATTERN.search(markup, cursor)
        if match is None:
            spans.append(TextSpan(cursor, len(markup)))
            break
        if match.start() > cursor:
            spans.append(TextSpan(cursor, match.start()))
        cursor = match.end()

        tag = (match.group("tag") or "").lower()
        if tag in RAW_TEXT_TAGS and not match.group(0).endswith("/>"):
            closer = re.compile(rf"</{tag}\b", re.IGNORECASE).search(markup, cursor)
            end = closer.start() if closer else len(markup)
            if end > cursor:
                spans.append(TextSpan(cursor, end, raw=True))
            cursor = end
    return spans


def surround_like(original: str, replacement: str) -> str:
    """Wrap replacement in the leading and trailing whitespace of original."""

    lead = _LEADING_SPACE.match(original).group(0)
    trail = _TRAILING_SPACE.search(original).group(0)
    if not original.strip():
        return original
    return f"{lead}{replacement.strip()}{trail}"


class MarkupView:
    """Parsed, editable view over the inner markup of one node.

    The soup is only read. Edits are spliced into the source markup at the
    offsets of the edited text runs, so every other byte is kept, including
    tags a freeform fragment opens or closes for markup outside it. Child
    block positions become sentinel comments so that markup split around
    nested blocks still parses as a single balanced tree.
    """

    def __init__(
        self,
        inner_content: Sequence[Optional[str]],
        *,
        opaque_tags: FrozenSet[str],
    ) -> None:
        self.inner_content = list(inner_content)
        self.opaque_tags = opaque_tags
        self.source = _join_with_sentinels(self.inner_content)
        self.soup = BeautifulSoup(self.source, "html.parser")
        self._edits: Dict[int, str] = {}
        self._refs: Optional[List[TextNodeRef]] = None

    @property
    def changed(self) -> bool:
        return bool(self._edits)

    def text_nodes(self) -> List[TextNodeRef]:
        """Return every text node in document order with a stable ordinal."""

        if self._refs is None:
            refs: List[TextNodeRef] = []
            for element in self.soup.descendants:
                if not isinstance(element, NavigableString):
                    continue
                if isinstance(element, NON_TEXT_STRINGS):
                    continue
                refs.append(
                    TextNodeRef(
                        ordinal=len(refs),
                        node=element,
                        opaque=self._inside_opaque(element),
                    )
                )
            spans = text_spans(self.source)
            if len(spans) == len(refs):
                for ref, span in zip(refs, spans):
                    ref.span = span
            self._refs = refs
        return self._refs

    def _inside_opaque(self, element: NavigableString) -> bool:
        return any(
            parent.name in self.opaque_tags
            for parent in element.parents
            if parent.name
        )

    def set_text(self, ref: TextNodeRef, value: str) -> None:
        if value == ref.value:
            self._edits.pop(ref.ordinal, None)
            return
        self._edits[ref.ordinal] = value

    def render(self) -> List[Optional[str]]:
        """Return inner content pieces with the edited text runs replaced."""

        if not self._edits:
            return list(self.inner_content)

        refs = self.text_nodes()
        rendered = self.source
        for ordinal in sorted(self._edits, reverse=True):
            ref = refs[ordinal]
            span = ref.span
            if span is None or span.decode(self.source) != ref.value:
                raise StructuralParseError(
                    f"Text node {ordinal} could not be located in its source markup."
                )
            replacement = html.escape(self._edits[ordinal], quote=False)
            rendered = rendered[:span.start] + replacement + rendered[span.end:]

        pieces: List[Optional[str]] = []
        cursor = 0
        for match in CHILD_SENTINEL_PATTERN.finditer(rendered):
            if match.start() > cursor:
                pieces.append(rendered[cursor:match.start()])
            pieces.append(None)
            cursor = match.end()
        if cursor < len(rendered):
            pieces.append(rendered[cursor:])
        return pieces
