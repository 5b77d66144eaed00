"""Content unit splitting and size-bounded chunking."""

from __future__ import annotations

import re
from typing import Callable, Generic, Iterable, List, Sequence

from bs4 import BeautifulSoup, Tag

from .documents import has_blocks, parse_blocks, serialize_node
from .errors import StructuralParseError
from .structures import Chunk, T

PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")


class Chunker(Generic[T]):
    """Aggregates units into chunks within a size budget.

    A unit larger than the budget is never split; it becomes a chunk of its own.
    """

    def __init__(self, max_size: int, size: Callable[[T], int] = len) -> None:  # type: ignore[assignment]
        self.max_size = max(1, max_size)
        self.size = size

    def build(self, units: Sequence[T]) -> List[Chunk[T]]:
        chunks: List[Chunk[T]] = []
        chunk_units: List[T] = []
        running_total = 0

        def close() -> None:
            nonlocal chunk_units, running_total
            if chunk_units:
                chunks.append(
                    Chunk(chunk_id=len(chunks) + 1, units=chunk_units, size=running_total)
                )
            chunk_units = []
            running_total = 0

        for unit in units:
            size = self.size(unit)
            if size > self.max_size:
                close()
                chunks.append(Chunk(chunk_id=len(chunks) + 1, units=[unit], size=size))
                continue

            if running_total + size > self.max_size and chunk_units:
                close()

            chunk_units.append(unit)
            running_total += size

        close()
        return chunks


def chunk(
    units: Sequence[T],
    max_size: int,
    size: Callable[[T], int] = len,  # type: ignore[assignment]
) -> List[Chunk[T]]:
    """Partition units into ordered chunks of at most ``max_size``."""

    return Chunker(max_size, size).build(units)


def _split_at(text: str, offsets: Iterable[int]) -> List[str]:
    pieces: List[str] = []
    cursor = 0
    for offset in sorted(set(offsets)):
        if offset <= cursor or offset >= len(text):
            continue
        pieces.append(text[cursor:offset])
        cursor = offset
    pieces.append(text[cursor:])
    return pieces


def _fold_blank_units(pieces: Sequence[str]) -> List[str]:
    """Attach whitespace-only pieces to the unit before them."""

    units: List[str] = []
    for piece in pieces:
        if not piece:
            continue
        if units and not piece.strip():
            units[-1] += piece
        else:
            units.append(piece)
    return units


def _top_level_tag_offsets(markup: str) -> List[int]:
    line_starts = [0]
    line_starts.extend(index + 1 for index, char in enumerate(markup) if char == "\n")

    soup = BeautifulSoup(markup, "html.parser")
    offsets: List[int] = []
    for child in soup.contents:
        if not isinstance(child, Tag) or child.sourceline is None:
            continue
        offsets.append(line_starts[child.sourceline - 1] + (child.sourcepos or 0))
    return offsets


def split_content_units(content: str) -> List[str]:
    """Split raw content into natural units that concatenate back to it.

    Block content splits at top-level block boundaries, classic markup at
    top-level element starts, and plain text at blank-line paragraphs.
    """

    if not content:
        return []

    if has_blocks(content):
        try:
            nodes = parse_blocks(content)
        except StructuralParseError:
            return [content]
        return _fold_blank_units([serialize_node(node) for node in nodes])

    offsets = _top_level_tag_offsets(content)
    if not offsets:
        offsets = [match.end() for match in PARAGRAPH_BREAK.finditer(content)]
    return _fold_blank_units(_split_at(content, offsets))
