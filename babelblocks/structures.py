"""Core data structures for the BabelBlocks translator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar

from .errors import ErrorRecord


T = TypeVar("T")

DEFAULT_CHUNK_THRESHOLD = 15000

DEFAULT_ATTRIBUTE_ALLOWLIST: FrozenSet[str] = frozenset(
    {
        "content",
        "text",
        "title",
        "caption",
        "citation",
        "value",
        "placeholder",
        "label",
        "alt",
    }
)

DEFAULT_OPAQUE_BLOCKS: FrozenSet[str] = frozenset(
    {
        "core/code",
        "core/preformatted",
        "core/html",
        "core/shortcode",
        "core/embed",
        "core/separator",
        "core/spacer",
    }
)

DEFAULT_OPAQUE_TAGS: FrozenSet[str] = frozenset({"script", "style", "code"})

# A text node that is nothing but a shortcode, e.g. [gallery ids="1,2"].
SHORTCODE_PATTERN = r"^\[[^\]]+\]$"


class NodeKind(Enum):
    """Distinguishes typed blocks from freeform markup."""

    BLOCK = "block"
    FRAGMENT = "fragment"


@dataclass
class DocumentNode:
    """A parsed block or freeform markup fragment.

    ``inner_content`` holds the raw markup pieces of the node in order; a
    ``None`` entry marks where the next child block is serialized.
    """

    kind: NodeKind
    inner_content: List[Optional[str]] = field(default_factory=list)
    type_name: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: List["DocumentNode"] = field(default_factory=list)
    opener: str = ""
    closer: str = ""

    @property
    def inner_markup(self) -> str:
        return "".join(piece for piece in self.inner_content if piece is not None)

    @property
    def is_block(self) -> bool:
        return self.kind is NodeKind.BLOCK


class SegmentKind(Enum):
    """Where a segment lives inside its node."""

    TEXT_NODE = "text"
    ATTRIBUTE = "attr"


@dataclass(frozen=True)
class Locator:
    """Positional address of a segment inside a document tree."""

    path: Tuple[int, ...]
    kind: SegmentKind
    index: int
    attribute: Optional[str] = None

    def __str__(self) -> str:
        base = ".".join(str(part) for part in self.path)
        if self.kind is SegmentKind.ATTRIBUTE:
            return f"{base}:attr:{self.attribute}"
        return f"{base}:text#{self.index}"


@dataclass(frozen=True)
class TextSegment:
    """Represents a single piece of translatable text."""

    text: str
    locator: Locator

    @property
    def origin_kind(self) -> SegmentKind:
        return self.locator.kind


class UnitStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TranslationUnit:
    """Tracks the translation lifecycle of one segment."""

    segment: TextSegment
    status: UnitStatus = UnitStatus.PENDING
    translated_text: Optional[str] = None
    error: Optional[str] = None

    def succeed(self, translated_text: str) -> None:
        self._ensure_pending()
        self.status = UnitStatus.SUCCEEDED
        self.translated_text = translated_text

    def fail(self, error: str) -> None:
        self._ensure_pending()
        self.status = UnitStatus.FAILED
        self.error = error

    def _ensure_pending(self) -> None:
        if self.status is not UnitStatus.PENDING:
            raise ValueError(
                f"Unit {self.segment.locator} already {self.status.value}."
            )


@dataclass
class Chunk(Generic[T]):
    """An ordered run of units constrained by a size budget."""

    chunk_id: int
    units: List[T]
    size: int


@dataclass
class TranslationOutcome:
    """Result of one call to a translation client."""

    translated_text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.translated_text is not None


class TranslationStrategy(Enum):
    """How content segments are grouped into client calls."""

    SEGMENT = "segment"
    CHUNK = "chunk"


class DocumentState(Enum):
    STARTED = "started"
    TITLE_TRANSLATING = "title_translating"
    CONTENT_TRANSLATING = "content_translating"
    EXCERPT_TRANSLATING = "excerpt_translating"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit settings handed to the orchestrator for one run."""

    chunk_threshold: int = DEFAULT_CHUNK_THRESHOLD
    attribute_allowlist: FrozenSet[str] = DEFAULT_ATTRIBUTE_ALLOWLIST
    opaque_blocks: FrozenSet[str] = DEFAULT_OPAQUE_BLOCKS
    opaque_tags: FrozenSet[str] = DEFAULT_OPAQUE_TAGS
    opaque_text_pattern: Optional[str] = SHORTCODE_PATTERN
    strategy: TranslationStrategy = TranslationStrategy.SEGMENT
    max_workers: int = 1
    meta_fields: Tuple[str, ...] = ()
    trace_preview: int = 80


@dataclass
class SourceDocument:
    """Plain-string view of a document handed over by the host system."""

    title: str
    content: str
    excerpt: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TranslationResult:
    """Report returned after translating one document."""

    title: str = ""
    content: str = ""
    excerpt: Optional[str] = None
    meta: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    debug_trace: List[str] = field(default_factory=list)
    units_attempted: int = 0
    units_failed: int = 0
    state: DocumentState = DocumentState.STARTED
    errors: List[ErrorRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is DocumentState.COMPLETED

    @property
    def units_succeeded(self) -> int:
        return self.units_attempted - self.units_failed
