"""Error definitions for the BabelBlocks translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises failures recorded while translating a document."""

    CONFIGURATION = auto()
    FORMAT = auto()
    TRANSLATION = auto()
    REINSERTION = auto()
    OTHER = auto()


class BabelBlocksError(Exception):
    """Base exception for all custom errors."""


class AbortRequested(BabelBlocksError):
    """Raised when the user elects to abort processing."""


class ConfigurationError(BabelBlocksError):
    """Raised when a required credential or setting is missing."""


class ProviderError(BabelBlocksError):
    """Raised when the translation provider fails for one call."""


class MismatchError(BabelBlocksError):
    """Raised when translated units do not line up with extracted segments."""

    def __init__(self, expected: int, received: int, detail: str | None = None) -> None:
        message = (
            f"Expected {expected} translated units but received {received}; "
            "content left untouched."
        )
        if detail:
            message = f"{detail}; content left untouched."
        super().__init__(message)
        self.expected = expected
        self.received = received


class StructuralParseError(BabelBlocksError):
    """Raised when block markup cannot be parsed into a tree."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
