"""Decides which blocks are opaque to translation."""

from __future__ import annotations

from typing import Iterable, Optional

from .documents import DEFAULT_NAMESPACE
from .structures import DEFAULT_OPAQUE_BLOCKS

EMBED_NAMESPACE = "core-embed/"


def normalise_type_name(type_name: str) -> str:
    name = type_name.strip().lower()
    if "/" not in name:
        name = DEFAULT_NAMESPACE + name
    return name


class BlockClassifier:
    """Classifies block type names as opaque or translatable."""

    def __init__(self, skip_types: Optional[Iterable[str]] = None) -> None:
        types = DEFAULT_OPAQUE_BLOCKS if skip_types is None else skip_types
        self.skip_types = frozenset(
            normalise_type_name(name) for name in types if isinstance(name, str)
        )

    def is_opaque(self, type_name: object) -> bool:
        """Return True when the block's contents must be left untouched.

        Freeform content and unknown block types are translatable.
        """

        if not isinstance(type_name, str) or not type_name.strip():
            return False
        name = normalise_type_name(type_name)
        if name in self.skip_types:
            return True
        return name.startswith(EMBED_NAMESPACE) and "core/embed" in self.skip_types
