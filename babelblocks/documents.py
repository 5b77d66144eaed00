"""Block document parsing and serialization utilities."""

from __future__ import annotations

import json
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import StructuralParseError
from .structures import DocumentNode, NodeKind


BLOCK_DELIMITER_PATTERN = re.compile(
    r"<!--\s+(?P<closer>/)?wp:(?P<namespace>[a-z][a-z0-9_-]*/)?"
    r"(?P<name>[a-z][a-z0-9_-]*)\s+(?:(?P<attrs>\{.*?\})\s+)?(?P<void>/)?-->",
    re.DOTALL,
)

DEFAULT_NAMESPACE = "core/"

# Escapes applied to attribute JSON so it can never terminate the comment.
_ATTRIBUTE_ESCAPES: Tuple[Tuple[str, str], ...] = (
    ("--", "\\u002d\\u002d"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
)

# An escaped quote is a backslash-quote pair preceded by an even run of backslashes.
_ESCAPED_QUOTE = re.compile(r'(?<!\\)((?:\\\\)*)\\"')


def has_blocks(text: str) -> bool:
    """Return True when the text contains block delimiters."""

    return bool(text) and BLOCK_DELIMITER_PATTERN.search(text) is not None


def _decode_attributes(raw: Optional[str], *, offset: int) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StructuralParseError(
            f"Block attributes at offset {offset} are not valid JSON: {exc}"
        ) from exc
    if not isinstance(decoded, dict):
        raise StructuralParseError(
            f"Block attributes at offset {offset} must be a JSON object."
        )
    return decoded


def _attach(
    node: DocumentNode,
    stack: List[DocumentNode],
    top_level: List[DocumentNode],
) -> None:
    if stack:
        parent = stack[-1]
        parent.inner_content.append(None)
        parent.children.append(node)
    else:
        top_level.append(node)


def _append_text(
    text: str,
    stack: List[DocumentNode],
    top_level: List[DocumentNode],
) -> None:
    if not text:
        return
    if stack:
        stack[-1].inner_content.append(text)
    else:
        top_level.append(DocumentNode(kind=NodeKind.FRAGMENT, inner_content=[text]))


def parse_blocks(text: str) -> List[DocumentNode]:
    """Parse block markup strictly, raising StructuralParseError when malformed."""

    top_level: List[DocumentNode] = []
    stack: List[DocumentNode] = []
    cursor = 0

    for match in BLOCK_DELIMITER_PATTERN.finditer(text):
        start, end = match.span()
        _append_text(text[cursor:start], stack, top_level)
        cursor = end

        name = (match.group("namespace") or DEFAULT_NAMESPACE) + match.group("name")

        if match.group("closer"):
            if not stack:
                raise StructuralParseError(
                    f"Closing delimiter for '{name}' at offset {start} has no opening block."
                )
            node = stack.pop()
            if node.type_name != name:
                raise StructuralParseError(
                    f"Closing delimiter for '{name}' at offset {start} does not "
                    f"match open block '{node.type_name}'."
                )
            node.closer = match.group(0)
            _attach(node, stack, top_level)
            continue

        node = DocumentNode(
            kind=NodeKind.BLOCK,
            type_name=name,
            attributes=_decode_attributes(match.group("attrs"), offset=start),
            opener=match.group(0),
        )
        if match.group("void"):
            _attach(node, stack, top_level)
        else:
            stack.append(node)

    if stack:
        raise StructuralParseError(
            f"Block '{stack[-1].type_name}' is never closed."
        )

    _append_text(text[cursor:], stack, top_level)
    return top_level


def parse_document(text: str) -> List[DocumentNode]:
    """Parse text into nodes, falling back to a single fragment when malformed."""

    if not text:
        return []
    try:
        return parse_blocks(text)
    except StructuralParseError:
        return [DocumentNode(kind=NodeKind.FRAGMENT, inner_content=[text])]


def serialize_attributes(attributes: Dict[str, Any]) -> str:
    """Encode block attributes the way block comment delimiters expect."""

    encoded = json.dumps(attributes, ensure_ascii=False, separators=(",", ":"))
    encoded = _ESCAPED_QUOTE.sub(r"\1\\u0022", encoded)
    for needle, escaped in _ATTRIBUTE_ESCAPES:
        encoded = encoded.replace(needle, escaped)
    return encoded


def build_opener(type_name: str, attributes: Dict[str, Any], *, void: bool) -> str:
    """Render an opening (or void) delimiter for a block."""

    name = type_name
    if name.startswith(DEFAULT_NAMESPACE):
        name = name[len(DEFAULT_NAMESPACE):]
    parts = [f"<!-- wp:{name} "]
    if attributes:
        parts.append(serialize_attributes(attributes) + " ")
    parts.append("/-->" if void else "-->")
    return "".join(parts)


def is_void(node: DocumentNode) -> bool:
    return node.is_block and not node.closer


def with_attributes(node: DocumentNode, attributes: Dict[str, Any]) -> DocumentNode:
    """Return a copy of the block carrying new attributes and a fresh opener."""

    if attributes == node.attributes:
        return node
    opener = build_opener(node.type_name or "", attributes, void=is_void(node))
    return replace(node, attributes=attributes, opener=opener)


def serialize_node(node: DocumentNode) -> str:
    if not node.is_block:
        return node.inner_markup

    parts = [node.opener]
    children = iter(node.children)
    for piece in node.inner_content:
        if piece is None:
            parts.append(serialize_node(next(children)))
        else:
            parts.append(piece)
    parts.append(node.closer)
    return "".join(parts)


def serialize_document(nodes: Sequence[DocumentNode]) -> str:
    """Serialize nodes back to markup; the inverse of parse_document."""

    return "".join(serialize_node(node) for node in nodes)
