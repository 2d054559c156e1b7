"""Tree-sitter powered Go declaration parsing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

GO_LANGUAGE = Language(tree_sitter_go.language())

BLANK_IDENTIFIER = "_"

_GROUPED_KINDS = {
    "type_declaration": "type",
    "const_declaration": "const",
    "var_declaration": "var",
}

_SPEC_TYPES = {"type_spec", "type_alias", "const_spec", "var_spec"}

_METHOD_ELEMS = {"method_elem", "method_spec"}


class ParseError(ValueError):
    """Raised when Go source code contains syntax errors."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


@dataclass(frozen=True)
class Declaration:
    """A top-level Go declaration (or interface method) and its doc state."""

    identifier: str
    kind: str
    start: int
    anchor: int
    indent: str
    documented: bool
    doc_start: Optional[int] = None

    @property
    def exported(self) -> bool:
        name = self.identifier.rsplit(".", 1)[-1]
        return bool(name) and name[0].isupper()


def parse(source: bytes) -> Tree:
    """Parse Go source, raising `ParseError` when the parser reports errors."""
    parser = Parser(GO_LANGUAGE)
    tree = parser.parse(source)
    if tree.root_node.has_error:
        line = _first_error_line(tree.root_node)
        location = f" near line {line}" if line is not None else ""
        raise ParseError(f"syntax error{location}", line=line)
    return tree


def declarations(source: bytes, *, interface_methods: bool = False) -> List[Declaration]:
    """Return the documentable declarations of a Go file in source order."""
    tree = parse(source)
    found: List[Declaration] = []
    for node in tree.root_node.named_children:
        if node.type == "function_declaration":
            name = _field_text(node, "name", source)
            if name:
                found.append(_declaration(node, name, "function", source))
        elif node.type == "method_declaration":
            name = _field_text(node, "name", source)
            if not name:
                continue
            receiver = _receiver_name(node, source)
            identifier = f"{receiver}.{name}" if receiver else name
            found.append(_declaration(node, identifier, "method", source))
        elif node.type in _GROUPED_KINDS:
            found.extend(_grouped_declarations(node, source, interface_methods))
    return [decl for decl in found if decl.identifier != BLANK_IDENTIFIER]


def minify(source: bytes, level: int) -> bytes:
    """Shrink Go source for prompting.

    Level 1 drops bodies and doc comments of unexported functions, level 2
    drops every function body, level 3 additionally drops all comments.
    """
    if level <= 0:
        return source
    tree = parse(source)
    removals: List[Tuple[int, int]] = []
    for node in tree.root_node.named_children:
        if node.type not in ("function_declaration", "method_declaration"):
            continue
        name = _field_text(node, "name", source)
        exported = bool(name) and name[0].isupper()
        if exported and level < 2:
            continue
        body = node.child_by_field_name("body")
        if body is not None:
            start = body.start_byte
            while start > 0 and source[start - 1 : start] in (b" ", b"\t"):
                start -= 1
            removals.append((start, body.end_byte))
        if not exported:
            doc_start = _doc_start(node)
            if doc_start is not None:
                removals.append((_line_start(source, doc_start), _line_start(source, node.start_byte)))
    if level >= 3:
        removals.extend((node.start_byte, node.end_byte) for node in _walk(tree.root_node) if node.type == "comment")
    return _remove_ranges(source, removals)


def _grouped_declarations(node: Node, source: bytes, interface_methods: bool) -> List[Declaration]:
    spec = _first_spec(node)
    if spec is None:
        return []
    name = _field_text(spec, "name", source)
    if not name:
        return []

    kind = _GROUPED_KINDS[node.type]
    declaration = _declaration(node, name, kind, source)
    # A comment leading the first spec inside parentheses documents the group;
    # the declaration is then anchored at that spec so the comment can be replaced.
    if not declaration.documented:
        inner = _declaration(spec, name, kind, source)
        if inner.documented:
            declaration = inner
    found = [declaration]

    spec_type = spec.child_by_field_name("type")
    if interface_methods and spec_type is not None and spec_type.type == "interface_type":
        for method in _interface_methods(spec_type):
            method_name = _field_text(method, "name", source)
            if method_name:
                found.append(_declaration(method, f"{name}.{method_name}", "interface method", source))
    return found


def _declaration(node: Node, identifier: str, kind: str, source: bytes) -> Declaration:
    line_start = _line_start(source, node.start_byte)
    prefix = source[line_start : node.start_byte]
    # A declaration sharing its line with earlier code is anchored at its own start.
    anchor = node.start_byte if prefix.strip() else line_start
    doc_start = _doc_start(node)
    return Declaration(
        identifier=identifier,
        kind=kind,
        start=node.start_byte,
        anchor=anchor,
        indent=prefix.decode("utf-8") if not prefix.strip() else "",
        documented=doc_start is not None,
        doc_start=_line_start(source, doc_start) if doc_start is not None else None,
    )


def _doc_start(node: Node) -> Optional[int]:
    """Return the start offset of the comment group attached directly above `node`."""
    start: Optional[int] = None
    row = node.start_point[0]
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment" and sibling.end_point[0] == row - 1:
        if _is_trailing(sibling):
            break
        start = sibling.start_byte
        row = sibling.start_point[0]
        sibling = sibling.prev_named_sibling
    return start


def _is_trailing(comment: Node) -> bool:
    previous = comment.prev_sibling
    if previous is None or previous.type == "\n":
        return False
    return previous.end_point[0] == comment.start_point[0]


def _first_spec(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type in _SPEC_TYPES:
            return child
        if child.type.endswith("_spec_list"):
            nested = _first_spec(child)
            if nested is not None:
                return nested
    return None


def _interface_methods(interface: Node) -> Iterator[Node]:
    for child in interface.named_children:
        if child.type in _METHOD_ELEMS:
            yield child
        elif child.type == "method_spec_list":
            yield from _interface_methods(child)


def _receiver_name(method: Node, source: bytes) -> Optional[str]:
    receiver = method.child_by_field_name("receiver")
    if receiver is None:
        return None
    params = [child for child in receiver.named_children if child.type == "parameter_declaration"]
    if not params:
        return None
    type_node = _unparenthesize(params[0].child_by_field_name("type"))
    pointer = False
    if type_node is not None and type_node.type == "pointer_type":
        pointer = True
        type_node = _unparenthesize(_first_named(type_node))
    if type_node is not None and type_node.type == "generic_type":
        type_node = type_node.child_by_field_name("type")
    if type_node is None or type_node.type != "type_identifier":
        return None
    name = _text(type_node, source)
    return f"*{name}" if pointer else name


def _unparenthesize(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type == "parenthesized_type":
        node = _first_named(node)
    return node


def _first_named(node: Node) -> Optional[Node]:
    inner = [child for child in node.named_children if child.type != "comment"]
    return inner[0] if inner else None


def _field_text(node: Node, field: str, source: bytes) -> str:
    child = node.child_by_field_name(field)
    return _text(child, source) if child is not None else ""


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _line_start(source: bytes, offset: int) -> int:
    return source.rfind(b"\n", 0, offset) + 1


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _first_error_line(root: Node) -> Optional[int]:
    for node in _walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
    return None


def _remove_ranges(source: bytes, ranges: Sequence[Tuple[int, int]]) -> bytes:
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    output = bytearray(source)
    for start, end in reversed(merged):
        del output[start:end]
    return bytes(output)


__all__ = ["BLANK_IDENTIFIER", "Declaration", "ParseError", "declarations", "minify", "parse"]
