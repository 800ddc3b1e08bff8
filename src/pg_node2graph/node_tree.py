"""
Parser for PostgreSQL node tree dumps

PostgreSQL prints its internal parse/plan trees (``debug_print_parse``,
``debug_print_plan``, ``pg_node_tree`` catalog columns) as a bracketed text:
``{NAME :field value :field {NAME ...} :list ({NAME ...} {NAME ...})}``.

The parser below rebuilds that tree with an explicit stack instead of
recursion. Some decisions can only be made once the next delimiter is seen
(a field that turns out to hold a node, a field that turns out to hold a
list), so nodes already attached to their parent are reclassified in place.
"""

import sys
from enum import IntEnum, auto
from typing import NamedTuple


class NodeKind(IntEnum):
    """Kinds of nodes in a parsed node tree"""

    SUPPRESSED = 0
    STRUCTURAL = auto()
    LIST = auto()
    ITEM = auto()


class NodeTreeError(ValueError):
    """Base class for node tree parse errors."""

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"{message} at line {line}"
        super().__init__(message)


class NodeTreeParseError(NodeTreeError):
    """The input ended before the node tree was complete."""


class MalformedNodeTreeError(NodeTreeError):
    """A delimiter appeared where the tree structure does not allow it."""


class Edge(NamedTuple):
    """An edge between two table ports of the generated graph."""

    src_ordinal: int
    src_slot: int
    dst_ordinal: int
    dst_slot: int
    is_list: bool

    @property
    def tail(self) -> str:
        return f"node_{self.src_ordinal}:f{self.src_slot}"

    @property
    def head(self) -> str:
        return f"node_{self.dst_ordinal}:f{self.dst_slot}"


class Node:
    """A node of the parsed tree

    ``ordinal`` addresses the graph node a tree node is drawn in and ``slot``
    addresses the row (port) inside the parent's table.
    """

    def __init__(self, kind: NodeKind, label: str, ordinal: int):
        self.kind = kind
        self.label = label
        self.ordinal = ordinal
        self.slot = 0
        self.children: list["Node"] = []
        self.pending_edges: list[Edge] = []

    def __repr__(self):
        return (
            f"Node({self.kind.name}, {self.label!r}, ordinal={self.ordinal}, "
            f"slot={self.slot}, children={len(self.children)})"
        )

    def append(self, child: "Node") -> None:
        self.children.append(child)
        child.slot = len(self.children)

    def walk(self):
        """Yield this node and all of its descendants, parents first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class CharStream:
    """Character reader over a text with one character of push back."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def getc(self) -> str:
        """Return the next character or an empty string at end of input."""
        if self.pos >= len(self.text):
            return ""
        ch = self.text[self.pos]
        self.pos += 1
        return ch

    def ungetc(self) -> None:
        if self.pos == 0:
            raise MalformedNodeTreeError("nothing to push back", self.line)
        self.pos -= 1

    def skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek_non_space(self) -> str:
        """Return the next non-whitespace character without consuming it."""
        pos = self.pos
        while pos < len(self.text) and self.text[pos].isspace():
            pos += 1
        return self.text[pos] if pos < len(self.text) else ""

    @property
    def line(self) -> int:
        """1-based line of the most recently read character."""
        return self.text.count("\n", 0, max(self.pos - 1, 0)) + 1


class NameReader:
    """Read field and node names from a node tree stream"""

    DELIMITERS = frozenset(":{}")

    @staticmethod
    def sanitize(name: str) -> str:
        """Strip *name* and replace characters that break DOT HTML labels."""
        return name.replace('"', " ").replace("<", "-").replace(">", "-").strip()

    @classmethod
    def read(cls, stream: CharStream) -> str:
        """Read a name up to, but not including, the next delimiter.

        A ``(`` that is followed by ``{`` starts a list and ends the name
        too; any other ``(`` is part of the value (``(b)``, ``("a" "b")``).
        """
        chars = []
        while True:
            ch = stream.getc()
            if not ch:
                raise MalformedNodeTreeError(
                    "unexpected end of input while reading a name", stream.line
                )
            if ch in cls.DELIMITERS:
                break
            if ch == "(":
                if stream.peek_non_space() == "{":
                    break
                # part of the value, "( b 1 2)" reads as "(b 1 2)"
                stream.skip_space()
            chars.append(ch)

        stream.ungetc()
        return cls.sanitize("".join(chars))


class NodeTreeParser:
    """Build a node tree from its textual dump

    A parser instance can be reused; every call to :meth:`parse_stream`
    starts with a fresh stack and ordinal counter.
    """

    def __init__(self, debug=False):
        self.debug = debug
        self.stack: list[Node] = []
        self.next_ordinal = 0
        self.prev_was_item = False

    def _trace(self, action, node):
        if self.debug:
            print(
                f"STACK: {action} {node.label} at depth {len(self.stack)}",
                file=sys.stderr,
            )

    def _mint(self, kind, label):
        node = Node(kind, label, self.next_ordinal)
        self.next_ordinal += 1
        return node

    def _top(self, stream, delimiter):
        if not self.stack:
            raise MalformedNodeTreeError(
                f"unexpected '{delimiter}' outside of a node", stream.line
            )
        return self.stack[-1]

    def parse_text(self, text: str) -> Node:
        return self.parse_stream(CharStream(text))

    def parse_stream(self, stream: CharStream) -> Node:
        """Parse one node tree from *stream* and return its root.

        Raises NodeTreeParseError if the input ends before the root node is
        closed and MalformedNodeTreeError on delimiters the tree structure
        does not allow.
        """
        self.stack = []
        self.next_ordinal = 0
        self.prev_was_item = False

        while True:
            ch = stream.getc()
            if not ch:
                break

            if ch == "{":
                self._open_node(stream)
            elif ch == "}":
                top = self._top(stream, ch)
                self.stack.pop()
                self.prev_was_item = False
                self._trace("node pop", top)
                if not self.stack:
                    return top
            elif ch == "(":
                self._open_list(stream)
            elif ch == ")":
                top = self._top(stream, ch)
                self.stack.pop()
                self.prev_was_item = False
                self._trace("list pop", top)
            elif ch == ":":
                top = self._top(stream, ch)
                item = self._mint(NodeKind.ITEM, NameReader.read(stream))
                top.append(item)
                self.prev_was_item = True

        if not self.stack:
            raise NodeTreeParseError("no node tree found in input", stream.line)
        raise NodeTreeParseError(
            f"unexpected end of input, {len(self.stack)} unclosed node(s)",
            stream.line,
        )

    def _open_node(self, stream):
        node = self._mint(NodeKind.STRUCTURAL, NameReader.read(stream))

        if self.stack:
            top = self.stack[-1]

            if self.prev_was_item:
                # the field just read holds this node, draw the edge from it
                owner = top
                top = top.children[-1]
                top.kind = NodeKind.SUPPRESSED
                top.ordinal = owner.ordinal

            src_ordinal, src_slot = top.ordinal, top.slot
            is_list = top.kind == NodeKind.LIST
            if is_list and top.children:
                # chain list elements instead of fanning out from the field
                prev = top.children[-1]
                src_ordinal, src_slot = prev.ordinal, 0

            top.pending_edges.append(
                Edge(src_ordinal, src_slot, node.ordinal, 0, is_list)
            )
            top.append(node)

        self.stack.append(node)
        self.prev_was_item = False
        self._trace("node push", node)

    def _open_list(self, stream):
        top = self._top(stream, "(")
        if not top.children:
            raise MalformedNodeTreeError(
                f"list without a field in node {top.label!r}", stream.line
            )
        if stream.peek_non_space() != "{":
            raise MalformedNodeTreeError(
                "list does not start with a node", stream.line
            )

        node = top.children[-1]
        node.kind = NodeKind.LIST
        node.ordinal = top.ordinal

        self.stack.append(node)
        self.prev_was_item = False
        self._trace("list push", node)


def parse_node_tree(text: str) -> Node:
    """Parse *text* and return the root node of the first node tree in it."""
    return NodeTreeParser().parse_text(text)
