"""
Write a parsed node tree as a Graphviz graph

Every structural node becomes one table whose first row holds the node name
and whose other rows hold its fields. A row is addressed by the port
``f<slot>`` so edges can start at the field that refers to a child node.
"""

from collections import deque

import graphviz

from pg_node2graph.helper import ColorMap
from pg_node2graph.node_tree import Node, NodeKind

GRAPH_NAME = "PGNodeGraph"

# NULL pointers are printed as "<>", which the parser turns into "--".
EMPTY_MARKER = "--"

COLNAMES_MARKER = "colnames"

LIST_EDGE_COLOR = "blue"
FIELD_EDGE_COLOR = "green"


def is_empty_field(label: str) -> bool:
    """Return True if the field value is the empty marker."""
    return EMPTY_MARKER in label.split()


def format_colnames(label: str) -> str:
    """Expand a ``colnames ( a b )`` field into a two-column table."""
    prefix, paren, values = label.partition("(")
    if not paren:
        return label

    tokens = values.split()
    closing = tokens.pop() if tokens and tokens[-1] == ")" else ""

    rows = [f"<tr><td>{prefix}{paren}</td><td></td></tr>"]
    for token in tokens:
        rows.append(f'<tr><td></td><td align="left">{token}</td></tr>')
    if closing:
        rows.append(f"<tr><td>{closing}</td><td></td></tr>")

    return '<table border="0" cellspacing="0">' + "".join(rows) + "</table>"


class DotGraphWriter:
    """Serialize a node tree into a graphviz.Digraph"""

    def __init__(self, color_map: ColorMap | None = None, skip_empty=False):
        # no color map means coloring is disabled
        self.color_map = color_map
        self.skip_empty = skip_empty

    def new_graph(self) -> graphviz.Digraph:
        return graphviz.Digraph(
            name=GRAPH_NAME,
            graph_attr={"rankdir": "LR", "size": "100000,100000"},
            node_attr={"shape": "none"},
        )

    def header_row(self, label):
        table_color = bgcolor = fontcolor = ""
        colors = self.color_map.lookup(label) if self.color_map else None
        if colors is not None:
            if colors.bgcolor:
                # the border uses the background color
                table_color = f' color="{colors.bgcolor}"'
                bgcolor = f' bgcolor="{colors.bgcolor}"'
            if colors.fontcolor:
                fontcolor = f' color="{colors.fontcolor}"'

        return (
            f'<table border="0" cellspacing="0"{table_color}>'
            f'<tr><td port="f0" border="1"{bgcolor}>'
            f"<B><font{fontcolor}>{label}</font></B>"
            "</td></tr>"
        )

    @staticmethod
    def field_row(slot, label):
        if COLNAMES_MARKER in label:
            label = format_colnames(label)
        return f'<tr><td port="f{slot}" border="1">{label}</td></tr>'

    def node_table(self, node: Node) -> str:
        """Return the HTML-like table of *node* and its field rows."""
        rows = [self.header_row(node.label)]
        for child in node.children:
            if self.skip_empty and is_empty_field(child.label):
                continue
            rows.append(self.field_row(child.slot, child.label))
        rows.append("</table>")
        return "".join(rows)

    def edge_color(self, edge):
        if self.color_map is None:
            return None
        return LIST_EDGE_COLOR if edge.is_list else FIELD_EDGE_COLOR

    def add_nodes(self, dot, root):
        bfs = deque([root])
        while bfs:
            parent = bfs.popleft()
            for child in parent.children:
                if child.children:
                    bfs.append(child)

            # lists and suppressed fields are rows of an ancestor's table
            if parent.kind in (NodeKind.LIST, NodeKind.SUPPRESSED):
                continue

            dot.node(f"node_{parent.ordinal}", label=f"<{self.node_table(parent)}>")

    def add_edges(self, dot, root):
        bfs = deque([root])
        while bfs:
            curr = bfs.popleft()
            bfs.extend(curr.children)
            for edge in curr.pending_edges:
                dot.edge(edge.tail, edge.head, color=self.edge_color(edge))

    def write(self, root: Node) -> graphviz.Digraph:
        """Return a new graph holding all tables first, then all edges."""
        dot = self.new_graph()
        self.add_nodes(dot, root)
        self.add_edges(dot, root)
        return dot
