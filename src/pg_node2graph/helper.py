"""
Helper classes for pg_node2graph
"""

import os
import sys
from pathlib import Path
from typing import Any, NamedTuple

import graphviz
import psycopg2


class NodeColor(NamedTuple):
    """Colors of a node table; empty strings mean no directive."""

    bgcolor: str
    fontcolor: str = ""


class ColorMap:
    """
    Map node names to the colors used for their tables

    Build it once with :meth:`default` or :meth:`load_from_file` and pass it
    to the graph writer; the mapping is not changed afterwards.
    """

    # More colors: https://graphviz.org/doc/info/colors.html
    DEFAULT_COLORS: dict[str, NodeColor] = {
        "QUERY": NodeColor("skyblue"),
        "PLANNEDSTMT": NodeColor("pink"),
        "TARGETENTRY": NodeColor("sienna"),
    }

    def __init__(self, colors: dict[str, NodeColor]):
        self._colors = dict(colors)

    def __len__(self):
        return len(self._colors)

    def __contains__(self, name):
        return name in self._colors

    @classmethod
    def default(cls) -> "ColorMap":
        """Return the built-in color map."""
        return cls(cls.DEFAULT_COLORS)

    @staticmethod
    def split_record(line: str) -> list[str]:
        """Split a color map record on commas, or on whitespace without any."""
        if "," in line:
            return [field.strip() for field in line.split(",")]
        return line.split()

    @classmethod
    def load_from_file(cls, filepath) -> "ColorMap":
        """Read a color map file with ``name, bgcolor[, fontcolor]`` records.

        Raises FileNotFoundError if the file does not exist. Records with a
        wrong number of fields are reported on stderr and skipped.
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"color map file not found: {filepath}")

        colors: dict[str, NodeColor] = {}
        with open(filepath, "r", encoding="utf-8") as f:
            for lineno, raw in enumerate(f, start=1):
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue

                fields = cls.split_record(line)
                if len(fields) not in (2, 3):
                    print(
                        f"{filepath}: invalid node colors mapping at line {lineno}",
                        file=sys.stderr,
                    )
                    continue

                fontcolor = fields[2] if len(fields) == 3 else ""
                colors[fields[0]] = NodeColor(fields[1], fontcolor)

        return cls(colors)

    def lookup(self, name: str) -> NodeColor | None:
        """Return the colors for the node *name* or None."""
        return self._colors.get(name)


class GraphvizHelper:
    """Helper for calling the Graphviz programs"""

    engine = "dot"

    @staticmethod
    def check_dot_program() -> str:
        """
        Return the version of the installed Graphviz ``dot`` program

        Raises graphviz.ExecutableNotFound if it is not on the PATH.
        """
        version = graphviz.version()
        return ".".join(str(part) for part in version)

    @classmethod
    def render(cls, dot_file, image_file, picture_format):
        """
        Render a saved DOT file into an image

        Args:
            dot_file: Path of the DOT source
            image_file: Path of the picture to create
            picture_format: Graphviz output format, e.g. png or svg
        """
        return graphviz.render(
            cls.engine,
            picture_format,
            str(dot_file),
            outfile=str(image_file),
        )

    @staticmethod
    def output_path(pathname, suffix, directory=None) -> Path:
        """Return ``pathname + suffix``, moved into *directory* if given."""
        path = Path(pathname)
        name = path.name + suffix
        if directory:
            return Path(directory) / name
        return path.with_name(name)


class CatalogClient:
    """Read node trees stored in the catalog of a PostgreSQL server

    A view keeps the query it expands to in ``pg_rewrite.ev_action`` as a
    node tree. The connection is opened on the first lookup, so a server
    that cannot be reached only fails the views, not the other inputs.
    Connection and query problems are raised as ``psycopg2.Error``.
    """

    VIEW_RULE_QUERY = """
    SELECT r.ev_action
    FROM pg_rewrite r
    WHERE r.ev_class = %s::regclass AND r.rulename = '_RETURN';
    """

    def __init__(self, connection_url: str):
        self.connection_url = connection_url
        self.node_trees: dict[str, str] = {}
        self.connection: Any = None

    def cursor(self):
        """Return a cursor, connecting read-only on first use."""
        if self.connection is None:
            # libpq understands postgres:// URLs itself
            connection = psycopg2.connect(self.connection_url)
            connection.set_session(autocommit=True, readonly=True)
            self.connection = connection
        return self.connection.cursor()

    def close(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    @staticmethod
    def unwrap_list(node_tree: str) -> str:
        """Strip the list parentheses around a stored rule action.

        ``ev_action`` is a list of queries, ``({QUERY ...})``; the parser
        reads a single node and stops after it.
        """
        text = node_tree.strip()
        if text.startswith("(") and text.endswith(")"):
            return text[1:-1]
        return text

    def fetch_view_node_tree(self, view_name: str) -> str:
        """Return the node tree of the ``_RETURN`` rule of *view_name*.

        Raises LookupError if the relation has no such rule.
        """
        if view_name in self.node_trees:
            return self.node_trees[view_name]

        cur = self.cursor()
        try:
            cur.execute(self.VIEW_RULE_QUERY, [view_name])
            row = cur.fetchone()
        finally:
            cur.close()

        if row is None:
            raise LookupError(f"No view rule found for {view_name}")

        node_tree = self.unwrap_list(row[0])
        self.node_trees[view_name] = node_tree
        return node_tree
