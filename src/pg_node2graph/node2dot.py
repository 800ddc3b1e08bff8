#!/usr/bin/env python3
#
# PostgreSQL Node Tree to DOT Converter
#
# This tool reads one node tree printed by PostgreSQL from a file or
# standard input and writes its graph in the dot language to standard
# output, e.g. to pipe it into Graphviz yourself.
###############################################

import argparse
import sys

from pg_node2graph import __version__
from pg_node2graph.dot_graph import DotGraphWriter
from pg_node2graph.helper import ColorMap
from pg_node2graph.node_tree import NodeTreeError, NodeTreeParser

EXAMPLES = """
usage examples:
# Print the graph of a node tree
pg_node2dot query.txt

# Read the node tree from a pipe and render it
cat plan.txt | pg_node2dot -c | dot -T svg -o plan.svg

# Hide NULL fields and use a custom color map
pg_node2dot -s -c -n colors.map < plan.txt
"""

parser = argparse.ArgumentParser(
    description="PostgreSQL Node Tree to DOT Converter - Prints the graph of a node tree",
    formatter_class=argparse.RawDescriptionHelpFormatter,
    epilog=EXAMPLES,
)
parser.add_argument(
    "-V",
    "--version",
    action="version",
    version=f"{parser.prog} ({__version__})",
)
parser.add_argument(
    "-c", "--color", action="store_true", help="render the output with color"
)
parser.add_argument(
    "-n",
    "--node-color-map",
    dest="color_map",
    type=str,
    metavar="FILE",
    help="color mapping file for nodes (with -c option)",
)
parser.add_argument(
    "-s", "--skip-empty", action="store_true", help="skip empty fields"
)
parser.add_argument(
    "-d",
    "--debug",
    action="store_true",
    help="trace the parser stack on stderr",
)
parser.add_argument(
    "input",
    nargs="?",
    type=argparse.FileType("r", encoding="utf-8"),
    default=sys.stdin,
    metavar="FILE",
    help="file containing a node tree (default: standard input)",
)


def node_tree_to_dot(text, color_map=None, skip_empty=False, debug=False):
    """Return the dot source for the node tree in *text*."""
    root = NodeTreeParser(debug=debug).parse_text(text)
    return DotGraphWriter(color_map, skip_empty=skip_empty).write(root).source


def main():
    """Main entry point"""
    args = parser.parse_args()

    color_map = None
    if args.color:
        try:
            color_map = (
                ColorMap.load_from_file(args.color_map)
                if args.color_map
                else ColorMap.default()
            )
        except OSError as e:
            print(f"{parser.prog}: {e}", file=sys.stderr)
            sys.exit(1)

    with args.input:
        text = args.input.read()

    try:
        source = node_tree_to_dot(text, color_map, args.skip_empty, args.debug)
    except NodeTreeError as e:
        print(f"{parser.prog}: parse node tree failed: {e}", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(source)


if __name__ == "__main__":
    main()
