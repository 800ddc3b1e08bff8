"""Convert PostgreSQL node trees into Graphviz graphs."""

__version__ = "0.3.0"
