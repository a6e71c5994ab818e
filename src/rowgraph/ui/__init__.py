"""Command line interface for rowgraph."""
