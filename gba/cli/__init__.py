"""Command line interface for gba."""
