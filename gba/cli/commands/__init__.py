"""gba commands."""
