"""Core functionality for gba: state store, locking, resume decisions and execution."""
