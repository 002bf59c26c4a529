"""Normalize, index, search and summarize Claude Code and Codex session logs."""

__version__ = "0.1.0"
