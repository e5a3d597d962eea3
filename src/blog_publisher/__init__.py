"""Tooling for a Markdown blog: load, lint, render and preview posts."""

__version__ = "0.1.0"
