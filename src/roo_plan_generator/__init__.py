"""Roo plan generator: turns a project idea into Roo Code planning artifacts."""

__version__ = "0.1.0"
