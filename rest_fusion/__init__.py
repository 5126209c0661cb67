"""Rest-Fusion: run HTTP requests written in plain-text files."""

__version__ = "0.1.0"
