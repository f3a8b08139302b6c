"""Authentication console with a versioned relational schema."""

from .cli import cli, main

__all__ = ["cli", "main"]
