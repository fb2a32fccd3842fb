"""CLI entry for King's Sword."""

from .main import cli


def main() -> None:
    """Console entry point."""
    cli()

__all__ = ["cli", "main"]
