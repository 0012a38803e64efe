# File: apiforge/__main__.py
"""
NexaFlow APIForge - Module entry point.

Allows running the generator directly via::

    python -m apiforge --schema project.yaml --output ./service

This module simply delegates to the CLI entry point defined in ``apiforge.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from apiforge.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
