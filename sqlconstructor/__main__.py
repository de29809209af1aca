# File: sqlconstructor/__main__.py
"""
SQL Constructor - Module entry point.

Allows running the CLI directly via::

    python -m sqlconstructor render -s schema.json -Q query.json
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from sqlconstructor.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
