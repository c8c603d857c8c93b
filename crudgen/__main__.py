# File: crudgen/__main__.py
"""
crudgen - Module entry point.

Allows running the generator directly via::

    python -m crudgen generate -C ./blog --all
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from crudgen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
