#!/usr/bin/env python3
"""CLI entry point for the bibfetch command.

Prints BibTeX records for DOIs and arXiv identifiers.
"""

import sys


def main() -> None:
    """Entry point for bibfetch command."""
    from bibfetch.fetch import main as fetch_main

    sys.exit(fetch_main())


if __name__ == "__main__":
    main()
