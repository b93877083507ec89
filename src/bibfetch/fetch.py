#!/usr/bin/env python3
"""
bibfetch — Print BibTeX for arXiv IDs and DOIs.

Each identifier may be a bare ID, a labelled ID (arXiv:..., doi:...) or a URL
(https://arxiv.org/abs/..., https://doi.org/...). All identifiers are fetched
concurrently; records are printed in the order they were given, separated by
blank lines. Identifiers that cannot be resolved are reported on stderr and
make the command exit with status 1.

Examples
--------
$ bibfetch 1712.01815
$ bibfetch arXiv:2105.11572 https://doi.org/10.1145/359327.359336
$ bibfetch --no-published-doi hep-th/9910001 --verbose
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TextIO

from bibfetch._version import __version__
from bibfetch.resolver import ResolutionBatch, ResolverConfig, resolve
from bibfetch.utils import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bibfetch",
        description="Fetch BibTeX records for DOIs and arXiv identifiers.",
    )
    p.add_argument(
        "identifiers",
        nargs="+",
        metavar="ID",
        help="DOI(s) or arXiv identifier(s) to search for, separated by spaces",
    )
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"HTTP timeout seconds per request (default {DEFAULT_TIMEOUT:g})",
    )
    p.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header sent to providers")
    p.add_argument(
        "--no-published-doi",
        action="store_true",
        help="Always build arXiv records from arXiv metadata, even when arXiv lists a published DOI",
    )
    return p


def init_logging(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logging.getLogger("bibfetch")


def config_from_args(args: argparse.Namespace) -> ResolverConfig:
    return ResolverConfig(
        timeout=args.timeout,
        user_agent=args.user_agent,
        prefer_published_doi=not args.no_published_doi,
    )


def print_batch(batch: ResolutionBatch, logger: logging.Logger, out: TextIO | None = None) -> int:
    """Print records in input order and return the number of failures.

    Successful records go to ``out`` separated by blank lines; failures are
    logged at their position.
    """
    out = out or sys.stdout
    first = True
    for record in batch:
        if not record.ok:
            out.flush()
            logger.error("%s: %s", record.token, record.reason)
            continue
        if not first:
            out.write("\n")
        out.write(record.bibtex.rstrip() + "\n")
        first = False
    out.flush()
    return len(batch.failures)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for bibfetch.

    Args:
        argv: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code: 0=all identifiers resolved, 1=at least one failed.
    """
    args = build_arg_parser().parse_args(argv)
    logger = init_logging(args.verbose)

    batch = resolve(args.identifiers, config=config_from_args(args), logger=logger)
    failures = print_batch(batch, logger)
    if failures:
        logger.debug("%d of %d identifier(s) failed", failures, len(batch))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
