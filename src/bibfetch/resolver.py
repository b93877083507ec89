"""Concurrent resolution of identifier batches into ordered citation records."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from bibfetch.identifiers import (
    Identifier,
    IdentifierKind,
    PositionedIdentifier,
    classify_all,
)
from bibfetch.providers import ArxivProvider, DoiProvider, Provider
from bibfetch.utils import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, AsyncHttpClient


@dataclass(frozen=True)
class CitationRecord:
    """Outcome of resolving one input token.

    Exactly one of ``bibtex`` and ``error`` is set.

    Attributes:
        index: Position of the token in the input
        token: The raw token as given
        identifier: The classified identifier (None if classification failed)
        bibtex: BibTeX text on success
        error: ClassificationError or ProviderError on failure
    """

    index: int
    token: str
    identifier: Identifier | None = None
    bibtex: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        """Human-readable failure reason (empty on success)."""
        return str(self.error) if self.error is not None else ""


@dataclass(frozen=True)
class ResolutionBatch(Sequence):
    """Citation records ordered by input position."""

    records: tuple[CitationRecord, ...]

    def __getitem__(self, i):
        return self.records[i]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[CitationRecord]:
        return iter(self.records)

    @property
    def successes(self) -> list[CitationRecord]:
        return [r for r in self.records if r.ok]

    @property
    def failures(self) -> list[CitationRecord]:
        return [r for r in self.records if not r.ok]

    @property
    def ok(self) -> bool:
        """True if every record resolved."""
        return not self.failures


@dataclass
class ResolverConfig:
    """Settings for a resolution run.

    Attributes:
        timeout: Per-request HTTP timeout in seconds
        user_agent: User-Agent header sent to providers
        prefer_published_doi: Resolve arXiv papers through their published DOI when arXiv lists one
    """

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    prefer_published_doi: bool = True


class Resolver:
    """Resolves batches of raw tokens into ordered citation records.

    All provider fetches of a batch run concurrently; each result is written
    into the slot of its input position, so output order never depends on
    completion order and one failure never affects another token.
    """

    def __init__(
        self,
        http: AsyncHttpClient,
        logger: logging.Logger | None = None,
        config: ResolverConfig | None = None,
        providers: dict[IdentifierKind, Provider] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            http: AsyncHttpClient shared by the default providers
            logger: Logger for debug/info messages
            config: ResolverConfig; defaults are used when omitted
            providers: Override the provider used for each identifier kind
        """
        self.http = http
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or ResolverConfig()
        if providers is None:
            doi = DoiProvider(http, self.logger)
            arxiv = ArxivProvider(
                http,
                self.logger,
                doi_provider=doi if self.config.prefer_published_doi else None,
            )
            providers = {IdentifierKind.DOI: doi, IdentifierKind.ARXIV: arxiv}
        self.providers = providers

    async def _fetch_one(self, item: PositionedIdentifier) -> CitationRecord:
        try:
            provider = self.providers[item.identifier.kind]
            bibtex = await provider.fetch(item.identifier)
        except Exception as e:
            self.logger.debug("Resolving %s failed: %s", item.token, e)
            return CitationRecord(item.index, item.token, item.identifier, error=e)
        return CitationRecord(item.index, item.token, item.identifier, bibtex=bibtex)

    async def resolve_async(self, tokens: Sequence[str]) -> ResolutionBatch:
        """Classify and resolve ``tokens`` concurrently.

        Args:
            tokens: Raw identifier tokens in output order

        Returns:
            ResolutionBatch with one record per token, in input order
        """
        slots: list[CitationRecord | None] = [None] * len(tokens)

        positioned, errors = classify_all(list(tokens))
        for index, error in errors.items():
            self.logger.debug("Could not classify %r", tokens[index])
            slots[index] = CitationRecord(index, tokens[index], error=error)

        async def run(item: PositionedIdentifier) -> None:
            slots[item.index] = await self._fetch_one(item)

        self.logger.debug("Dispatching %d fetch(es)", len(positioned))
        await asyncio.gather(*(run(item) for item in positioned))

        # Every slot is filled: each index is either a classification error or a fetch
        return ResolutionBatch(tuple(r for r in slots if r is not None))

    def resolve(self, tokens: Sequence[str]) -> ResolutionBatch:
        """Synchronous wrapper around :meth:`resolve_async`.

        The HTTP client is closed afterwards since its connections belong to
        the event loop created here.
        """

        async def _run() -> ResolutionBatch:
            try:
                return await self.resolve_async(tokens)
            finally:
                await self.http.close()

        return asyncio.run(_run())


async def resolve_async(
    tokens: Sequence[str],
    config: ResolverConfig | None = None,
    logger: logging.Logger | None = None,
) -> ResolutionBatch:
    """Resolve ``tokens`` with a resolver owning its own HTTP client."""
    config = config or ResolverConfig()
    async with AsyncHttpClient(timeout=config.timeout, user_agent=config.user_agent) as http:
        resolver = Resolver(http, logger=logger, config=config)
        return await resolver.resolve_async(tokens)


def resolve(
    tokens: Sequence[str],
    config: ResolverConfig | None = None,
    logger: logging.Logger | None = None,
) -> ResolutionBatch:
    """Resolve ``tokens`` into a ResolutionBatch ordered like the input.

    Example:
        batch = resolve(["2105.11572", "10.1145/359327.359336"])
        for record in batch:
            print(record.bibtex if record.ok else record.reason)
    """
    return asyncio.run(resolve_async(tokens, config=config, logger=logger))
