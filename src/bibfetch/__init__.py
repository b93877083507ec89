"""bibfetch - BibTeX records for arXiv IDs and DOIs.

This package provides:
- Classification of raw tokens (bare IDs, labels, URLs) into arXiv IDs or DOIs
- Provider clients for the arXiv export API and doi.org content negotiation
- A resolver that fetches many identifiers concurrently and keeps input order

Example usage:
    from bibfetch import classify, resolve

    classify("https://arxiv.org/abs/1712.01815")  # Identifier(ARXIV, '1712.01815')

    batch = resolve(["1712.01815", "doi:10.1145/359327.359336", "not-an-id"])
    for record in batch:
        print(record.bibtex if record.ok else record.reason)
"""

from bibfetch._version import __version__

# Identifier classification
from bibfetch.identifiers import (
    ClassificationError,
    Identifier,
    IdentifierKind,
    PositionedIdentifier,
    classify,
    classify_all,
)

# Provider clients and errors
from bibfetch.providers import (
    ArxivProvider,
    DoiProvider,
    MalformedResponseError,
    NotFoundError,
    Provider,
    ProviderError,
    RateLimitedError,
    TransportError,
    UpstreamError,
    arxiv_entry_to_bibtex,
    parse_arxiv_feed,
)

# Resolution
from bibfetch.resolver import (
    CitationRecord,
    ResolutionBatch,
    Resolver,
    ResolverConfig,
    resolve,
    resolve_async,
)

# Shared utilities
from bibfetch.utils import (
    AsyncHttpClient,
    doi_normalize,
    doi_url,
    match_arxiv_id,
    match_doi,
)

__all__ = [
    "__version__",
    # Identifiers
    "ClassificationError",
    "Identifier",
    "IdentifierKind",
    "PositionedIdentifier",
    "classify",
    "classify_all",
    # Providers
    "ArxivProvider",
    "DoiProvider",
    "MalformedResponseError",
    "NotFoundError",
    "Provider",
    "ProviderError",
    "RateLimitedError",
    "TransportError",
    "UpstreamError",
    "arxiv_entry_to_bibtex",
    "parse_arxiv_feed",
    # Resolution
    "CitationRecord",
    "ResolutionBatch",
    "Resolver",
    "ResolverConfig",
    "resolve",
    "resolve_async",
    # Utilities
    "AsyncHttpClient",
    "doi_normalize",
    "doi_url",
    "match_arxiv_id",
    "match_doi",
]
