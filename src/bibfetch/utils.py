"""Shared utilities for bibfetch.

Includes the identifier syntax patterns, DOI/arXiv helpers, author name
handling and the async HTTP client used by the provider clients.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

import httpx

# ------------- Constants & Regex -------------

ARXIV_NEW_RE = re.compile(r"(?P<id>\d{4}\.\d{4,5})(?P<version>v\d+)?")
ARXIV_OLD_RE = re.compile(
    r"""
    (?P<id>
        (?P<archive>[a-z]+(?:-[a-z]+)?)  # archive, e.g. math, hep-th
        (?:\.[a-z]{2})?                  # subject class, e.g. math.GT
        /\d{7}
    )
    (?P<version>v\d+)?
    """,
    re.IGNORECASE | re.VERBOSE,
)

DOI_RE = re.compile(r"10\.\d{4,9}/[-._;()/:\w]+")
DOI_WILEY_RE = re.compile(r"10\.1002/\S+")

ARXIV_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.|export\.)?arxiv\.org/(?:abs|pdf)/(?P<id>.+?)(?:\.pdf)?/*$",
    re.IGNORECASE,
)
DOI_URL_RE = re.compile(r"^(?:https?://)?(?:dx\.)?doi\.org/(?P<id>.+?)/*$", re.IGNORECASE)
ARXIV_LABEL_RE = re.compile(r"^arxiv:\s*(?P<id>.+?)/*$", re.IGNORECASE)
DOI_LABEL_RE = re.compile(r"^doi:\s*(?P<id>.+?)/*$", re.IGNORECASE)

# API endpoints
ARXIV_API = "http://export.arxiv.org/api/query"
ARXIV_ABS_URL = "https://arxiv.org/abs"
DOI_RESOLVER = "https://doi.org"

BIBTEX_ACCEPT = "text/bibliography; style=bibtex"
ATOM_ACCEPT = "application/atom+xml"

DEFAULT_USER_AGENT = "bibfetch/0.1 (async)"
DEFAULT_TIMEOUT = 20.0


# ------------- DOI & arXiv Utilities -------------


def doi_normalize(doi: str | None) -> str | None:
    """Normalize a DOI by removing URL prefix and lowercasing."""
    if not doi:
        return None
    d = doi.strip()
    d = re.sub(r"^https?://(dx\.)?doi\.org/", "", d, flags=re.IGNORECASE)
    return d.lower()


def doi_url(doi: str) -> str:
    """Convert a DOI to a URL."""
    return f"{DOI_RESOLVER}/{quote(doi, safe='/')}"


def arxiv_abs_url(arxiv_id: str) -> str:
    """Convert an arXiv ID to its abstract page URL."""
    return f"{ARXIV_ABS_URL}/{arxiv_id}"


def match_arxiv_id(text: str) -> str | None:
    """Return the canonical form of ``text`` if it is exactly an arXiv ID.

    Old-style archive names are lowercased; the version suffix is kept.
    """
    m = ARXIV_NEW_RE.fullmatch(text)
    if m:
        return m.group("id") + (m.group("version") or "")
    m = ARXIV_OLD_RE.fullmatch(text)
    if m:
        archive = m.group("archive")
        rest = m.group("id")[len(archive) :]
        # Subject class keeps its conventional upper case (math.GT)
        if rest.startswith("."):
            rest = rest[:1] + rest[1:3].upper() + rest[3:]
        return archive.lower() + rest + (m.group("version") or "").lower()
    return None


def match_doi(text: str) -> str | None:
    """Return the normalized form of ``text`` if it is exactly a DOI."""
    if DOI_RE.fullmatch(text) or DOI_WILEY_RE.fullmatch(text):
        return doi_normalize(text)
    return None


# ------------- Text & Author Handling -------------


def collapse_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace (including newlines) into single spaces."""
    return " ".join((text or "").split())


def bibtex_person(name: str) -> str:
    """Convert 'Given Family' into the BibTeX 'Family, Given' form."""
    parts = name.split()
    if len(parts) >= 2:
        return f"{parts[-1]}, {' '.join(parts[:-1])}"
    return parts[0] if parts else ""


def last_name(name: str) -> str:
    """Family name of a 'Given Family' person name."""
    parts = name.split()
    return parts[-1] if parts else ""


# ------------- Async HTTP Client -------------


class AsyncHttpClient:
    """Async HTTP client wrapping a lazily created ``httpx.AsyncClient``.

    Each request is made exactly once. Status codes are not interpreted here;
    callers map them to their own error types.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            transport: Optional custom httpx transport (used by tests)
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                # Waiting for a pool slot is not bounded by the request timeout
                timeout=httpx.Timeout(self.timeout, pool=None),
                limits=httpx.Limits(max_connections=None),
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        accept: str = "application/json",
    ) -> httpx.Response:
        """Make a single GET request.

        Args:
            url: Request URL
            params: Query parameters
            accept: Accept header value

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPError: On transport-level failures
        """
        return await self.client.get(url, params=params, headers={"Accept": accept})

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> AsyncHttpClient:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        await self.close()
