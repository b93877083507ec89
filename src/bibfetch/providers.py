"""Provider clients that fetch BibTeX for a single identifier.

Two providers are implemented:
- ArxivProvider: queries the arXiv export API (Atom) and derives a BibTeX record
- DoiProvider: asks doi.org for BibTeX via content negotiation

Every failure is raised as a ProviderError subclass; nothing is retried.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod

import bibtexparser
import httpx
from bibtexparser.bibdatabase import BibDatabase
from bibtexparser.bparser import BibTexParser
from bibtexparser.bwriter import BibTexWriter

from bibfetch.identifiers import Identifier, IdentifierKind
from bibfetch.utils import (
    ARXIV_API,
    ATOM_ACCEPT,
    BIBTEX_ACCEPT,
    AsyncHttpClient,
    arxiv_abs_url,
    bibtex_person,
    collapse_whitespace,
    doi_normalize,
    doi_url,
    last_name,
)

ATOM_NS = "http://www.w3.org/2005/Atom"
ARXIV_NS = "http://arxiv.org/schemas/atom"
_NS = {"atom": ATOM_NS, "arxiv": ARXIV_NS}

# Field order for derived arXiv records
ARXIV_FIELD_ORDER = ["title", "author", "year", "eprint", "archivePrefix", "primaryClass", "url"]


# ------------- Errors -------------


class ProviderError(Exception):
    """Base class for failures while fetching a record from a provider."""

    reason = "provider error"

    def __init__(self, identifier: Identifier, detail: str = "") -> None:
        self.identifier = identifier
        self.detail = detail
        message = f"{self.reason} for {identifier}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TransportError(ProviderError):
    """The provider could not be reached (connection, timeout, protocol)."""

    reason = "network failure"


class NotFoundError(ProviderError):
    """The provider reports that the identifier does not exist."""

    reason = "not found"


class RateLimitedError(ProviderError):
    """The provider throttled the request (HTTP 429)."""

    reason = "rate limited"


class UpstreamError(ProviderError):
    """The provider answered with an unexpected status code."""

    reason = "unexpected upstream status"

    def __init__(self, identifier: Identifier, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        super().__init__(identifier, detail or f"HTTP {status_code}")


class MalformedResponseError(ProviderError):
    """The response body could not be turned into BibTeX."""

    reason = "malformed response"


def check_status(identifier: Identifier, resp: httpx.Response) -> None:
    """Map a non-success HTTP status to the matching ProviderError."""
    code = resp.status_code
    if 200 <= code < 300:
        return
    if code in (404, 410):
        raise NotFoundError(identifier, f"HTTP {code}")
    if code == 429:
        raise RateLimitedError(identifier, f"HTTP {code}")
    raise UpstreamError(identifier, code)


# ------------- BibTeX IO -------------


class BibLoader:
    def loads(self, text: str) -> BibDatabase:
        # BibTexParser accumulates entries across parses, so never share one
        parser = BibTexParser(common_strings=True)
        parser.customization = None
        return bibtexparser.loads(text, parser=parser)


class BibWriter:
    def __init__(self, display_order: list[str] | None = None) -> None:
        self.writer = BibTexWriter()
        self.writer.indent = "  "
        self.writer.order_entries_by = None
        self.writer.comma_first = False
        self.writer.display_order = display_order or []

    def dumps(self, db: BibDatabase) -> str:
        return bibtexparser.dumps(db, writer=self.writer)

    def dumps_entry(self, entry: dict[str, str]) -> str:
        db = BibDatabase()
        db.entries = [entry]
        return self.dumps(db).strip()


# ------------- Providers -------------


class Provider(ABC):
    """Fetches the BibTeX record for one kind of identifier."""

    kind: IdentifierKind

    def __init__(self, http: AsyncHttpClient, logger: logging.Logger | None = None) -> None:
        self.http = http
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    async def fetch(self, identifier: Identifier) -> str:
        """Fetch the BibTeX record for ``identifier``.

        Raises:
            ProviderError: On any failure
        """

    async def _get(self, identifier: Identifier, url: str, params: dict[str, str] | None, accept: str) -> httpx.Response:
        """Single GET with transport failures mapped to TransportError."""
        self.logger.debug("GET %s params=%s accept=%s", url, params, accept)
        try:
            resp = await self.http.get(url, params=params, accept=accept)
        except httpx.HTTPError as e:
            raise TransportError(identifier, str(e) or type(e).__name__) from e
        self.logger.debug("%s -> HTTP %d", identifier, resp.status_code)
        check_status(identifier, resp)
        return resp


class DoiProvider(Provider):
    """Resolves DOIs through doi.org content negotiation."""

    kind = IdentifierKind.DOI

    def __init__(self, http: AsyncHttpClient, logger: logging.Logger | None = None) -> None:
        super().__init__(http, logger)
        self.loader = BibLoader()

    async def fetch(self, identifier: Identifier) -> str:
        resp = await self._get(identifier, doi_url(identifier.value), None, BIBTEX_ACCEPT)
        text = resp.text.strip()
        if not text.startswith("@"):
            if "cannot be found" in text.lower():
                raise NotFoundError(identifier, "DOI cannot be found")
            raise MalformedResponseError(identifier, "response is not BibTeX")
        try:
            db = self.loader.loads(text)
        except Exception as e:
            raise MalformedResponseError(identifier, f"unparseable BibTeX: {e}") from e
        if not db.entries:
            raise MalformedResponseError(identifier, "no BibTeX entry in response")
        return text


class ArxivProvider(Provider):
    """Resolves arXiv IDs through the arXiv export API.

    arXiv does not serve BibTeX, so the record is derived from the Atom entry.
    When the entry lists a published DOI and ``doi_provider`` is given, the
    DOI's record is returned instead, falling back to the derived record if
    that lookup fails.
    """

    kind = IdentifierKind.ARXIV

    def __init__(
        self,
        http: AsyncHttpClient,
        logger: logging.Logger | None = None,
        doi_provider: DoiProvider | None = None,
    ) -> None:
        super().__init__(http, logger)
        self.doi_provider = doi_provider
        self.writer = BibWriter(display_order=ARXIV_FIELD_ORDER)

    async def fetch(self, identifier: Identifier) -> str:
        resp = await self._get(identifier, ARXIV_API, {"id_list": identifier.value}, ATOM_ACCEPT)
        entry = parse_arxiv_feed(identifier, resp.text)

        doi = doi_normalize(entry.findtext("arxiv:doi", default="", namespaces=_NS))
        if doi and self.doi_provider is not None:
            self.logger.debug("%s has published DOI %s", identifier, doi)
            try:
                return await self.doi_provider.fetch(Identifier(IdentifierKind.DOI, doi))
            except ProviderError as e:
                self.logger.debug("Published DOI lookup failed for %s, using arXiv metadata: %s", identifier, e)

        return self.writer.dumps_entry(arxiv_entry_to_bibtex(identifier, entry))


# ------------- arXiv Atom handling -------------


def parse_arxiv_feed(identifier: Identifier, xml_text: str) -> ET.Element:
    """Return the single Atom <entry> for ``identifier``.

    Raises:
        MalformedResponseError: If the feed is not valid Atom XML
        NotFoundError: If the feed has no entry or an arXiv error entry
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MalformedResponseError(identifier, f"invalid Atom feed: {e}") from e
    if root.tag != f"{{{ATOM_NS}}}feed":
        raise MalformedResponseError(identifier, "response is not an Atom feed")

    entry = root.find("atom:entry", _NS)
    if entry is None:
        raise NotFoundError(identifier, "no arXiv entry")
    entry_id = entry.findtext("atom:id", default="", namespaces=_NS)
    # arXiv reports bad IDs as an entry whose id points at its error docs
    if "/api/errors" in entry_id:
        summary = collapse_whitespace(entry.findtext("atom:summary", default="", namespaces=_NS))
        raise NotFoundError(identifier, summary)
    return entry


def arxiv_entry_to_bibtex(identifier: Identifier, entry: ET.Element) -> dict[str, str]:
    """Build a bibtexparser entry dict from an arXiv Atom entry.

    The key is '<FirstAuthorSurname>_<year>'; ``eprint`` and ``url`` use the
    identifier as requested, so an explicit version suffix is preserved.

    Raises:
        MalformedResponseError: If required metadata is missing
    """
    entry_id = collapse_whitespace(entry.findtext("atom:id", default="", namespaces=_NS))
    title = collapse_whitespace(entry.findtext("atom:title", default="", namespaces=_NS))
    published = collapse_whitespace(entry.findtext("atom:published", default="", namespaces=_NS))
    authors = [
        collapse_whitespace(a.findtext("atom:name", default="", namespaces=_NS))
        for a in entry.findall("atom:author", _NS)
    ]
    authors = [a for a in authors if a]

    if not entry_id or not title or not authors or len(published) < 4 or not published[:4].isdigit():
        raise MalformedResponseError(identifier, "arXiv entry lacks id, title, authors or date")
    year = published[:4]

    primary = entry.find("arxiv:primary_category", _NS)
    category = primary.get("term") if primary is not None else None
    if not category:
        first = entry.find("atom:category", _NS)
        category = first.get("term") if first is not None else None

    fields = {
        "ENTRYTYPE": "article",
        "ID": f"{last_name(authors[0])}_{year}",
        "title": title,
        "author": " and ".join(bibtex_person(a) for a in authors),
        "year": year,
        "eprint": identifier.value,
        "archivePrefix": "arXiv",
        "url": arxiv_abs_url(identifier.value),
    }
    if category:
        fields["primaryClass"] = category
    return fields
