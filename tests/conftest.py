"""Shared fixtures for bibfetch tests."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from bibfetch import AsyncHttpClient

ARXIV_HOST = "export.arxiv.org"
DOI_HOST = "doi.org"

EMPTY_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/">
  <title type="html">ArXiv Query: id_list=</title>
  <id>http://arxiv.org/api/empty</id>
  <opensearch:totalResults>0</opensearch:totalResults>
</feed>
"""


def build_arxiv_feed(
    arxiv_id: str = "1712.01815v1",
    title: str = "Mastering Chess and Shogi by Self-Play with a\n  General Reinforcement Learning Algorithm",
    authors: tuple[str, ...] = ("David Silver", "Thomas Hubert", "Julian Schrittwieser"),
    published: str = "2017-12-05T17:38:43Z",
    primary_category: str | None = "cs.AI",
    categories: tuple[str, ...] = ("cs.AI", "cs.LG"),
    doi: str | None = None,
) -> str:
    """Render a minimal arXiv API Atom feed with one entry."""
    author_xml = "".join(f"<author><name>{a}</name></author>" for a in authors)
    primary_xml = (
        f'<arxiv:primary_category term="{primary_category}" scheme="http://arxiv.org/schemas/atom"/>'
        if primary_category
        else ""
    )
    category_xml = "".join(f'<category term="{c}" scheme="http://arxiv.org/schemas/atom"/>' for c in categories)
    doi_xml = f"<arxiv:doi>{doi}</arxiv:doi>" if doi else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title type="html">ArXiv Query: id_list={arxiv_id}</title>
  <entry>
    <id>http://arxiv.org/abs/{arxiv_id}</id>
    <updated>{published}</updated>
    <published>{published}</published>
    <title>{title}</title>
    <summary>An abstract.</summary>
    {author_xml}
    {doi_xml}
    {primary_xml}
    {category_xml}
  </entry>
</feed>
"""


def build_doi_bibtex(key: str = "Lamport_1978", doi: str = "10.1145/359327.359336") -> str:
    """Render a one-line BibTeX record the way doi.org returns it."""
    return (
        f" @article{{{key}, title={{Example Title}}, volume={{21}}, DOI={{{doi}}}, number={{7}}, "
        f"journal={{Communications of the ACM}}, author={{Lamport, Leslie}}, year={{1978}}, month=jul, "
        f"pages={{558-565}} }}\n"
    )


class FakeProviderServer:
    """Serves canned arXiv/doi.org responses through httpx.MockTransport.

    Attributes:
        arxiv: arXiv id -> (status, body); unknown ids get an empty feed
        doi: DOI -> (status, body); unknown DOIs get a 404
        delays: id or DOI -> seconds to wait before answering
        errors: id or DOI -> exception class raised instead of answering
        calls: (host, key, accept header) per request, in arrival order
        completed: keys in the order responses were produced
    """

    def __init__(self) -> None:
        self.arxiv: dict[str, tuple[int, str]] = {}
        self.doi: dict[str, tuple[int, str]] = {}
        self.delays: dict[str, float] = {}
        self.errors: dict[str, type[httpx.HTTPError]] = {}
        self.calls: list[tuple[str, str, str | None]] = []
        self.completed: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == ARXIV_HOST:
            key = request.url.params["id_list"]
            status, body = self.arxiv.get(key, (200, EMPTY_FEED))
        elif host == DOI_HOST:
            key = request.url.path.lstrip("/")
            status, body = self.doi.get(key, (404, "DOI Not Found"))
        else:
            return httpx.Response(500, text="unexpected host")
        self.calls.append((host, key, request.headers.get("accept")))

        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)
        if key in self.errors:
            raise self.errors[key]("simulated failure", request=request)
        self.completed.append(key)
        return httpx.Response(status, text=body)

    def client(self) -> AsyncHttpClient:
        return AsyncHttpClient(transport=httpx.MockTransport(self))


@pytest.fixture
def server():
    """A fresh fake provider server."""
    return FakeProviderServer()


@pytest.fixture
def http(server):
    """AsyncHttpClient wired to the fake provider server."""
    return server.client()


@pytest.fixture
def make_arxiv_feed():
    """Factory fixture for arXiv Atom feeds."""
    return build_arxiv_feed


@pytest.fixture
def make_doi_bibtex():
    """Factory fixture for doi.org BibTeX bodies."""
    return build_doi_bibtex


@pytest.fixture
def empty_feed():
    """An arXiv feed with no entries (unknown id)."""
    return EMPTY_FEED


@pytest.fixture
def logger():
    """Create a test logger."""
    return logging.getLogger("test")
