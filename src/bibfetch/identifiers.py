"""Classification of raw user tokens into typed arXiv/DOI identifiers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from bibfetch.utils import (
    ARXIV_LABEL_RE,
    ARXIV_URL_RE,
    DOI_LABEL_RE,
    DOI_URL_RE,
    match_arxiv_id,
    match_doi,
)


class IdentifierKind(Enum):
    """Kind of publication identifier; selects the provider that resolves it."""

    ARXIV = "arxiv"
    DOI = "doi"


@dataclass(frozen=True)
class Identifier:
    """A normalized, bare publication identifier.

    Attributes:
        kind: Which identifier scheme the value belongs to
        value: Canonical bare identifier (e.g. '2105.11572', '10.1145/359327.359336')
    """

    kind: IdentifierKind
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PositionedIdentifier:
    """An identifier together with the position of the token it came from."""

    index: int
    token: str
    identifier: Identifier


class ClassificationError(ValueError):
    """Raised when a token is neither an arXiv ID nor a DOI."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"unrecognized identifier {token!r}: not a DOI or arXiv ID")


# Explicit URL forms win over scheme labels, which win over bare heuristics.
_PREFIXED_FORMS = (
    (ARXIV_URL_RE, IdentifierKind.ARXIV),
    (DOI_URL_RE, IdentifierKind.DOI),
    (ARXIV_LABEL_RE, IdentifierKind.ARXIV),
    (DOI_LABEL_RE, IdentifierKind.DOI),
)

_MATCHERS = {
    IdentifierKind.ARXIV: match_arxiv_id,
    IdentifierKind.DOI: match_doi,
}


def classify(token: str) -> Identifier:
    """Parse a raw token into a normalized Identifier.

    Accepts bare IDs ('1712.01815', 'hep-th/9910001', '10.1145/359327.359336'),
    scheme labels ('arXiv:1712.01815', 'doi:10.1145/...') and URLs
    ('https://arxiv.org/abs/...', 'https://doi.org/...').

    Args:
        token: Raw user input

    Returns:
        The normalized Identifier

    Raises:
        ClassificationError: If the token matches neither syntax
    """
    text = (token or "").strip()

    for pattern, kind in _PREFIXED_FORMS:
        m = pattern.match(text)
        if m:
            # A token that announces its kind must be a valid ID of that kind
            value = _MATCHERS[kind](m.group("id"))
            if value is None:
                raise ClassificationError(token)
            return Identifier(kind, value)

    text = text.rstrip("/")
    for kind, matcher in _MATCHERS.items():
        value = matcher(text)
        if value is not None:
            return Identifier(kind, value)
    raise ClassificationError(token)


def classify_all(tokens: list[str]) -> tuple[list[PositionedIdentifier], dict[int, ClassificationError]]:
    """Classify a batch of tokens, keeping each token's position.

    Returns:
        Tuple of (classified identifiers, classification errors by index)
    """
    positioned: list[PositionedIdentifier] = []
    errors: dict[int, ClassificationError] = {}
    for index, token in enumerate(tokens):
        try:
            positioned.append(PositionedIdentifier(index, token, classify(token)))
        except ClassificationError as e:
            errors[index] = e
    return positioned, errors
