"""
HTTP Accept header parsing and media type negotiation utilities.
"""
import re
from typing import Any, NamedTuple, Sequence

# Scores for a single media range against an alternative.
# exact type/subtype (+ params bonus) > type/* > */* > no match
EXACT_MATCH_SCORE = 8 + 4
SUBTYPE_WILDCARD_SCORE = 8 + 3
TYPE_WILDCARD_SCORE = 8
NO_MATCH_SCORE = 0

# Provisional score for an alternative no media range overlaps with
EXCLUDED = -1

# q-value literals: "1", "-2", "0.5", "1.0e-1" (no "1.", ".5", "1_0")
INT_RE = re.compile(r"[+-]?[0-9]+")
FLOAT_RE = re.compile(r"[+-]?[0-9]+\.[0-9]+(?:[eE][+-]?[0-9]+)?")

Alternative = str | bytes | tuple[str | bytes, Any]


class MalformedRangeError(ValueError):
    """Raised when a media range is not of the form "type/subtype"."""

    def __init__(self, media_range: str):
        self.media_range = media_range
        super().__init__(f"malformed media range: {media_range!r}")


class MediaRange(NamedTuple):
    type: str
    subtype: str
    q: int | float
    params: tuple[tuple[str, str], ...]


def ensure_str(value: str | bytes) -> str:
    if isinstance(value, bytes):
        # Header octets outside ASCII are opaque, latin-1 keeps them intact
        return value.decode("latin-1")
    return value


def parse_q(value: str) -> int | float:
    """
    Parses a q-value. Values with a decimal point are floats, others ints.
    Anything that is not a plain ASCII number literal degrades to 0 instead
    of failing the whole header.
    """
    if INT_RE.fullmatch(value):
        return int(value)
    if FLOAT_RE.fullmatch(value):
        return float(value)
    return 0


def parse_param(param: str) -> tuple[str, str] | None:
    """
    Parses a "name=value" parameter, or returns None if it is malformed.
    """
    tokens = [token.strip() for token in param.split("=")]
    tokens = [token for token in tokens if token]
    if len(tokens) != 2:
        return None
    return (tokens[0], tokens[1])


def parse_media_range(media_range: str | bytes) -> MediaRange:
    """
    Parses a single media range (e.g., "text/html;level=1;q=0.7").

    Malformed parameters are ignored; a missing or malformed q-value
    defaults to 1 and 0 respectively. Raises MalformedRangeError if the
    "type/subtype" part does not have exactly two non-empty tokens.
    """
    media_range = ensure_str(media_range)
    head, *raw_params = media_range.split(";")

    tokens = [token.strip() for token in head.split("/")]
    if len(tokens) != 2 or not all(tokens):
        raise MalformedRangeError(media_range)
    type_, subtype = tokens

    params: list[tuple[str, str]] = []
    q: int | float | None = None
    for raw_param in raw_params:
        param = parse_param(raw_param)
        if param is None:
            continue  # simply ignore malformed name=value pairs
        if param[0] == "q":
            # The first q wins, the others are dropped as well
            if q is None:
                q = parse_q(param[1])
            continue
        params.append(param)

    return MediaRange(type_, subtype, 1 if q is None else q, tuple(params))


def parse(accept: str | bytes) -> list[MediaRange]:
    """
    Parses the 'Accept' header into a list of media ranges,
    in the order they appear in the header.

    >>> parse("text/html;level=1")
    [MediaRange(type='text', subtype='html', q=1, params=(('level', '1'),))]
    """
    return [
        parse_media_range(part)
        for part in ensure_str(accept).split(",")
        if part.strip()
    ]


def score_params(
    range_params: Sequence[tuple[str, str]],
    alt_params: Sequence[tuple[str, str]],
) -> int:
    """
    Specificity bonus of the media range parameters:
    2 if they equal the alternative's, 1 if the range has none, 0 otherwise.
    """
    if not range_params:
        return 1
    if len(range_params) == len(alt_params) and sorted(range_params) == sorted(
        alt_params
    ):
        return 2
    return 0


def score_alt(media_range: MediaRange, alt: MediaRange) -> int:
    """
    Scores how specifically a media range from the header matches
    an alternative, e.g. for the alternative "text/plain;version=4":

    text/plain;version=4 > text/plain > text/plain;n=v > text/* > */* > image/*
    """
    if media_range.type == alt.type and media_range.subtype == alt.subtype:
        return EXACT_MATCH_SCORE + score_params(media_range.params, alt.params)
    if media_range.type == alt.type and media_range.subtype == "*":
        return SUBTYPE_WILDCARD_SCORE
    if media_range.type == "*":
        return TYPE_WILDCARD_SCORE
    return NO_MATCH_SCORE


def score_alternative(
    media_ranges: Sequence[MediaRange], alt: MediaRange
) -> int | float:
    """
    Returns the q-value of the best media range for the alternative,
    or EXCLUDED if none of the ranges matches it.
    """
    best_score, best_range = NO_MATCH_SCORE, None
    for media_range in media_ranges:
        score = score_alt(media_range, alt)
        # Strictly greater, so the first range wins among equals
        if score > best_score:
            best_score, best_range = score, media_range

    if best_range is None:
        return EXCLUDED
    return best_range.q


def negotiate(accept: str | bytes, alternatives: Sequence[Alternative]) -> Any:
    """
    Negotiates the most appropriate alternative for the 'Accept' header.

    Alternatives are media type strings or (media_type, tag) pairs;
    a bare media type is its own tag. Returns the tag of the winning
    alternative, or None if no alternative is acceptable at all.

    >>> negotiate("text/*;q=0.3, text/html;q=0.7, text/html;level=1,"
    ...           "text/html;level=2;q=0.4, */*;q=0.5",
    ...           ["text/html;level=2", "text/html;level-3"])
    'text/html;level-3'
    """
    # 1. Parse the header into media ranges
    media_ranges = parse(accept)

    # 2. Score every alternative, keeping the first one among equal scores
    best: tuple[int | float, Any] | None = None
    for alternative in alternatives:
        if isinstance(alternative, (str, bytes)):
            media_type, tag = alternative, alternative
        else:
            try:
                media_type, tag = alternative
            except (TypeError, ValueError):
                raise TypeError(
                    "alternatives must be media types or (media_type, tag) "
                    f"pairs, got {alternative!r}"
                ) from None

        score = score_alternative(media_ranges, parse_media_range(media_type))
        if score == EXCLUDED:
            continue

        if best is None or score > best[0]:
            best = (score, tag)

    # 3. No alternative overlaps any media range (or there are none)
    if best is None:
        return None
    return best[1]
