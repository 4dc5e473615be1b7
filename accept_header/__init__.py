from .headers import (
    MalformedRangeError,
    MediaRange,
    negotiate,
    parse,
    parse_media_range,
    score_alt,
    score_params,
)
from .middleware import AcceptMiddleware

__all__ = [
    "AcceptMiddleware",
    "MalformedRangeError",
    "MediaRange",
    "negotiate",
    "parse",
    "parse_media_range",
    "score_alt",
    "score_params",
]
