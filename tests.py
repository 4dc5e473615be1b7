"""Main tests for Accept header parsing, negotiation and the middleware.

The middleware tests follow starlette.tests.middleware, using a Starlette
app and the TestClient.
"""

import functools

import pytest

from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from accept_header import (
    AcceptMiddleware,
    MalformedRangeError,
    MediaRange,
    negotiate,
    parse,
    parse_media_range,
    score_alt,
    score_params,
)

RFC_EXAMPLE = (
    "text/*;q=0.3, text/html;q=0.7, text/html;level=1, "
    "text/html;level=2;q=0.4, */*;q=0.5"
)


@pytest.fixture
def test_client_factory(anyio_backend_name, anyio_backend_options):
    return functools.partial(
        TestClient,
        backend=anyio_backend_name,
        backend_options=anyio_backend_options,
    )


def test_parse_rfc_example():
    ranges = parse(RFC_EXAMPLE)

    assert ranges == [
        MediaRange("text", "*", 0.3, ()),
        MediaRange("text", "html", 0.7, ()),
        MediaRange("text", "html", 1, (("level", "1"),)),
        MediaRange("text", "html", 0.4, (("level", "2"),)),
        MediaRange("*", "*", 0.5, ()),
    ]
    assert [r.q for r in ranges] == [0.3, 0.7, 1, 0.4, 0.5]


def test_parse_bytes_same_as_str():
    assert parse(RFC_EXAMPLE.encode()) == parse(RFC_EXAMPLE)


@pytest.mark.parametrize(
    "header, expected_q",
    [
        # no q defaults to 1
        ("text/html", 1),
        # decimal point means float, otherwise int
        ("text/html;q=0.5", 0.5),
        ("text/html;q=1", 1),
        ("text/html;q=0", 0),
        # malformed q degrades to 0
        ("text/html;q=bogus", 0),
        ("text/html;q=1.x", 0),
        # only plain ASCII number literals are q-values
        ("text/html;q=1_0", 0),
        ("text/html;q=1_0.5", 0),
        ("text/html;q=１", 0),
        ("text/html;q=.5", 0),
        ("text/html;q=1.", 0),
        ("text/html;q=0.5e1", 5.0),
        ("text/html;q=+1", 1),
        # only the first q counts
        ("text/html;q=0.2;q=0.9", 0.2),
        # parameter names are case-sensitive
        ("text/html;Q=0.5", 1),
    ],
)
def test_parse_q(header, expected_q):
    (media_range,) = parse(header)
    assert media_range.q == expected_q
    assert type(media_range.q) is type(expected_q)


def test_parse_q_is_removed_from_params():
    media_range = parse_media_range("text/html;a=1;q=0.5;b=2;q=0.1")
    assert media_range.params == (("a", "1"), ("b", "2"))
    assert media_range.q == 0.5


def test_parse_keeps_duplicate_params_in_order():
    media_range = parse_media_range("text/html;b=2;a=1;b=2")
    assert media_range.params == (("b", "2"), ("a", "1"), ("b", "2"))


@pytest.mark.parametrize(
    "header, expected_params",
    [
        ("text/html;level", ()),
        ("text/html;level-3", ()),
        ("text/html;a=b=c", ()),
        ("text/html;=1", ()),
        ("text/html;a=", ()),
        ("text/html;;level=1", (("level", "1"),)),
        ("text/html; level = 1 ", (("level", "1"),)),
    ],
)
def test_parse_drops_malformed_params(header, expected_params):
    (media_range,) = parse(header)
    assert media_range.params == expected_params


def test_parse_strips_type_and_subtype():
    assert parse("  text / html ,application/json  ") == [
        MediaRange("text", "html", 1, ()),
        MediaRange("application", "json", 1, ()),
    ]


def test_parse_space_before_q():
    (media_range,) = parse("text/html; q=0.4")
    assert media_range.q == 0.4
    assert media_range.params == ()


def test_parse_empty_header():
    assert parse("") == []
    assert parse(b"") == []


def test_parse_skips_empty_segments():
    assert len(parse("text/html,, application/json, ")) == 2


@pytest.mark.parametrize(
    "header",
    [
        "text",
        "text/",
        "/html",
        " /html",
        "text/html/extra",
        "text/html, garbage",
        ";q=0.5",
    ],
)
def test_parse_malformed_range(header):
    with pytest.raises(MalformedRangeError) as excinfo:
        parse(header)
    assert isinstance(excinfo.value, ValueError)


def test_malformed_range_error_keeps_range():
    with pytest.raises(MalformedRangeError) as excinfo:
        parse_media_range("texthtml;q=1")
    assert excinfo.value.media_range == "texthtml;q=1"


@pytest.mark.parametrize(
    "range_params, alt_params, expected_score",
    [
        ((), (), 1),
        ((), (("level", "1"),), 1),
        ((("level", "1"),), (("level", "1"),), 2),
        ((("a", "1"), ("b", "2")), (("b", "2"), ("a", "1")), 2),
        ((("level", "1"),), (("level", "2"),), 0),
        ((("level", "1"),), (), 0),
        ((("a", "1"),), (("a", "1"), ("b", "2")), 0),
        ((("a", "1"), ("a", "1")), (("a", "1"), ("b", "2")), 0),
    ],
)
def test_score_params(range_params, alt_params, expected_score):
    assert score_params(range_params, alt_params) == expected_score


def test_score_alt_specificity_order():
    alt = parse_media_range("text/plain;version=4")
    scores = [
        score_alt(parse_media_range(media_range), alt)
        for media_range in [
            "text/plain;version=4",
            "text/plain",
            "text/plain;n=v",
            "text/*",
            "*/*",
            "image/*",
        ]
    ]
    assert scores == [14, 13, 12, 11, 8, 0]


def test_score_alt_type_mismatch_with_subtype_wildcard():
    assert score_alt(parse_media_range("image/*"), parse_media_range("text/html")) == 0
    assert score_alt(parse_media_range("*/html"), parse_media_range("text/html")) == 8


def test_negotiate_rfc_example():
    alternatives = ["text/html;level=2", "text/html;level-3"]
    assert negotiate(RFC_EXAMPLE, alternatives) == "text/html;level-3"


@pytest.mark.parametrize(
    "header, alternatives, expected",
    [
        # no overlap at all
        ("application/json", ["text/html"], None),
        # wildcard accepts anything
        ("*/*", ["anything/whatever"], "anything/whatever"),
        # higher q wins regardless of order
        ("text/html;q=0.5, application/json", ["text/html", "application/json"],
         "application/json"),
        # equal scores, first alternative wins
        ("text/*", ["text/plain", "text/html"], "text/plain"),
        ("text/*", ["text/html", "text/plain"], "text/html"),
        # excluded alternatives never win
        ("text/html", ["image/png", "text/html"], "text/html"),
        # the most specific range decides the q-value
        ("text/*;q=0.1, text/html;q=0.9", ["text/plain", "text/html"], "text/html"),
        ("text/*;q=0.9, text/html;q=0.1", ["text/html", "text/plain"], "text/plain"),
        # a matching range with q=0 still outranks no match
        ("text/html;q=0", ["image/png", "text/html"], "text/html"),
    ],
)
def test_negotiate(header, alternatives, expected):
    assert negotiate(header, alternatives) == expected


def test_negotiate_with_tags():
    tag = object()
    alternatives = [("application/json", "json"), ("text/html;charset=utf-8", tag)]
    assert negotiate("text/html", alternatives) is tag
    assert negotiate("application/*", alternatives) == "json"


def test_negotiate_bytes():
    assert negotiate(b"text/html", [b"text/html"]) == b"text/html"
    assert negotiate(b"text/html", [(b"text/html", "html")]) == "html"


def test_negotiate_list_pairs():
    assert negotiate("text/html", [["application/json", "json"], ["text/html", "html"]]) == (
        "html"
    )


@pytest.mark.parametrize("alternative", [42, ("text/html",), ("text/html", "a", "b")])
def test_negotiate_bad_alternative(alternative):
    with pytest.raises(TypeError):
        negotiate("*/*", [alternative])


def test_negotiate_ties_use_alternatives_order():
    header = "application/json;q=0.8, application/xml;q=0.8"
    assert negotiate(header, ["application/xml", "application/json"]) == (
        "application/xml"
    )
    assert negotiate(header, ["application/json", "application/xml"]) == (
        "application/json"
    )


def test_negotiate_first_best_range_in_header_order():
    # both ranges score 13 against the alternative, the first one counts
    header = "text/html;q=0.2, text/html;q=0.9, text/plain;q=0.5"
    assert negotiate(header, ["text/html", "text/plain"]) == "text/plain"


def test_negotiate_empty_header():
    assert negotiate("", ["text/html"]) is None


def test_negotiate_no_alternatives():
    assert negotiate("*/*", []) is None


def test_negotiate_malformed_header():
    with pytest.raises(MalformedRangeError):
        negotiate("text/html, nonsense", ["text/html"])


def test_negotiate_malformed_alternative():
    with pytest.raises(MalformedRangeError):
        negotiate("*/*", ["html"])


def accepted_app(**middleware_options):
    def homepage(request):
        return PlainTextResponse(str(request.state.accepted), status_code=200)

    app = Starlette(routes=[Route("/", homepage), Route("/excluded", homepage)])
    app.add_middleware(AcceptMiddleware, **middleware_options)
    return app


def test_middleware_negotiates(test_client_factory):
    app = accepted_app(alternatives=[("application/json", "json"), ("text/html", "html")])

    client = test_client_factory(app)
    response = client.get("/", headers={"accept": "text/html, application/json;q=0.5"})
    assert response.status_code == 200
    assert response.text == "html"
    assert response.headers["Vary"] == "Accept"


def test_middleware_empty_accept(test_client_factory):
    app = accepted_app(alternatives=["application/json", "text/html"])

    client = test_client_factory(app)
    response = client.get("/", headers={"accept": ""})
    # an empty header does not accept anything
    assert response.status_code == 406


def test_middleware_default_accept(test_client_factory):
    async def app(scope, receive, send):
        response = PlainTextResponse(str(scope["state"]["accepted"]))
        await response(scope, receive, send)

    middleware = AcceptMiddleware(
        app, alternatives=["application/json", "text/html"], default_accept="text/*"
    )

    client = test_client_factory(middleware)
    # httpx sends "Accept: */*" unless told otherwise
    del client.headers["accept"]
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "text/html"


def test_middleware_not_acceptable(test_client_factory):
    app = accepted_app(alternatives=["application/json"])

    client = test_client_factory(app)
    response = client.get("/", headers={"accept": "image/png"})
    assert response.status_code == 406
    assert response.text == "Not Acceptable"
    assert response.headers["Vary"] == "Accept"


def test_middleware_not_acceptable_disabled(test_client_factory):
    app = accepted_app(alternatives=["application/json"], not_acceptable=False)

    client = test_client_factory(app)
    response = client.get("/", headers={"accept": "image/png"})
    assert response.status_code == 200
    assert response.text == "None"


def test_middleware_malformed_accept(test_client_factory):
    app = accepted_app(alternatives=["application/json"])

    client = test_client_factory(app)
    response = client.get("/", headers={"accept": "application"})
    assert response.status_code == 400
    assert "malformed media range" in response.text


def test_excluded_handlers(test_client_factory):
    def excluded(request):
        return PlainTextResponse(str(getattr(request.state, "accepted", "unset")))

    app = Starlette(routes=[Route("/excluded", excluded)])
    app.add_middleware(
        AcceptMiddleware,
        alternatives=["application/json"],
        excluded_handlers=["/excluded"],
    )

    client = test_client_factory(app)
    response = client.get("/excluded", headers={"accept": "image/png"})
    assert response.status_code == 200
    assert response.text == "unset"
