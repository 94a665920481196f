# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import hashlib

import httpx
import pytest

from securehttp import (
    Authorizations,
    BasicAuthorization,
    DigestAuthorization,
    DigestChallenge,
    parse_auth_params,
    SecureString,
)

from securehttp.exceptions import (
    IllegalStateError,
    InvalidChallenge,
    UnsupportedAlgorithm,
    UnsupportedAuthScheme,
)

USER = "Mufasa"
PASS = "Circle Of Life"
CNONCE = "0a4f113b"
REALM = "testrealm@host.com"
NONCE = "dcd98b7102dd2f0e8b11d0f600bfb0c093"
OPAQUE = "5ccc069c403ebaf9f0171e9517f40e41"

CHALLENGE = 'Digest realm="%s", qop="auth,auth-int", nonce="%s", opaque="%s"' % (REALM, NONCE, OPAQUE)
EXPECTED_HEADER = (
    'Digest username="Mufasa", realm="testrealm@host.com", nonce="dcd98b7102dd2f0e8b11d0f600bfb0c093", '
    'uri="/dir/index.html", qop="auth", nc=00000001, cnonce="0a4f113b", '
    'response="6629fae49393a05397450978507c4ef1", opaque="5ccc069c403ebaf9f0171e9517f40e41"'
)


def md5(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest()


def unauthorized(*challenges: str, header: str = "WWW-Authenticate") -> httpx.Response:
    return httpx.Response(401, headers=[(header, c) for c in challenges])


@pytest.fixture
def digest():
    return DigestAuthorization(
        REALM,
        "auth,auth-int",
        NONCE,
        OPAQUE,
        username=USER,
        password=SecureString(PASS),
        cnonce=CNONCE,
    )


def test_calculate_digest(digest):
    assert digest.response_for("GET", "/dir/index.html") == "6629fae49393a05397450978507c4ef1"
    assert digest.nonce_count == 1


def test_sign_adds_authorization_header(digest):
    request = httpx.Request("GET", "http://example.com:80/dir/index.html")
    digest.sign(request)

    assert request.headers["Authorization"] == EXPECTED_HEADER


def test_challenge_digest():
    authorization = Authorizations.from_response(unauthorized(CHALLENGE), USER, SecureString(PASS))
    authorization.cnonce = CNONCE

    request = httpx.Request("GET", "http://example.com:80/dir/index.html")
    authorization.sign(request)

    assert request.headers["Authorization"] == EXPECTED_HEADER


def test_create_digest_authorization(digest):
    actual = Authorizations.from_response(unauthorized(CHALLENGE), "user", "pass")

    assert isinstance(actual, DigestAuthorization)
    assert actual.challenge == digest.challenge
    assert actual.challenge.qop == frozenset(["auth", "auth-int"])
    assert actual.challenge.algorithm == "MD5"
    assert actual.username == "user"
    assert actual.nonce_count == 0
    assert len(actual.cnonce) == 16
    assert actual.cnonce != Authorizations.from_response(unauthorized(CHALLENGE), "user", "pass").cnonce


def test_no_auth_when_not_indicated():
    with pytest.raises(IllegalStateError):
        Authorizations.from_response(httpx.Response(200), "user", SecureString("pass"))


def test_only_md5_algorithm_supported():
    challenge = CHALLENGE + ', algorithm="sha1"'

    with pytest.raises(UnsupportedAlgorithm, match="sha1"):
        Authorizations.from_response(unauthorized(challenge), "user", SecureString("pass"))


def test_unsupported_algorithm_is_not_implemented():
    with pytest.raises(NotImplementedError):
        DigestChallenge.parse('realm="r", nonce="n", algorithm=SHA-256')


@pytest.mark.parametrize(
    "challenge, missing",
    [
        ('Digest nonce="abc", qop="auth"', "realm"),
        ('Digest realm="test", qop="auth"', "nonce"),
        ("Digest", "realm, nonce"),
    ],
)
def test_digest_challenge_requires_realm_and_nonce(challenge, missing):
    with pytest.raises(InvalidChallenge, match="Digest challenge is missing %s$" % missing):
        Authorizations.from_response(unauthorized(challenge), USER, PASS)


def test_empty_realm_is_accepted():
    challenge = DigestChallenge.parse('realm="", nonce="n"')
    assert challenge.realm == ""


def test_md5_algorithm_is_case_insensitive():
    challenge = DigestChallenge.parse('realm="r", nonce="n", algorithm=md5')
    assert challenge.algorithm == "md5"


def test_explicit_algorithm_is_echoed(digest):
    authorization = Authorizations.from_response(unauthorized(CHALLENGE + ", algorithm=MD5"), USER, PASS)
    authorization.cnonce = CNONCE

    request = httpx.Request("GET", "http://example.com/dir/index.html")
    authorization.sign(request)

    assert request.headers["Authorization"] == EXPECTED_HEADER + ", algorithm=MD5"


def test_digest_hashes_path(digest):
    assert digest.response_for("GET", "/dir/index.html") != digest.response_for("GET", "/other/index.html")


def test_digest_hashes_path_with_same_nonce_count():
    def response(path):
        auth = DigestAuthorization(REALM, "auth", NONCE, OPAQUE, username=USER, password=PASS, cnonce=CNONCE)
        return auth.response_for("GET", path)

    assert response("/dir/index.html") != response("/other/index.html")


def test_digest_hashes_querystring(digest):
    one = digest.response_for(httpx.Request("GET", "http://example.com/dir/index.html?one"))
    two = digest.response_for(httpx.Request("GET", "http://example.com/dir/index.html?two"))

    assert one != two


def test_request_uri_includes_query(digest):
    request = httpx.Request("GET", "http://example.com/dir/index.html?a=1&b=2")
    digest.sign(request)

    assert 'uri="/dir/index.html?a=1&b=2"' in request.headers["Authorization"]


def test_method_is_case_sensitive():
    def response(method):
        auth = DigestAuthorization(REALM, "auth", NONCE, username=USER, password=PASS, cnonce=CNONCE)
        return auth.response_for(method, "/")

    assert response("GET") != response("get")


def test_sign_increments_nonce_count(digest):
    first = httpx.Request("GET", "http://example.com/dir/index.html")
    second = httpx.Request("GET", "http://example.com/other/index.html")
    digest.sign(first)
    digest.sign(second)

    assert "nc=00000001," in first.headers["Authorization"]
    assert "nc=00000002," in second.headers["Authorization"]
    assert digest.nonce_count == 2


def test_nonce_count_is_zero_padded_hex(digest):
    digest.nonce_count = 0xFE
    request = httpx.Request("GET", "http://example.com/")
    digest.sign(request)

    assert "nc=000000ff," in request.headers["Authorization"]


def test_sign_without_opaque():
    auth = DigestAuthorization(REALM, "auth", NONCE, username=USER, password=PASS, cnonce=CNONCE)
    request = httpx.Request("GET", "http://example.com/dir/index.html")
    auth.sign(request)

    header = request.headers["Authorization"]
    assert "opaque" not in header
    assert header.endswith('response="6629fae49393a05397450978507c4ef1"')


def test_sign_without_qop():
    auth = DigestAuthorization(REALM, None, NONCE, OPAQUE, username=USER, password=PASS)
    request = httpx.Request("GET", "http://example.com/dir/index.html")
    auth.sign(request)

    ha1 = md5("%s:%s:%s" % (USER, REALM, PASS))
    ha2 = md5("GET:/dir/index.html")
    expected = md5("%s:%s:%s" % (ha1, NONCE, ha2))

    assert request.headers["Authorization"] == (
        'Digest username="Mufasa", realm="testrealm@host.com", nonce="%s", uri="/dir/index.html", '
        'response="%s", opaque="%s"' % (NONCE, expected, OPAQUE)
    )
    assert auth.nonce_count == 0


def test_auth_int_when_only_qop_offered():
    auth = DigestAuthorization(REALM, "auth-int", NONCE, username=USER, password=PASS, cnonce=CNONCE)
    request = httpx.Request("POST", "http://example.com/upload", content=b"payload")
    auth.sign(request)

    ha1 = md5("%s:%s:%s" % (USER, REALM, PASS))
    ha2 = md5("POST:/upload:%s" % md5("payload"))
    expected = md5("%s:%s:00000001:%s:auth-int:%s" % (ha1, NONCE, CNONCE, ha2))

    header = request.headers["Authorization"]
    assert 'qop="auth-int"' in header
    assert 'response="%s"' % expected in header


def test_username_is_quoted():
    auth = DigestAuthorization(REALM, "auth", NONCE, username='a"b', password=PASS, cnonce=CNONCE)
    request = httpx.Request("GET", "http://example.com/")
    auth.sign(request)

    assert request.headers["Authorization"].startswith('Digest username="a\\"b", ')


def test_basic_authorization():
    auth = Authorizations.from_response(unauthorized('Basic realm="test"'), "user", SecureString("pass"))
    assert isinstance(auth, BasicAuthorization)

    request = httpx.Request("GET", "http://example.com/")
    auth.sign(request)

    assert request.headers["Authorization"] == "Basic dXNlcjpwYXNz"


def test_unknown_scheme():
    with pytest.raises(UnsupportedAuthScheme, match="Negotiate"):
        Authorizations.from_response(unauthorized("Negotiate"), "user", "pass")


def test_scheme_is_case_sensitive():
    with pytest.raises(UnsupportedAuthScheme):
        Authorizations.from_response(unauthorized(CHALLENGE.replace("Digest", "digest", 1)), "user", "pass")


def test_first_known_scheme_wins():
    auth = Authorizations.from_response(unauthorized("Negotiate", CHALLENGE, 'Basic realm="x"'), USER, PASS)
    assert isinstance(auth, DigestAuthorization)


def test_proxy_challenge():
    response = unauthorized(CHALLENGE, header="Proxy-Authenticate")
    auth = Authorizations.from_response(response, USER, PASS, header="Proxy-Authenticate")
    auth.cnonce = CNONCE

    request = httpx.Request("GET", "http://example.com/dir/index.html")
    auth.sign(request, "Proxy-Authorization")

    assert request.headers["Proxy-Authorization"] == EXPECTED_HEADER
    assert "Authorization" not in request.headers


def test_discard_clears_password(digest):
    password = digest.password
    digest.discard()

    assert password.reveal() == ""
    assert PASS not in repr(digest)


@pytest.mark.parametrize(
    "value, expected",
    [
        ('realm="a, b", nonce=abc', {"realm": "a, b", "nonce": "abc"}),
        ('Realm="x",QOP="auth"', {"realm": "x", "qop": "auth"}),
        (r'realm="say \"hi\""', {"realm": 'say "hi"'}),
        ("", {}),
    ],
)
def test_parse_auth_params(value, expected):
    assert parse_auth_params(value) == expected
