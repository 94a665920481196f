# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import abc
import base64
import httpx
import logging
import re
import secrets
import typing

from .exceptions import (
    IllegalStateError,
    InvalidChallenge,
    UnsupportedAlgorithm,
    UnsupportedAuthScheme,
)

from ._secret import (
    SecureString,
    to_secure_string,
)

from ._utils import (
    md5_hex,
)

logger = logging.getLogger(__name__)

WWW_AUTHS = "WWW-Authenticate"
WWW_AUTHZ = "Authorization"
PROXY_AUTHS = "Proxy-Authenticate"
PROXY_AUTHZ = "Proxy-Authorization"

AUTH_PARAM_PATTERN = re.compile(
    r"""\s*([!#$%&'*+.^_`|~0-9A-Za-z-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,]*))\s*(?:,|$)"""
)

Password = typing.Optional[typing.Union[str, SecureString]]


def parse_auth_params(
    value: str,
) -> typing.Dict[str, str]:
    """Parse the comma separated parameters of an authentication challenge.

    Values can be a quoted string, which may contain commas and backslash
    escapes, or a bare token. Parameter names are lowercased.

    Args:
        value: The challenge without the scheme token, e.g.
            `realm="test", qop="auth,auth-int", nonce=abc`.

    Returns:
        Dict[str, str]: The parsed parameters.
    """
    params = {}
    for match in AUTH_PARAM_PATTERN.finditer(value):
        key, quoted, token = match.groups()
        if quoted is not None:
            params[key.lower()] = re.sub(r"\\(.)", r"\1", quoted)
        else:
            params[key.lower()] = token

    return params


def split_challenge(
    value: str,
) -> typing.Tuple[str, str]:
    """Split a challenge header into the scheme token and the rest of the value."""
    parts = value.strip().split(None, 1)
    if not parts:
        return "", ""

    return parts[0], parts[1] if len(parts) > 1 else ""


def _quote(
    value: str,
) -> str:
    return '"%s"' % value.replace("\\", "\\\\").replace('"', '\\"')


class DigestChallenge(typing.NamedTuple):
    """A parsed Digest challenge.

    Attributes:
        realm: The protection space.
        qop: The quality of protection values offered, may be empty.
        nonce: The server nonce.
        opaque: Data the server wants echoed back, None when not sent.
        algorithm: The digest algorithm, only MD5 is supported.
    """

    realm: str
    qop: typing.FrozenSet[str]
    nonce: str
    opaque: typing.Optional[str] = None
    algorithm: str = "MD5"

    @classmethod
    def parse(
        cls,
        value: typing.Union[str, typing.Mapping[str, str]],
    ) -> "DigestChallenge":
        params = parse_auth_params(value) if isinstance(value, str) else value
        missing = [p for p in ["realm", "nonce"] if params.get(p) is None]
        if missing:
            raise InvalidChallenge("Digest challenge is missing %s" % ", ".join(missing))

        algorithm = params.get("algorithm") or "MD5"
        if algorithm.upper() != "MD5":
            raise UnsupportedAlgorithm("Digest algorithm '%s' is not supported, only MD5 is" % algorithm)

        return cls(
            realm=params.get("realm", ""),
            qop=split_qop(params.get("qop")),
            nonce=params.get("nonce", ""),
            opaque=params.get("opaque"),
            algorithm=algorithm,
        )


def split_qop(
    value: typing.Optional[typing.Union[str, typing.Iterable[str]]],
) -> typing.FrozenSet[str]:
    if not value:
        return frozenset()

    if isinstance(value, str):
        value = value.split(",")

    return frozenset(q.strip().lower() for q in value if q.strip())


class _AuthorizationRegistry(abc.ABCMeta):
    __registry = {}

    def __init__(
        cls,
        name,
        bases,
        attributes,
    ):
        super().__init__(name, bases, attributes)
        if cls.SCHEME:
            cls.__registry.setdefault(cls.SCHEME, cls)

    @staticmethod
    def lookup(scheme: str) -> typing.Optional["_AuthorizationRegistry"]:
        return _AuthorizationRegistry.__registry.get(scheme)


class Authorization(metaclass=_AuthorizationRegistry):
    """Base class for the Authorization header variants.

    Subclasses set `SCHEME` to the challenge scheme token they handle and are
    then picked up by `Authorizations.from_response`.
    """

    SCHEME = ""

    @classmethod
    @abc.abstractmethod
    def from_challenge(
        cls,
        params: str,
        username: typing.Optional[str],
        password: Password,
    ) -> "Authorization":
        """Create the authorization from the challenge parameters."""

    @abc.abstractmethod
    def sign(
        self,
        request: httpx.Request,
        authz_header: str = WWW_AUTHZ,
    ) -> None:
        """Set the authorization header on the request."""

    def discard(self) -> None:
        """Release any credentials held by the authorization."""


class BasicAuthorization(Authorization):
    SCHEME = "Basic"

    def __init__(
        self,
        username: typing.Optional[str] = None,
        password: Password = None,
    ):
        self.username = username or ""
        self.password = to_secure_string(password)

    @classmethod
    def from_challenge(
        cls,
        params: str,
        username: typing.Optional[str],
        password: Password,
    ) -> "BasicAuthorization":
        return cls(username, password)

    def sign(
        self,
        request: httpx.Request,
        authz_header: str = WWW_AUTHZ,
    ) -> None:
        credential = ("%s:%s" % (self.username, self.password.reveal())).encode("utf-8")
        request.headers[authz_header] = "Basic %s" % base64.b64encode(credential).decode()

    def discard(self) -> None:
        self.password.clear()

    def __repr__(self) -> str:
        return "<%s username=%r>" % (type(self).__name__, self.username)


class DigestAuthorization(Authorization):
    """HTTP Digest authorization as described in RFC 2617.

    One instance is created per challenge and reused for every request to the
    same realm until the server sends a new challenge. Each signed request
    increments the nonce count so the server never sees the same `nc` twice for
    a nonce.

    Args:
        realm: The realm from the challenge.
        qop: The qop values offered, as a comma separated str or an iterable.
        nonce: The server nonce.
        opaque: The opaque value from the challenge.
        username: The username to authenticate with.
        password: The password to authenticate with.
        algorithm: The digest algorithm, only MD5 is supported.
        cnonce: The client nonce, a random one is generated when not set.
    """

    SCHEME = "Digest"

    def __init__(
        self,
        realm: str,
        qop: typing.Optional[typing.Union[str, typing.Iterable[str]]],
        nonce: str,
        opaque: typing.Optional[str] = None,
        username: typing.Optional[str] = None,
        password: Password = None,
        algorithm: typing.Optional[str] = None,
        cnonce: typing.Optional[str] = None,
    ):
        params = {"realm": realm, "nonce": nonce, "qop": ",".join(split_qop(qop))}
        if opaque is not None:
            params["opaque"] = opaque
        if algorithm is not None:
            params["algorithm"] = algorithm

        self.challenge = DigestChallenge.parse(params)
        self.username = username or ""
        self.password = to_secure_string(password)
        self.cnonce = cnonce or secrets.token_hex(8)
        self.nonce_count = 0
        self._explicit_algorithm = algorithm is not None

    @classmethod
    def from_challenge(
        cls,
        params: str,
        username: typing.Optional[str],
        password: Password,
    ) -> "DigestAuthorization":
        parsed = parse_auth_params(params)
        challenge = DigestChallenge.parse(parsed)

        return cls(
            challenge.realm,
            challenge.qop,
            challenge.nonce,
            opaque=challenge.opaque,
            username=username,
            password=password,
            algorithm=parsed.get("algorithm"),
        )

    @property
    def realm(self) -> str:
        return self.challenge.realm

    @property
    def nonce(self) -> str:
        return self.challenge.nonce

    @property
    def opaque(self) -> typing.Optional[str]:
        return self.challenge.opaque

    @property
    def qop(self) -> typing.Optional[str]:
        """The qop value used for the responses, None when the server offered none."""
        if "auth" in self.challenge.qop:
            return "auth"

        elif "auth-int" in self.challenge.qop:
            return "auth-int"

        return None

    def response_for(
        self,
        method: typing.Union[str, httpx.Request],
        uri: typing.Optional[str] = None,
        body: typing.Optional[bytes] = None,
    ) -> str:
        """Compute the digest response value.

        Increments the nonce count when the server offered a qop.

        Args:
            method: The request method, or the `httpx.Request` to compute the
                response for in which case the method, the path and query as
                sent on the wire and the body are taken from it.
            uri: The request path including the query string.
            body: The entity body, only used for `qop=auth-int`.

        Returns:
            str: The lowercase hex digest.
        """
        qop = self.qop

        if isinstance(method, httpx.Request):
            request = method
            method = request.method
            uri = request.url.raw_path.decode("ascii")
            if qop == "auth-int" and body is None:
                body = request.content

        if uri is None:
            raise TypeError("response_for() requires the request uri")

        ha1 = md5_hex("%s:%s:%s" % (self.username, self.realm, self.password.reveal()))
        if qop == "auth-int":
            ha2 = md5_hex("%s:%s:%s" % (method, uri, md5_hex(body or b"")))
        else:
            ha2 = md5_hex("%s:%s" % (method, uri))

        if not qop:
            return md5_hex("%s:%s:%s" % (ha1, self.nonce, ha2))

        self.nonce_count += 1
        return md5_hex("%s:%s:%08x:%s:%s:%s" % (ha1, self.nonce, self.nonce_count, self.cnonce, qop, ha2))

    def sign(
        self,
        request: httpx.Request,
        authz_header: str = WWW_AUTHZ,
    ) -> None:
        response = self.response_for(request)
        qop = self.qop

        fields = [
            ("username", _quote(self.username)),
            ("realm", _quote(self.realm)),
            ("nonce", _quote(self.nonce)),
            ("uri", _quote(request.url.raw_path.decode("ascii"))),
        ]
        if qop:
            fields.extend(
                [
                    ("qop", _quote(qop)),
                    ("nc", "%08x" % self.nonce_count),
                    ("cnonce", _quote(self.cnonce)),
                ]
            )

        fields.append(("response", _quote(response)))

        if self.opaque is not None:
            fields.append(("opaque", _quote(self.opaque)))

        if self._explicit_algorithm:
            fields.append(("algorithm", self.challenge.algorithm))

        request.headers[authz_header] = "Digest %s" % ", ".join("%s=%s" % f for f in fields)

    def discard(self) -> None:
        self.password.clear()

    def __repr__(self) -> str:
        return "<%s realm=%r username=%r nc=%08x>" % (type(self).__name__, self.realm, self.username, self.nonce_count)


class Authorizations:
    """Factory for the Authorization variant matching a server challenge."""

    @staticmethod
    def from_response(
        response: httpx.Response,
        username: typing.Optional[str],
        password: Password,
        header: str = WWW_AUTHS,
    ) -> Authorization:
        """Create the authorization for the challenge in a response.

        Args:
            response: The 401 or 407 response.
            username: The username to authenticate with.
            password: The password to authenticate with.
            header: The challenge header, `Proxy-Authenticate` for proxies.

        Returns:
            Authorization: The authorization for the first challenge with a
            known scheme.

        Raises:
            IllegalStateError: The response has no challenge header.
            UnsupportedAuthScheme: No challenge has a known scheme.
            UnsupportedAlgorithm: The Digest challenge uses an algorithm other
                than MD5.
            InvalidChallenge: The Digest challenge has no realm or nonce.
        """
        challenges = response.headers.get_list(header)
        if not challenges:
            raise IllegalStateError("Response with status %d did not issue a %s challenge"
                                    % (response.status_code, header))

        schemes = []
        for challenge in challenges:
            scheme, params = split_challenge(challenge)
            auth_type = _AuthorizationRegistry.lookup(scheme)
            if auth_type:
                logger.debug("Creating %s authorization from %s challenge", scheme, header)
                return auth_type.from_challenge(params, username, password)

            schemes.append(scheme)

        raise UnsupportedAuthScheme("The server did not respond with a supported authentication scheme - actual: '%s'"
                                    % ", ".join(schemes))
