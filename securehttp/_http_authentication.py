# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import httpx
import logging
import typing

from ._auth import (
    Authorization,
    Authorizations,
    DigestAuthorization,
    Password,
    PROXY_AUTHS,
    PROXY_AUTHZ,
    WWW_AUTHS,
    WWW_AUTHZ,
)

from ._secret import (
    to_secure_string,
)

logger = logging.getLogger(__name__)


class ChallengeAuth(httpx.Auth):
    """HTTP authentication handler for httpx.

    Answers a 401 challenge with the Basic or Digest authorization the server
    asked for, or a 407 `Proxy-Authenticate` challenge with the matching
    `Proxy-Authorization`. The authorization is kept and used to sign the
    following requests up front, a Digest nonce count keeps increasing until the
    server sends a new challenge at which point the old authorization is
    discarded.

    Params:
        username: The username to use.
        password: The password to use.
        cnonce: Fixed client nonce for Digest, a random one is used when not set.
        auths_header: The challenge header read from a 401 response.
        authz_header: The header the 401 challenge is answered with.
    """

    requires_request_body = True

    def __init__(
        self,
        username: typing.Optional[str] = None,
        password: Password = None,
        cnonce: typing.Optional[str] = None,
        auths_header: str = WWW_AUTHS,
        authz_header: str = WWW_AUTHZ,
    ):
        self.username = username
        self.cnonce = cnonce
        self._password = to_secure_string(password)
        self._challenge_headers = {
            401: (auths_header, authz_header),
            407: (PROXY_AUTHS, PROXY_AUTHZ),
        }
        self._authz_header = authz_header
        self._authorization: typing.Optional[Authorization] = None

    @property
    def authorization(self) -> typing.Optional[Authorization]:
        """The authorization from the last challenge."""
        return self._authorization

    def auth_flow(
        self, request: httpx.Request
    ) -> typing.Generator[httpx.Request, httpx.Response, None]:
        if self._authorization:
            self._authorization.sign(request, self._authz_header)

        response = yield request
        if response.status_code not in self._challenge_headers:
            return

        auths_header, authz_header = self._challenge_headers[response.status_code]
        if auths_header not in response.headers:
            return

        authorization = Authorizations.from_response(
            response, self.username, self._password.reveal(), header=auths_header
        )
        if self.cnonce and isinstance(authorization, DigestAuthorization):
            authorization.cnonce = self.cnonce

        if self._authorization:
            logger.debug("Server sent a new challenge, discarding the previous authorization")
            self._authorization.discard()
        self._authorization = authorization
        self._authz_header = authz_header

        authorization.sign(request, authz_header)
        yield request
