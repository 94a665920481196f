# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

"""
Secure transport and authentication for HTTP clients.

Opens TLS connections with an ordered fallback over the known crypto methods,
tunnels them through HTTP proxies with `CONNECT` and signs requests with Basic
or Digest authorizations built from the server challenge. The transport and the
auth handler plug into `httpx`_.

.. _httpx:
    https://github.com/encode/httpx
"""

from ._auth import (
    Authorization,
    Authorizations,
    BasicAuthorization,
    DigestAuthorization,
    DigestChallenge,
    parse_auth_params,
)

from ._crypto import (
    CRYPTO_METHODS,
    CryptoEnabler,
    CryptoErrors,
    CryptoMethod,
    TLSLayer,
)

from ._http_authentication import (
    ChallengeAuth,
)

from ._secret import (
    SecureString,
)

from ._socket import (
    Socket,
)

from ._transport import (
    SecureTransport,
)

from ._tunnel import (
    ProxyTunnel,
)

__all__ = [
    "Authorization",
    "Authorizations",
    "BasicAuthorization",
    "ChallengeAuth",
    "CRYPTO_METHODS",
    "CryptoEnabler",
    "CryptoErrors",
    "CryptoMethod",
    "DigestAuthorization",
    "DigestChallenge",
    "parse_auth_params",
    "ProxyTunnel",
    "SecureString",
    "SecureTransport",
    "Socket",
    "TLSLayer",
]
