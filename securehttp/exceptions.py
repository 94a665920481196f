# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import typing


class SecureHTTPError(Exception):
    """Base class for all securehttp errors."""


class TransportError(SecureHTTPError, IOError):
    """An I/O failure on the connection, the proxy handshake or the TLS upgrade."""


class ProxyError(TransportError):
    """The proxy answered the CONNECT request with something other than 200."""

    def __init__(
        self,
        status_code: int,
        reason: str = "",
    ):
        self.status_code = status_code
        self.reason = reason
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return "Cannot connect through proxy: #%d %s" % (self.status_code, self.reason)

    def __str__(self):
        return self.message


class InvalidProxyResponse(TransportError):
    """The proxy did not answer with valid HTTP."""


class CryptoError(TransportError):
    """Enabling cryptography on a socket failed."""

    def __init__(
        self,
        message: str,
        candidates: typing.Optional[typing.List[str]] = None,
    ):
        self.candidates = list(candidates or [])
        super().__init__(message)


class IllegalStateError(SecureHTTPError, RuntimeError):
    """An operation was invoked on an object that is not in the right state for it."""


class UnsupportedAlgorithm(SecureHTTPError, NotImplementedError):
    """The server asked for a digest algorithm that is not implemented."""


class UnsupportedAuthScheme(SecureHTTPError, ValueError):
    """The challenge names an authentication scheme that is not known."""


class InvalidChallenge(SecureHTTPError, ValueError):
    """The challenge lacks a parameter its scheme requires."""
