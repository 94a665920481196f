# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import collections
import enum
import logging
import ssl
import typing

from .exceptions import (
    CryptoError,
    TransportError,
)

from ._socket import (
    Socket,
)

logger = logging.getLogger(__name__)


class CryptoMethod(enum.Enum):
    TLS_CLIENT = "tls"
    TLS1_0 = "tlsv1.0"
    TLS1_1 = "tlsv1.1"
    TLS1_2 = "tlsv1.2"
    SSLv2 = "sslv2"
    SSLv3 = "sslv3"
    SSLv23 = "sslv23"


# Ordered from modern to legacy, this is the fallback order used when no explicit method was requested.
CRYPTO_METHODS: "collections.OrderedDict[str, CryptoMethod]" = collections.OrderedDict(
    [
        ("tls", CryptoMethod.TLS_CLIENT),
        ("tlsv10", CryptoMethod.TLS1_0),
        ("tlsv11", CryptoMethod.TLS1_1),
        ("tlsv12", CryptoMethod.TLS1_2),
        ("sslv3", CryptoMethod.SSLv3),
        ("sslv23", CryptoMethod.SSLv23),
        ("sslv2", CryptoMethod.SSLv2),
    ]
)

# (minimum_version, maximum_version), None leaves the context default in place.
_VERSION_RANGES: typing.Dict[CryptoMethod, typing.Tuple[typing.Optional[ssl.TLSVersion], ...]] = {
    CryptoMethod.TLS_CLIENT: (None, None),
    CryptoMethod.TLS1_0: (ssl.TLSVersion.TLSv1, ssl.TLSVersion.TLSv1),
    CryptoMethod.TLS1_1: (ssl.TLSVersion.TLSv1_1, ssl.TLSVersion.TLSv1_1),
    CryptoMethod.TLS1_2: (ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.TLSv1_2),
    CryptoMethod.SSLv3: (ssl.TLSVersion.SSLv3, ssl.TLSVersion.SSLv3),
    CryptoMethod.SSLv23: (ssl.TLSVersion.MINIMUM_SUPPORTED, ssl.TLSVersion.MAXIMUM_SUPPORTED),
}

# Values returned by SSLObject.version() for the pinned methods.
_EXPECTED_VERSIONS = {
    CryptoMethod.TLS1_0: "TLSv1",
    CryptoMethod.TLS1_1: "TLSv1.1",
    CryptoMethod.TLS1_2: "TLSv1.2",
    CryptoMethod.SSLv3: "SSLv3",
}


def select_candidates(
    scheme: typing.Optional[str] = None,
) -> "collections.OrderedDict[str, CryptoMethod]":
    """Get the crypto methods to attempt for a scheme.

    Args:
        scheme: The scheme prefix, like `tlsv12` or `tlsv12://`. When it names a
            known method only that method is returned, otherwise all of them are
            returned in their fallback order.

    Returns:
        OrderedDict[str, CryptoMethod]: The candidates keyed by their scheme name.
    """
    if scheme:
        name = scheme.lower()
        if name.endswith("://"):
            name = name[:-3]

        if name in CRYPTO_METHODS:
            return collections.OrderedDict([(name, CRYPTO_METHODS[name])])

    return collections.OrderedDict(CRYPTO_METHODS)


class CryptoErrors:
    """Registry of errors recorded by the TLS layer after the primary call returned.

    A TLS upgrade can report success while something went wrong underneath it.
    The TLS layer records those failures here and callers clear the registry
    before an attempt and check it after a successful one.
    """

    def __init__(self):
        self._errors: typing.List[str] = []

    def record(
        self,
        error: typing.Union[str, Exception],
    ) -> None:
        logger.debug("Recording deferred crypto error: %s", error)
        self._errors.append(str(error))

    def clear(self) -> None:
        self._errors = []

    @property
    def errors(self) -> typing.List[str]:
        return list(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)


class TLSLayer:
    """TLS layer over the stdlib ssl module.

    Args:
        verify: Whether to verify the peer certificate and hostname.
        ca_file: Optional CA bundle used to verify the peer, the system store is
            used when not set.
        errors: The registry for errors found after a successful handshake.
    """

    def __init__(
        self,
        verify: bool = True,
        ca_file: typing.Optional[str] = None,
        errors: typing.Optional[CryptoErrors] = None,
    ):
        self.verify = verify
        self.ca_file = ca_file
        self.errors = errors if errors is not None else CryptoErrors()

    def set_peer_name(
        self,
        sock: Socket,
        hostname: str,
    ) -> None:
        sock.peer_name = hostname

    def create_context(
        self,
        method: CryptoMethod,
    ) -> ssl.SSLContext:
        if method not in _VERSION_RANGES:
            raise ValueError("%s is not supported by the ssl module" % method.name)

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        if self.verify:
            if self.ca_file:
                context.load_verify_locations(cafile=self.ca_file)
            else:
                context.load_default_certs()

        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        minimum, maximum = _VERSION_RANGES[method]
        if minimum is not None:
            context.minimum_version = minimum

        if maximum is not None:
            context.maximum_version = maximum

        return context

    def enable_crypto(
        self,
        sock: Socket,
        method: CryptoMethod,
    ) -> bool:
        """Upgrade the socket to the crypto method.

        Args:
            sock: The connected socket.
            method: The crypto method to use.

        Returns:
            bool: Whether the handshake succeeded. A successful result may still
            have recorded an error in `errors`.
        """
        try:
            context = self.create_context(method)
            sock.start_tls(context, server_hostname=sock.peer_name)
        except (ValueError, ssl.SSLError, TransportError) as e:
            logger.debug("Failed to enable %s on %r: %s", method.name, sock, e)
            return False

        expected = _EXPECTED_VERSIONS.get(method)
        ssl_object = sock.ssl_object
        actual = ssl_object.version() if ssl_object is not None else None
        if expected and actual != expected:
            self.errors.record("Negotiated %s but %s was requested" % (actual, expected))

        return True


class CryptoEnabler:
    """Enables cryptography on a socket by trying each candidate in order.

    Args:
        tls: The TLS layer that performs the upgrade.
    """

    def __init__(
        self,
        tls: typing.Optional[TLSLayer] = None,
    ):
        self.tls = tls or TLSLayer()

    def enable(
        self,
        sock: Socket,
        candidates: typing.Mapping[str, CryptoMethod],
    ) -> None:
        """Enable cryptography on the socket.

        Args:
            sock: The connected socket to upgrade.
            candidates: The methods to try, in order, keyed by name.

        Raises:
            CryptoError: No candidate succeeded, or the first successful one
                recorded an error in the deferred error registry.
        """
        for name, method in candidates.items():
            if not self.tls.enable_crypto(sock, method):
                continue

            if self.tls.errors:
                errors = self.tls.errors.errors
                self.tls.errors.clear()
                raise CryptoError(
                    "Enabling %s cryptography apparently succeeded but an underlying error was recorded: %s"
                    % (name, "; ".join(errors)),
                    candidates=[name],
                )

            logger.debug("Enabled %s cryptography on %r", name, sock)
            return

        raise CryptoError(
            "Cannot establish secure connection, tried %s" % ", ".join(candidates),
            candidates=list(candidates),
        )
