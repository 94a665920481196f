# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import h11
import logging
import typing

from .exceptions import (
    CryptoError,
    InvalidProxyResponse,
    ProxyError,
)

from ._crypto import (
    CryptoEnabler,
    select_candidates,
    TLSLayer,
)

from ._socket import (
    Socket,
)

logger = logging.getLogger(__name__)

H11Event = typing.Union[
    h11.Response,
    h11.InformationalResponse,
    h11.ConnectionClosed,
]


class ProxyTunnel:
    """Establishes an encrypted tunnel through a HTTP proxy.

    Sends `CONNECT host:port` to the proxy and, once the proxy accepted it,
    upgrades the tunneled connection to TLS. When no explicit crypto method was
    requested each known method is tried in order, reopening the connection to
    the proxy after every failed handshake.

    Args:
        tls: The TLS layer used to upgrade the connection.
        enabler: The crypto enabler, defaults to one using `tls`.
    """

    def __init__(
        self,
        tls: typing.Optional[TLSLayer] = None,
        enabler: typing.Optional[CryptoEnabler] = None,
    ):
        if tls is None:
            tls = enabler.tls if enabler else TLSLayer()

        self.tls = tls
        self.enabler = enabler or CryptoEnabler(tls)

    def establish(
        self,
        sock: Socket,
        host: str,
        port: int,
        scheme: typing.Optional[str] = None,
    ) -> Socket:
        """Establish the tunnel.

        Args:
            sock: A connected socket to the proxy.
            host: The target host.
            port: The target port.
            scheme: The requested scheme prefix, like `tlsv12`. Narrows the
                crypto methods tried to that one when it names a known method.

        Returns:
            Socket: The encrypted socket, this may not be the socket passed in
            if the connection to the proxy had to be reopened.

        Raises:
            ProxyError: The proxy did not accept the CONNECT request.
            InvalidProxyResponse: The proxy did not answer with valid HTTP.
            CryptoError: No crypto method could be enabled on the tunnel.
        """
        candidates = select_candidates(scheme)
        # IPv6 literals need brackets in the authority form.
        authority = "[%s]" % host if ":" in host else host
        target = b"%s:%d" % (authority.encode("ascii"), port)
        remaining = len(candidates)
        failed = []

        try:
            for name, method in candidates.items():
                remaining -= 1

                # Errors from a previous, unrelated, attempt must not fail this one.
                self.tls.errors.clear()

                self._connect(sock, target)
                self.tls.set_peer_name(sock, host)

                try:
                    self.enabler.enable(sock, {name: method})
                except CryptoError as e:
                    logger.warning("Failed to enable %s cryptography through proxy: %s", name, e)
                    failed.append(name)
                    if remaining:
                        sock = sock.reopen()
                    continue

                return sock

        except Exception:
            sock.close()
            raise

        sock.close()
        raise CryptoError(
            "Cannot establish secure connection through proxy, tried %s" % ", ".join(failed),
            candidates=failed,
        )

    def _connect(
        self,
        sock: Socket,
        target: bytes,
    ) -> None:
        """Sends the CONNECT request and checks the proxy accepted it."""
        conn = h11.Connection(our_role=h11.CLIENT)

        request = h11.Request(method=b"CONNECT", target=target, headers=[(b"Host", target)])
        data = conn.send(request) + conn.send(h11.EndOfMessage())

        logger.info(">>> CONNECT %s HTTP/1.1", target.decode("ascii"))
        sock.write(data)

        event = self._receive_event(conn, sock)
        if isinstance(event, h11.ConnectionClosed):
            raise InvalidProxyResponse("Proxy did not answer with valid HTTP: connection closed")

        if not event.reason:
            raise InvalidProxyResponse("Proxy did not answer with valid HTTP: status line has no reason phrase")

        reason = event.reason.decode("ascii", errors="replace")
        handshake = ["HTTP/%s %d %s" % (event.http_version.decode(), event.status_code, reason)]
        handshake.extend("%s: %s" % (k.decode(), v.decode("latin-1")) for k, v in event.headers.raw_items())
        logger.info("<<< %s", "\n".join(handshake))

        if event.status_code != 200:
            raise ProxyError(event.status_code, reason)

    def _receive_event(
        self,
        conn: h11.Connection,
        sock: Socket,
    ) -> H11Event:
        while True:
            try:
                event = conn.next_event()
            except h11.RemoteProtocolError as e:
                raise InvalidProxyResponse("Proxy did not answer with valid HTTP: %s" % e) from e

            if event is h11.NEED_DATA:
                conn.receive_data(sock.read())
            else:
                return event
