# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import h11
import httpcore
import httpx
import logging
import typing

from .exceptions import (
    TransportError,
)

from ._crypto import (
    CRYPTO_METHODS,
    CryptoEnabler,
    select_candidates,
    TLSLayer,
)

from ._socket import (
    Socket,
)

from ._tunnel import (
    ProxyTunnel,
)

from ._utils import (
    Headers,
    map_exceptions,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
DEFAULT_TLS_PORT = 443

# https and ssl leave the crypto method open, the others pin it.
SECURE_SCHEMES = frozenset(["https", "ssl"] + list(CRYPTO_METHODS))

_H11_ERRORS = {
    h11.RemoteProtocolError: TransportError,
    h11.LocalProtocolError: TransportError,
}


class SecureTransport(httpx.BaseTransport):
    """A httpx transport with TLS method selection and CONNECT proxy tunnels.

    The URL scheme selects the crypto method, `tlsv12://host/` only ever uses
    TLS 1.2 while `https://host/` uses the default TLS client method on a direct
    connection and falls back through every known method in a proxy tunnel.
    Each request uses its own connection which is closed once the response has
    been read.

    Args:
        proxy_url: The HTTP proxy to send requests through.
        tls: The TLS layer, built from `verify` and `ca_file` when not set.
        verify: Whether to verify the server certificate.
        ca_file: A CA bundle to verify the server certificate with.
        timeout: The connect, read and write timeout in seconds.
        backend: The httpcore network backend to open connections with.
    """

    def __init__(
        self,
        proxy_url: typing.Optional[typing.Union[str, httpx.URL]] = None,
        tls: typing.Optional[TLSLayer] = None,
        verify: bool = True,
        ca_file: typing.Optional[str] = None,
        timeout: typing.Optional[float] = None,
        backend: typing.Optional[httpcore.NetworkBackend] = None,
    ):
        self._tls = tls or TLSLayer(verify=verify, ca_file=ca_file)
        self._enabler = CryptoEnabler(self._tls)
        self._tunnel = ProxyTunnel(self._tls, self._enabler)
        self._proxy_url = httpx.URL(proxy_url) if proxy_url else None
        self._timeout = timeout
        self._backend = backend or httpcore.SyncBackend()

    def handle_request(
        self,
        request: httpx.Request,
    ) -> httpx.Response:
        url = request.url
        if url.scheme != "http" and url.scheme not in SECURE_SCHEMES:
            raise httpx.UnsupportedProtocol("Request URL has an unsupported scheme '%s'" % url.scheme)

        sock, target = self._connect(url)
        with sock:
            return self._send(sock, request, target)

    def _connect(
        self,
        url: httpx.URL,
    ) -> typing.Tuple[Socket, bytes]:
        secure = url.scheme in SECURE_SCHEMES
        host = url.raw_host.decode("ascii")
        port = url.port or (DEFAULT_TLS_PORT if secure else DEFAULT_PORT)

        if self._proxy_url:
            proxy = self._proxy_url
            sock = self._open_socket(proxy.raw_host.decode("ascii"), proxy.port or DEFAULT_PORT)
            if not secure:
                # Plain HTTP goes to the proxy with the absolute URL as the target.
                return sock, str(url).encode("ascii")

            requested = None if url.scheme in ["https", "ssl"] else url.scheme
            return self._tunnel.establish(sock, host, port, requested), url.raw_path

        sock = self._open_socket(host, port)
        if secure:
            method = "tls" if url.scheme in ["https", "ssl"] else url.scheme
            try:
                self._tls.errors.clear()
                self._tls.set_peer_name(sock, host)
                self._enabler.enable(sock, select_candidates(method))
            except Exception:
                sock.close()
                raise

        return sock, url.raw_path

    def _open_socket(
        self,
        host: str,
        port: int,
    ) -> Socket:
        sock = Socket(host, port, backend=self._backend, timeout=self._timeout)
        sock.connect()
        return sock

    def _send(
        self,
        sock: Socket,
        request: httpx.Request,
        target: bytes,
    ) -> httpx.Response:
        conn = h11.Connection(our_role=h11.CLIENT)

        headers: Headers = list(request.headers.raw)
        if not any(k.lower() == b"connection" for k, _ in headers):
            headers.append((b"Connection", b"close"))

        with map_exceptions(_H11_ERRORS):
            event = h11.Request(method=request.method.encode("ascii"), target=target, headers=headers)
            logger.debug(">>> %s %s", request.method, target.decode("ascii", errors="replace"))
            sock.write(conn.send(event))

            for chunk in request.stream:
                sock.write(conn.send(h11.Data(data=chunk)))
            sock.write(conn.send(h11.EndOfMessage()))

            while True:
                event = self._receive_event(conn, sock)
                if isinstance(event, h11.Response):
                    break

                elif isinstance(event, h11.ConnectionClosed):
                    raise TransportError("Server closed the connection without sending a response")

            logger.debug("<<< %d %s", event.status_code, event.reason.decode("ascii", errors="replace"))

            body = []
            while True:
                data = self._receive_event(conn, sock)
                if isinstance(data, h11.Data):
                    body.append(bytes(data.data))
                elif isinstance(data, (h11.EndOfMessage, h11.ConnectionClosed)):
                    break

        return httpx.Response(
            status_code=event.status_code,
            headers=event.headers.raw_items(),
            stream=httpx.ByteStream(b"".join(body)),
            extensions={
                "http_version": b"HTTP/" + event.http_version,
                "reason_phrase": event.reason,
            },
        )

    def _receive_event(
        self,
        conn: h11.Connection,
        sock: Socket,
    ) -> typing.Any:
        while True:
            event = conn.next_event()
            if event is h11.NEED_DATA:
                conn.receive_data(sock.read())
            else:
                return event
