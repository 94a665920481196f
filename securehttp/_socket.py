# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import httpcore
import logging
import ssl
import typing

from .exceptions import (
    TransportError,
)

from ._utils import (
    map_exceptions,
)

logger = logging.getLogger(__name__)

READ_NUM_BYTES = 64 * 1024

_IO_ERRORS = {
    httpcore.TimeoutException: TransportError,
    httpcore.NetworkError: TransportError,
    ssl.SSLError: TransportError,
}


class Socket:
    """A blocking TCP connection to a single endpoint.

    Built on top of the httpcore network backends. The endpoint is fixed for the
    lifetime of the object, `reopen()` is used to get a fresh connection to the
    same endpoint once this one is unusable.

    Args:
        host: The hostname to connect to.
        port: The port to connect to.
        backend: The httpcore network backend, defaults to `httpcore.SyncBackend`.
        timeout: The connect, read and write timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        backend: typing.Optional[httpcore.NetworkBackend] = None,
        timeout: typing.Optional[float] = None,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.peer_name: typing.Optional[str] = None

        self._backend = backend or httpcore.SyncBackend()
        self._stream: typing.Optional[httpcore.NetworkStream] = None
        self._buffer = bytearray()

    def __enter__(self) -> "Socket":
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return "<%s %s:%d>" % (type(self).__name__, self.host, self.port)

    @property
    def connected(self) -> bool:
        return self._stream is not None

    @property
    def handle(self) -> httpcore.NetworkStream:
        """The underlying network stream."""
        if self._stream is None:
            raise TransportError("Socket to %s:%d is not connected" % (self.host, self.port))

        return self._stream

    @property
    def ssl_object(self) -> typing.Optional[typing.Any]:
        """The SSL object of the stream, None when the socket is not encrypted."""
        if self._stream is None:
            return None

        return self._stream.get_extra_info("ssl_object")

    def connect(self) -> None:
        with map_exceptions(_IO_ERRORS):
            self._stream = self._backend.connect_tcp(self.host, self.port, timeout=self.timeout)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        self._buffer = bytearray()

        if stream is not None:
            with map_exceptions(_IO_ERRORS):
                stream.close()

    def reopen(self) -> "Socket":
        """Closes this socket and returns a new connected socket to the same endpoint."""
        logger.debug("Reopening connection to %s:%d", self.host, self.port)
        self.close()

        sock = type(self)(self.host, self.port, backend=self._backend, timeout=self.timeout)
        sock.connect()

        return sock

    def write(
        self,
        data: bytes,
    ) -> None:
        if not data:
            return

        with map_exceptions(_IO_ERRORS):
            self.handle.write(data, timeout=self.timeout)

    def read(
        self,
        max_bytes: int = READ_NUM_BYTES,
    ) -> bytes:
        """Reads the next chunk of data, an empty byte string means the peer closed the connection."""
        if self._buffer:
            data = bytes(self._buffer[:max_bytes])
            del self._buffer[:max_bytes]
            return data

        with map_exceptions(_IO_ERRORS):
            return self.handle.read(max_bytes, timeout=self.timeout)

    def readline(self) -> bytes:
        """Reads a single line without the line terminator, an empty byte string is returned on EOF."""
        while b"\n" not in self._buffer:
            with map_exceptions(_IO_ERRORS):
                data = self.handle.read(READ_NUM_BYTES, timeout=self.timeout)

            if not data:
                line = bytes(self._buffer)
                self._buffer = bytearray()
                return line

            self._buffer += data

        idx = self._buffer.index(b"\n")
        line = bytes(self._buffer[:idx])
        del self._buffer[: idx + 1]

        return line.rstrip(b"\r")

    def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: typing.Optional[str] = None,
    ) -> None:
        """Upgrades the connection to TLS, all further I/O is encrypted."""
        if self._buffer:
            raise TransportError("Cannot start TLS with %d unread bytes in the buffer" % len(self._buffer))

        with map_exceptions(_IO_ERRORS):
            self._stream = self.handle.start_tls(ssl_context, server_hostname=server_hostname, timeout=self.timeout)
