# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import contextlib
import typing

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes


Headers = typing.List[typing.Tuple[bytes, bytes]]


def md5_hex(
    data: typing.Union[str, bytes],
) -> str:
    """Get the lowercase hex MD5 digest of the data passed in.

    Args:
        data: The data to hash, str values are encoded as UTF-8.

    Returns:
        str: The 32 character lowercase hex digest.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    digest = hashes.Hash(hashes.MD5(), default_backend())
    digest.update(data)

    return digest.finalize().hex()


@contextlib.contextmanager
def map_exceptions(exc_map: typing.Dict[typing.Type[Exception], typing.Type[Exception]]) -> typing.Iterator[None]:
    try:
        yield
    except Exception as exc:
        for from_exc, to_exc in exc_map.items():
            if isinstance(exc, from_exc):
                raise to_exc(str(exc) or type(exc).__name__) from exc
        raise
