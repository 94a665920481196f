# -*- coding: utf-8 -*-
# Copyright: (c) 2021, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

import hmac
import os
import typing


class SecureString:
    """A secret string value.

    The value is kept masked in memory and is never part of the repr, str or
    any pickled form of the object. The plain text is only available through
    `reveal()` and is wiped by `clear()` once the owner is done with it.

    Args:
        value: The secret value.
    """

    __slots__ = ("_pad", "_masked")

    def __init__(
        self,
        value: str,
    ):
        data = value.encode("utf-8")
        self._pad = bytearray(os.urandom(len(data)))
        self._masked = bytearray(b ^ p for b, p in zip(data, self._pad))

    def reveal(self) -> str:
        """Returns the plain text value."""
        return bytes(b ^ p for b, p in zip(self._masked, self._pad)).decode("utf-8")

    def clear(self) -> None:
        """Wipes the secret, after this the value is an empty string."""
        for buffer in (self._masked, self._pad):
            for i in range(len(buffer)):
                buffer[i] = 0
            del buffer[:]

    def __len__(self) -> int:
        return len(self._masked)

    def __bool__(self) -> bool:
        return len(self._masked) > 0

    def __eq__(self, other: typing.Any) -> bool:
        if not isinstance(other, SecureString):
            return NotImplemented

        return hmac.compare_digest(self.reveal().encode("utf-8"), other.reveal().encode("utf-8"))

    __hash__ = None

    def __repr__(self) -> str:
        return "<SecureString ********>"

    __str__ = __repr__

    def __copy__(self):
        raise TypeError("SecureString cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("SecureString cannot be copied")

    def __reduce_ex__(self, protocol):
        raise TypeError("SecureString cannot be serialized")


def to_secure_string(
    value: typing.Optional[typing.Union[str, SecureString]],
) -> SecureString:
    """Wraps a plain str, None becomes an empty secret."""
    if isinstance(value, SecureString):
        return value

    return SecureString(value or "")
