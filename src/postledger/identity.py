"""Fixed-width keys used throughout the ledger: actor identities, record
addresses and record ids.

All three are 32 raw bytes. They are kept as distinct types so that an
address can never be compared equal to (or passed in place of) an identity
that happens to carry the same bytes.
"""

from __future__ import annotations

import secrets
from typing import Union

from postledger.exceptions import InvalidDataError

KEY_LENGTH = 32

KeyLike = Union["Key", bytes, bytearray, str]


class Key:
    """Immutable 32-byte value with a hex string form"""

    __slots__ = ("_bytes",)

    def __init__(self, value: KeyLike) -> None:
        if isinstance(value, Key):
            raw = bytes(value)
        elif isinstance(value, (bytes, bytearray)):
            raw = bytes(value)
        elif isinstance(value, str):
            try:
                raw = bytes.fromhex(value)
            except ValueError:
                raise InvalidDataError(
                    {"key": [f"'{value}' is not a hex encoded key"]}
                ) from None
        else:
            raise InvalidDataError(
                {"key": [f"Cannot build a key from {type(value).__name__}"]}
            )

        if len(raw) != KEY_LENGTH:
            raise InvalidDataError(
                {"key": [f"Key must be {KEY_LENGTH} bytes, got {len(raw)}"]}
            )

        object.__setattr__(self, "_bytes", raw)

    def __setattr__(self, name, value):
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def __reduce__(self):
        return (self.__class__, (self._bytes,))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    @classmethod
    def from_string(cls, value: str):
        return cls(value)

    @property
    def is_null(self) -> bool:
        return self._bytes == bytes(KEY_LENGTH)

    def __bytes__(self) -> bytes:
        return self._bytes

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._bytes == other._bytes

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self._bytes))

    def __str__(self) -> str:
        return self._bytes.hex()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self}>"


class Identity(Key):
    """The identity of an actor, like the public key of a wallet"""

    __slots__ = ()

    @classmethod
    def generate(cls) -> Identity:
        return cls(secrets.token_bytes(KEY_LENGTH))


class Address(Key):
    """Location of a record's bytes in the account store"""

    __slots__ = ()


class RecordId(Key):
    """Caller-chosen or generated identifier of a post or a comment.

    Small integers are accepted and widened to 32 little-endian bytes, so
    sequential ids (1, 2, 3...) live in the same id space as random ones.
    """

    __slots__ = ()

    def __init__(self, value: Union[KeyLike, int]) -> None:
        if isinstance(value, bool):
            raise InvalidDataError({"id": ["Boolean is not a valid record id"]})
        if isinstance(value, int):
            if value < 0:
                raise InvalidDataError({"id": ["Record id cannot be negative"]})
            try:
                value = value.to_bytes(KEY_LENGTH, "little")
            except OverflowError:
                raise InvalidDataError(
                    {"id": [f"Record id does not fit in {KEY_LENGTH} bytes"]}
                ) from None
        super().__init__(value)

    @classmethod
    def generate(cls) -> RecordId:
        return cls(generate_record_id())

    def as_int(self) -> int:
        return int.from_bytes(bytes(self), "little")


def generate_record_id() -> bytes:
    """Return 32 random bytes, wide enough that independently generated ids
    practically never collide"""
    return secrets.token_bytes(KEY_LENGTH)
