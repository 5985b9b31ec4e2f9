"""Deterministic derivation of record addresses.

A record lives at an address computed from a namespace tag, the key that
scopes it (the owner of a post, the parent post of a comment), its record
id and the program identity the store runs under. The address is the
SHA-256 digest of those seeds followed by a one byte nonce.

Some digests are unusable as addresses: any 32 bytes that decode to a point
on the ed25519 curve could have a private key behind them, and the all-zero
address is the null key. Derivation walks the nonce down from 255 and takes
the first digest that is neither, so identical inputs always produce the
identical ``(address, nonce)`` pair.
"""

from __future__ import annotations

import hashlib
import logging
from enum import Enum
from typing import Optional, Union

from postledger.config import DEFAULT_PROGRAM_ID
from postledger.exceptions import AddressDerivationError
from postledger.identity import KEY_LENGTH, Address, Identity, Key, RecordId

logger = logging.getLogger(__name__)

MAX_SEEDS = 16
MAX_SEED_LENGTH = 32
ADDRESS_MARKER = b"ProgramDerivedAddress"

# ed25519 field prime and curve constant
_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P


class Namespace(Enum):
    POST = "post"
    COMMENT = "comment"


def is_on_curve(candidate: bytes) -> bool:
    """Check whether 32 bytes are a valid compressed ed25519 point.

    The sign bit is ignored, the y coordinate is reduced modulo p and the
    point is valid when ``(y^2 - 1) / (d*y^2 + 1)`` has a square root.
    """
    y = int.from_bytes(candidate, "little") & ((1 << 255) - 1)
    y %= _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, -1, _P) % _P
    if x2 == 0:
        return True

    # Euler's criterion
    return pow(x2, (_P - 1) // 2, _P) == 1


def _validate_seeds(seeds: list[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise AddressDerivationError(
            f"At most {MAX_SEEDS} seeds are allowed, got {len(seeds)}"
        )
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise AddressDerivationError(
                f"Seed of {len(seed)} bytes exceeds the {MAX_SEED_LENGTH} byte limit"
            )


def create_address_with_nonce(
    seeds: list[bytes], nonce: int, program_id: Key
) -> Address:
    """Recompute the address for explicit seeds and nonce.

    Raises ``AddressDerivationError`` if the result is a reserved address.
    """
    _validate_seeds(seeds)
    if not 0 <= nonce <= 255:
        raise AddressDerivationError(f"Nonce {nonce} is out of range")

    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes([nonce]))
    hasher.update(bytes(program_id))
    hasher.update(ADDRESS_MARKER)
    digest = hasher.digest()

    if digest == bytes(KEY_LENGTH) or is_on_curve(digest):
        raise AddressDerivationError("Seeds produce a reserved address")

    return Address(digest)


def find_address(seeds: list[bytes], program_id: Key) -> tuple[Address, int]:
    """Return the first usable address for ``seeds``, searching nonces from
    255 downwards, along with the nonce that produced it"""
    _validate_seeds(seeds)

    for nonce in range(255, 0, -1):
        try:
            return create_address_with_nonce(seeds, nonce, program_id), nonce
        except AddressDerivationError:
            continue

    raise AddressDerivationError("Unable to find a usable address for the seeds")


def address_seeds(
    namespace: Union[Namespace, str], scope: Key, record_id: Union[RecordId, int]
) -> list[bytes]:
    try:
        namespace = Namespace(namespace)
    except ValueError:
        raise AddressDerivationError(f"Unknown namespace {namespace!r}") from None

    record_id = record_id if isinstance(record_id, RecordId) else RecordId(record_id)
    return [namespace.value.encode("utf-8"), bytes(scope), bytes(record_id)]


def derive_address(
    namespace: Union[Namespace, str],
    scope: Key,
    record_id: Union[RecordId, int],
    program_id: Optional[Key] = None,
) -> tuple[Address, int]:
    """Derive the address and nonce of a record.

    ``scope`` is the owner identity for posts and the parent post address
    for comments. Every seed but the namespace tag is fixed width, and the
    tags differ in length, so distinct inputs never share a hash preimage.
    Without a ``program_id`` the default program identity is used.
    """
    if program_id is None:
        program_id = Identity(DEFAULT_PROGRAM_ID)

    seeds = address_seeds(namespace, scope, record_id)
    address, nonce = find_address(seeds, program_id)
    logger.debug(f"Derived {seeds[0].decode()} address {address} with nonce {nonce}")
    return address, nonce
