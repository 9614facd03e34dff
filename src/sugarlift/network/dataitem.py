"""ANS-104 data items signed with a Solana (Ed25519) key.

Layout: signature type (u16 LE) | signature (64) | owner (32) | target flag | anchor flag |
tag count (u64 LE) | tag bytes length (u64 LE) | Avro-encoded tags | data. The signature covers
the SHA-384 deep hash of the item fields.
"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Sequence
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

ED25519_SIGNATURE_TYPE = 2


@dataclass(frozen=True, slots=True)
class Tag:
    name: str
    value: str


def deep_hash(chunk: bytes | Sequence) -> bytes:
    """Arweave deep hash of a blob or a nested list of blobs."""

    if isinstance(chunk, (bytes, bytearray)):
        tag = b"blob" + str(len(chunk)).encode()
        return _sha384(_sha384(tag) + _sha384(bytes(chunk)))

    accumulator = _sha384(b"list" + str(len(chunk)).encode())
    for item in chunk:
        accumulator = _sha384(accumulator + deep_hash(item))
    return accumulator


def encode_tags(tags: Sequence[Tag]) -> bytes:
    """Avro-encode tags as an array of `{name: bytes, value: bytes}` records."""

    if not tags:
        return b""
    out = bytearray(_avro_long(len(tags)))
    for tag in tags:
        for text in (tag.name, tag.value):
            raw = text.encode("utf-8")
            out += _avro_long(len(raw))
            out += raw
    out += _avro_long(0)
    return bytes(out)


class DataItemSigner:
    """Builds signed data items from a 32-byte Ed25519 seed."""

    def __init__(self, seed: bytes) -> None:
        if len(seed) != 32:
            raise ValueError("Ed25519 seed must be 32 bytes.")
        self._key = Ed25519PrivateKey.from_private_bytes(seed)
        self.owner = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    def create_data_item(self, data: bytes, tags: Sequence[Tag]) -> bytes:
        tag_bytes = encode_tags(tags)
        message = deep_hash(
            [
                b"dataitem",
                b"1",
                str(ED25519_SIGNATURE_TYPE).encode(),
                self.owner,
                b"",
                b"",
                tag_bytes,
                data,
            ]
        )
        signature = self._key.sign(message)
        return b"".join(
            (
                struct.pack("<H", ED25519_SIGNATURE_TYPE),
                signature,
                self.owner,
                b"\x00",
                b"\x00",
                struct.pack("<Q", len(tags)),
                struct.pack("<Q", len(tag_bytes)),
                tag_bytes,
                data,
            )
        )


def _sha384(data: bytes) -> bytes:
    return hashlib.sha384(data).digest()


def _avro_long(value: int) -> bytes:
    encoded = (value << 1) ^ (value >> 63)
    out = bytearray()
    while encoded & ~0x7F:
        out.append((encoded & 0x7F) | 0x80)
        encoded >>= 7
    out.append(encoded)
    return bytes(out)
