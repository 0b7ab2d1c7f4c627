"""
Encoding of run payloads and request snapshots.

A serializer is chosen once from configuration and threaded through the
repository, so call sites never branch on the format name.
"""
from __future__ import annotations

import json
import zlib
from typing import Any, Protocol

import msgpack

COMPRESSION_LEVEL = 2


class Serializer(Protocol):
    name: str

    def encode(self, value: Any) -> bytes:
        ...

    def decode(self, data: bytes) -> Any:
        ...


class MsgpackSerializer:
    """Binary-native format"""

    name = "msgpack"

    def encode(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True)

    def decode(self, data: bytes) -> Any:
        # Profiler keys such as "main()==>foo" are always strings, but request
        # snapshots may carry integer keys
        return msgpack.unpackb(data, raw=False, strict_map_key=False)


class JSONSerializer:
    name = "json"

    def encode(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":")).encode("utf-8")

    def decode(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


SERIALIZERS = {
    "msgpack": MsgpackSerializer,
    "json": JSONSerializer,
}


def get_serializer(name: str) -> Serializer:
    try:
        return SERIALIZERS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown serializer {name!r}; expected one of {sorted(SERIALIZERS)}"
        ) from None


def compress(data: bytes) -> bytes:
    return zlib.compress(data, COMPRESSION_LEVEL)


def decompress(data: bytes) -> bytes:
    return zlib.decompress(data)
