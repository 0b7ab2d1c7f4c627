import pytest

from runstore.serializers import (
    SERIALIZERS,
    JSONSerializer,
    MsgpackSerializer,
    compress,
    decompress,
    get_serializer,
)
from utils_test import make_payload


@pytest.mark.parametrize("name", sorted(SERIALIZERS))
def test_round_trip(name):
    serializer = get_serializer(name)
    payload = make_payload()
    payload["nested==>deep"] = {"children": {"a": [1, 2, 3]}, "label": "ünïcode"}

    stored = compress(serializer.encode(payload))
    assert isinstance(stored, bytes)
    assert serializer.decode(decompress(stored)) == payload


def test_compression_shrinks_repetitive_payload():
    payload = {f"fn_{i}==>strlen": {"ct": 1, "wt": 2, "cpu": 3} for i in range(500)}
    encoded = JSONSerializer().encode(payload)
    assert len(compress(encoded)) < len(encoded) / 4


def test_msgpack_allows_integer_keys():
    serializer = MsgpackSerializer()
    assert serializer.decode(serializer.encode({0: "a", 1: "b"})) == {0: "a", 1: "b"}


def test_get_serializer():
    assert isinstance(get_serializer("JSON"), JSONSerializer)
    assert get_serializer("msgpack").name == "msgpack"
    with pytest.raises(ValueError, match="Unknown serializer"):
        get_serializer("php")
