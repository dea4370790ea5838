"""Payload codecs turning cached objects into bytes and back.

A codec is any object with ``serialize(obj) -> bytes`` and
``deserialize(data) -> obj``. Codec failures are raised as
SerializationError so the cache manager can classify them.
"""

import json
import pickle
from typing import Any, Protocol, runtime_checkable

from pooled_cache.cache.exceptions import SerializationError


@runtime_checkable
class Codec(Protocol):
    """Serialization contract consumed by CacheManager."""

    def serialize(self, obj: Any) -> bytes: ...

    def deserialize(self, data: bytes) -> Any: ...


class PickleCodec:
    """
    Default codec, round-trips arbitrary picklable Python objects.

    Only use with a Redis instance you trust: unpickling runs code chosen by
    whoever wrote the bytes.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def serialize(self, obj: Any) -> bytes:
        try:
            return pickle.dumps(obj, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise SerializationError("serialize", e) from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except Exception as e:
            # pickle.loads can raise nearly anything on corrupt input
            raise SerializationError("deserialize", e) from e


class JsonCodec:
    """
    JSON codec for values shared with non-Python readers.

    Lists and dicts round-trip; tuples come back as lists and arbitrary
    objects are rejected at serialize time.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def serialize(self, obj: Any) -> bytes:
        try:
            return json.dumps(obj, sort_keys=True).encode(self.encoding)
        except (TypeError, ValueError) as e:
            raise SerializationError("serialize", e) from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode(self.encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError("deserialize", e) from e
