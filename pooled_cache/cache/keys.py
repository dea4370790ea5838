"""Cache key validation and text encoding.

Keys are arbitrary non-empty strings on the caller side and raw bytes at the
Redis boundary. KeyCodec applies one fixed text encoding in both directions.
"""

from typing import Any

from pooled_cache.cache.exceptions import InvalidKeyError, SerializationError

WILDCARD_ALL = "*"


class KeyCodec:
    """
    Encode cache keys to bytes and decode raw keys returned by KEYS.

    Attributes:
        encoding: Text encoding used for every key
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def encode(self, key: Any) -> bytes:
        """
        Validate and encode a cache key.

        Raises:
            InvalidKeyError: If key is not a non-empty string

        Example:
            >>> KeyCodec().encode("user:42")
            b'user:42'
        """
        if not isinstance(key, str) or not key:
            raise InvalidKeyError(key)
        return key.encode(self.encoding)

    def decode(self, raw: bytes) -> str:
        """
        Decode a raw key read back from the store.

        Raises:
            SerializationError: If the key is not valid in the key encoding
        """
        try:
            return raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise SerializationError("decode_key", e) from e

    def pattern(self, pattern: str = WILDCARD_ALL) -> bytes:
        """Encode a KEYS match pattern; defaults to every key."""
        return pattern.encode(self.encoding)
