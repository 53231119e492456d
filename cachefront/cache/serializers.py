"""
cachefront - Value Serializers

Named codecs that turn cache values into storable bytes and back:
- json: human-readable structured format (the fallback codec)
- msgpack: compact binary format
- pickle: Python-native binary format

Codecs are stateless. get_serializer() never fails: an empty or unrecognized
name resolves to the JSON codec, so a typo in configuration degrades to a
working cache instead of a startup failure.
"""

from __future__ import annotations

import json
import logging
import pickle
from abc import ABC, abstractmethod
from typing import Any

import msgpack

from ..errors import SerializationError

logger = logging.getLogger(__name__)

JSON = "json"
MSGPACK = "msgpack"
PICKLE = "pickle"

DEFAULT_SERIALIZER = JSON


class Serializer(ABC):
    """Stateless encode/decode pair identified by name."""

    name: str = ""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """
        Encode a value to bytes.

        Raises:
            SerializationError: If the value cannot be represented by this codec
        """

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """
        Decode bytes produced by encode().

        Raises:
            SerializationError: If the payload is not valid for this codec
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class JSONSerializer(Serializer):
    """UTF-8 JSON, compact separators."""

    name = JSON

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"could not serialize value of type {type(value).__name__}: {e}",
                serializer=self.name,
                details={"value_type": type(value).__name__},
            ) from e

    def decode(self, data: bytes) -> Any:
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            return json.loads(data.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise SerializationError(f"could not deserialize value: {e}", serializer=self.name) from e


class MsgpackSerializer(Serializer):
    """MessagePack with the bin type enabled and str map keys decoded as text."""

    name = MSGPACK

    def encode(self, value: Any) -> bytes:
        try:
            return msgpack.packb(value, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise SerializationError(
                f"could not serialize value of type {type(value).__name__}: {e}",
                serializer=self.name,
                details={"value_type": type(value).__name__},
            ) from e

    def decode(self, data: bytes) -> Any:
        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (msgpack.exceptions.UnpackException, ValueError, TypeError) as e:
            raise SerializationError(f"could not deserialize value: {e}", serializer=self.name) from e


class PickleSerializer(Serializer):
    """
    Python-native pickle codec.

    Only decode payloads written by a trusted process: unpickling executes code.
    """

    name = PICKLE

    def encode(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except Exception as e:
            raise SerializationError(
                f"could not serialize value of type {type(value).__name__}: {e}",
                serializer=self.name,
                details={"value_type": type(value).__name__},
            ) from e

    def decode(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)  # nosec B301
        except Exception as e:
            raise SerializationError(f"could not deserialize value: {e}", serializer=self.name) from e


_JSON = JSONSerializer()
_MSGPACK = MsgpackSerializer()
_PICKLE = PickleSerializer()


def get_serializer(name: str | None) -> Serializer:
    """
    Resolve a codec by name.

    Total over all inputs: None, "" and unknown names return the JSON codec.
    Matching is case-insensitive and ignores surrounding whitespace.

    Args:
        name: Codec name ("json", "msgpack", "pickle")

    Returns:
        The shared, stateless Serializer instance for that codec
    """
    normalized = (name or "").strip().lower()

    if normalized == MSGPACK:
        return _MSGPACK
    elif normalized == PICKLE:
        return _PICKLE
    elif normalized == JSON:
        return _JSON
    else:
        logger.debug(
            f"Unknown serializer '{name}', falling back to '{DEFAULT_SERIALIZER}'",
            extra={"serializer": name, "fallback": DEFAULT_SERIALIZER},
        )
        return _JSON


def available_serializers() -> list[str]:
    """List the codec names get_serializer() recognizes."""
    return [JSON, MSGPACK, PICKLE]
