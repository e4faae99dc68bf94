"""The decoder ring: integer ids <-> URL tokens for declared parameters only.

Failures never propagate. A value that cannot be encoded or decoded is left
as it was, and a hasher that cannot be found leaves the whole map alone.
Turning a leftover token into a 422 is the handler's own validation.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import MutableMapping
from typing import Any

from pakay.codec import Converter
from pakay.declarations import RouteMetadata
from pakay.errors import PakayError
from pakay.hashers import HasherRegistry

logger = logging.getLogger("pakay.transformer")

ParameterMap = MutableMapping[str, Any]


class Direction(enum.Enum):
    ENCODE = "encode"
    DECODE = "decode"


def _encode_value(converter: Converter, value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        number = int(value)
    else:
        return value
    if number < 0:
        return value
    token = converter.encode(number)
    return token if token else value


def _decode_value(converter: Converter, value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    number = converter.decode(value)
    return value if number is None else number


_VALUE_FUNCS = {
    Direction.ENCODE: _encode_value,
    Direction.DECODE: _decode_value,
}


class ParameterTransformer:
    def __init__(self, hashers: HasherRegistry):
        self._hashers = hashers

    @property
    def hashers(self) -> HasherRegistry:
        return self._hashers

    def apply(
        self,
        metadata: RouteMetadata | None,
        params: ParameterMap,
        direction: Direction,
    ) -> ParameterMap:
        """Transform the declared entries of ``params`` in place and return it."""
        if metadata is None or not params:
            return params
        try:
            converter = self._hashers.converter_for(metadata.hasher_name)
        except PakayError as exc:
            logger.warning("Leaving parameters untransformed: %s", exc)
            return params

        transform = _VALUE_FUNCS[direction]
        for name in metadata.parameter_names:
            if name not in params:
                continue
            value = params[name]
            try:
                if isinstance(value, (list, tuple)):
                    params[name] = type(value)(transform(converter, item) for item in value)
                else:
                    params[name] = transform(converter, value)
            except Exception:
                logger.exception(
                    "Failed to %s parameter %r with hasher %r",
                    direction.value,
                    name,
                    metadata.hasher_name,
                )
        return params

    def encode(self, metadata: RouteMetadata | None, params: ParameterMap) -> ParameterMap:
        return self.apply(metadata, params, Direction.ENCODE)

    def decode(self, metadata: RouteMetadata | None, params: ParameterMap) -> ParameterMap:
        return self.apply(metadata, params, Direction.DECODE)
