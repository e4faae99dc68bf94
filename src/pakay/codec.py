"""Codec configuration and the reversible integer <-> token converter.

The obfuscation algorithm itself is hashids. Pakay only decides which
hashids instance to use for a given configuration and how to treat values
it cannot encode or decode.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from hashids import Hashids

from pakay.errors import ConfigurationError

MAX_MIN_LENGTH = 255
MIN_ALPHABET_LENGTH = 16
MAX_HASHER_NAME_LENGTH = 50

_HASHER_NAME_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-."
)


def is_valid_hasher_name(name: str) -> bool:
    return (
        0 < len(name) <= MAX_HASHER_NAME_LENGTH
        and all(c in _HASHER_NAME_CHARS for c in name)
    )


class Converter(Protocol):
    """Reversible integer <-> token codec."""

    def encode(self, value: int) -> str: ...

    def decode(self, token: str) -> int | None: ...


@dataclass(frozen=True)
class CodecConfig:
    """Everything that determines a converter's behavior.

    Two configs with the same fingerprint always share one cached converter.
    """

    hasher_name: str
    salt: str
    min_length: int
    alphabet: str

    def __post_init__(self):
        if not isinstance(self.hasher_name, str) or not is_valid_hasher_name(self.hasher_name):
            raise ConfigurationError(
                "hasher_name",
                f"{self.hasher_name!r} must be 1-{MAX_HASHER_NAME_LENGTH} characters "
                "of letters, digits, '_', '-' or '.'",
            )
        if not isinstance(self.salt, str):
            raise ConfigurationError("salt", "must be a string")
        if (
            not isinstance(self.min_length, int)
            or isinstance(self.min_length, bool)
            or self.min_length < 0
        ):
            raise ConfigurationError("min_length", "must be a non-negative integer")
        if self.min_length > MAX_MIN_LENGTH:
            raise ConfigurationError("min_length", f"cannot exceed {MAX_MIN_LENGTH}")
        if not isinstance(self.alphabet, str):
            raise ConfigurationError("alphabet", "must be a string")
        if any(c.isspace() for c in self.alphabet):
            raise ConfigurationError("alphabet", "must not contain whitespace")
        unique = len(set(self.alphabet))
        if unique < MIN_ALPHABET_LENGTH:
            raise ConfigurationError(
                "alphabet",
                f"must contain at least {MIN_ALPHABET_LENGTH} unique characters, got {unique}",
            )

    @property
    def fingerprint(self) -> tuple[str, str, int, str]:
        return (self.hasher_name, self.salt, self.min_length, self.alphabet)


class HashidsConverter:
    """Converter backed by a hashids instance."""

    def __init__(self, hashids: Hashids):
        self._hashids = hashids

    @classmethod
    def from_config(cls, config: CodecConfig) -> HashidsConverter:
        return cls(
            Hashids(
                salt=config.salt,
                min_length=config.min_length,
                alphabet=config.alphabet,
            )
        )

    def encode(self, value: int) -> str:
        """Token for a non-negative integer; empty string if not encodable."""
        return self._hashids.encode(value)

    def decode(self, token: str) -> int | None:
        """Integer behind a token, or None for malformed or foreign tokens.

        Tokens that carry more than one number were not produced by encode()
        and are treated as foreign.
        """
        numbers = self._hashids.decode(token)
        if len(numbers) != 1:
            return None
        return numbers[0]
