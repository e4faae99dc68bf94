"""Configuration for Pakay.

Reads from config/pakay.ini if present, environment variables override.
Salts never checked into version control: use %env(NAME)% in the INI file
or the PAKAY_SALT environment variable.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path

from pakay.errors import ConfigurationError

_CONFIG_FILE = Path(__file__).resolve().parent.parent.parent / "config" / "pakay.ini"

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ1234567890"
DEFAULT_MIN_LENGTH = 10
DEFAULT_CACHE_CAPACITY = 10
DEFAULT_HASHER = "default"

_HASHER_SECTION_PREFIX = "hasher:"


@dataclass(frozen=True)
class HasherProfile:
    """A named hasher. Unset values inherit the top-level defaults."""

    salt: str | None = None
    min_length: int | None = None
    alphabet: str | None = None


@dataclass(frozen=True)
class PakayConfig:
    """Pakay configuration. Immutable once loaded."""

    salt: str = ""
    min_length: int = DEFAULT_MIN_LENGTH
    alphabet: str = DEFAULT_ALPHABET
    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    hashers: dict[str, HasherProfile] = field(default_factory=dict)
    api_key: str = ""
    host: str = "127.0.0.1"
    port: int = 8000


def _resolve_env_reference(value: str) -> str:
    """Replace a whole-value %env(NAME)% reference with the variable's value.

    Unset variables leave the reference in place, so a missing secret shows
    up as an obviously wrong salt instead of silently becoming empty.
    """
    if value.startswith("%env(") and value.endswith(")%"):
        name = value[len("%env(") : -len(")%")]
        return os.getenv(name, value)
    return value


def _to_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(key, f"expected an integer, got {value!r}") from None


def _read_hasher_profile(section: configparser.SectionProxy) -> HasherProfile:
    salt = section.get("salt", fallback=None)
    min_length = section.get("min_length", fallback=None)
    alphabet = section.get("alphabet", fallback=None)
    return HasherProfile(
        salt=_resolve_env_reference(salt) if salt is not None else None,
        min_length=_to_int("min_length", min_length) if min_length is not None else None,
        alphabet=_resolve_env_reference(alphabet) if alphabet is not None else None,
    )


def load_config(config_path: Path | None = None) -> PakayConfig:
    """Load config from INI file, then override with environment variables."""
    path = config_path or _CONFIG_FILE
    kwargs: dict = {}
    hashers: dict[str, HasherProfile] = {}

    if path.exists():
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(path)
        if parser.has_section("hashids"):
            for ini_key, config_key in [
                ("salt", "salt"),
                ("alphabet", "alphabet"),
            ]:
                val = parser.get("hashids", ini_key, fallback=None)
                if val is not None:
                    kwargs[config_key] = _resolve_env_reference(val)
            for ini_key, config_key in [
                ("min_length", "min_length"),
                ("cache_capacity", "cache_capacity"),
            ]:
                val = parser.get("hashids", ini_key, fallback=None)
                if val is not None:
                    kwargs[config_key] = _to_int(config_key, val)
        for section in parser.sections():
            if section.startswith(_HASHER_SECTION_PREFIX):
                name = section[len(_HASHER_SECTION_PREFIX) :].strip()
                hashers[name] = _read_hasher_profile(parser[section])
        if parser.has_section("gateway"):
            for ini_key, config_key in [
                ("api_key", "api_key"),
                ("host", "host"),
            ]:
                val = parser.get("gateway", ini_key, fallback=None)
                if val is not None:
                    kwargs[config_key] = _resolve_env_reference(val)
            port_str = parser.get("gateway", "port", fallback=None)
            if port_str is not None:
                kwargs["port"] = _to_int("port", port_str)

    env_map = {
        "PAKAY_SALT": "salt",
        "PAKAY_MIN_LENGTH": "min_length",
        "PAKAY_ALPHABET": "alphabet",
        "PAKAY_CACHE_CAPACITY": "cache_capacity",
        "PAKAY_API_KEY": "api_key",
        "PAKAY_HOST": "host",
        "PAKAY_PORT": "port",
    }
    int_keys = {"min_length", "cache_capacity", "port"}
    for env_key, config_key in env_map.items():
        val = os.getenv(env_key)
        if val is not None:
            if config_key in int_keys:
                kwargs[config_key] = _to_int(config_key, val)
            else:
                kwargs[config_key] = val

    kwargs = {k: v for k, v in kwargs.items() if v is not None}
    return PakayConfig(hashers=hashers, **kwargs)
