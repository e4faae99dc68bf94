"""Named hasher profiles.

A "default" hasher always exists. Other profiles (e.g. a longer-token
"secure" one for account ids) inherit whatever they leave unset.
"""

from __future__ import annotations

from pakay.cache import CodecCache
from pakay.codec import CodecConfig, Converter
from pakay.config import DEFAULT_HASHER, HasherProfile, PakayConfig
from pakay.errors import HasherNotFoundError


class HasherRegistry:
    def __init__(self, config: PakayConfig, cache: CodecCache):
        self._cache = cache
        self._configs: dict[str, CodecConfig] = {}
        self.register(DEFAULT_HASHER, HasherProfile(), defaults=config)
        for name, profile in config.hashers.items():
            self.register(name, profile, defaults=config)

    def register(self, name: str, profile: HasherProfile, *, defaults: PakayConfig) -> CodecConfig:
        """Validate and store a profile. Raises ConfigurationError when invalid."""
        codec_config = CodecConfig(
            hasher_name=name,
            salt=profile.salt if profile.salt is not None else defaults.salt,
            min_length=profile.min_length if profile.min_length is not None else defaults.min_length,
            alphabet=profile.alphabet if profile.alphabet is not None else defaults.alphabet,
        )
        self._configs[name] = codec_config
        return codec_config

    def has(self, name: str) -> bool:
        return name in self._configs

    def names(self) -> list[str]:
        return list(self._configs)

    def config_for(self, name: str = DEFAULT_HASHER) -> CodecConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise HasherNotFoundError(name, self.names()) from None

    def converter_for(self, name: str = DEFAULT_HASHER) -> Converter:
        return self._cache.get(self.config_for(name))

    @property
    def cache(self) -> CodecCache:
        return self._cache
