"""Loading configuration from the INI file and the environment."""

from __future__ import annotations

import pytest

from pakay.config import (
    DEFAULT_ALPHABET,
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_MIN_LENGTH,
    HasherProfile,
    PakayConfig,
    load_config,
)
from pakay.errors import ConfigurationError

_ENV_KEYS = (
    "PAKAY_SALT",
    "PAKAY_MIN_LENGTH",
    "PAKAY_ALPHABET",
    "PAKAY_CACHE_CAPACITY",
    "PAKAY_API_KEY",
    "PAKAY_HOST",
    "PAKAY_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def write_ini(tmp_path):
    def write(text: str):
        path = tmp_path / "pakay.ini"
        path.write_text(text)
        return path

    return write


class TestDefaults:
    def test_missing_file(self, tmp_path):
        config = load_config(tmp_path / "absent.ini")
        assert config == PakayConfig()
        assert config.min_length == DEFAULT_MIN_LENGTH
        assert config.alphabet == DEFAULT_ALPHABET
        assert config.cache_capacity == DEFAULT_CACHE_CAPACITY
        assert config.hashers == {}

    def test_frozen(self):
        with pytest.raises(AttributeError):
            PakayConfig().salt = "changed"


class TestIniFile:
    def test_sections(self, write_ini):
        path = write_ini(
            "[hashids]\n"
            "salt = pepper\n"
            "min_length = 12\n"
            "cache_capacity = 4\n"
            "\n"
            "[gateway]\n"
            "api_key = k\n"
            "host = 0.0.0.0\n"
            "port = 9000\n"
        )
        config = load_config(path)
        assert config.salt == "pepper"
        assert config.min_length == 12
        assert config.cache_capacity == 4
        assert config.alphabet == DEFAULT_ALPHABET
        assert config.api_key == "k"
        assert config.host == "0.0.0.0"
        assert config.port == 9000

    def test_percent_signs_are_literal(self, write_ini):
        config = load_config(write_ini("[hashids]\nsalt = 100%salt\n"))
        assert config.salt == "100%salt"

    def test_hasher_profiles(self, write_ini):
        path = write_ini(
            "[hashids]\nsalt = base\n\n"
            "[hasher:secure]\nmin_length = 20\n\n"
            "[hasher:legacy]\nsalt = old\nalphabet = abcdefghijklmnopqrstuvwxyz\n"
        )
        config = load_config(path)
        assert config.hashers == {
            "secure": HasherProfile(min_length=20),
            "legacy": HasherProfile(salt="old", alphabet="abcdefghijklmnopqrstuvwxyz"),
        }

    def test_env_reference(self, write_ini, monkeypatch):
        monkeypatch.setenv("ORDERS_SALT", "from-env")
        path = write_ini("[hashids]\nsalt = %env(ORDERS_SALT)%\n\n[hasher:x]\nsalt = %env(ORDERS_SALT)%\n")
        config = load_config(path)
        assert config.salt == "from-env"
        assert config.hashers["x"].salt == "from-env"

    def test_unset_env_reference_left_in_place(self, write_ini, monkeypatch):
        monkeypatch.delenv("PAKAY_TEST_UNSET_SALT", raising=False)
        config = load_config(write_ini("[hashids]\nsalt = %env(PAKAY_TEST_UNSET_SALT)%\n"))
        assert config.salt == "%env(PAKAY_TEST_UNSET_SALT)%"

    @pytest.mark.parametrize(
        "text, key",
        [
            ("[hashids]\nmin_length = ten\n", "min_length"),
            ("[hashids]\ncache_capacity = 1.5\n", "cache_capacity"),
            ("[gateway]\nport = http\n", "port"),
            ("[hasher:secure]\nmin_length = long\n", "min_length"),
        ],
    )
    def test_bad_integer(self, write_ini, text, key):
        with pytest.raises(ConfigurationError) as excinfo:
            load_config(write_ini(text))
        assert excinfo.value.key == key


class TestEnvironment:
    def test_env_overrides_file(self, write_ini, monkeypatch):
        path = write_ini("[hashids]\nsalt = file\nmin_length = 12\n")
        monkeypatch.setenv("PAKAY_SALT", "env")
        monkeypatch.setenv("PAKAY_MIN_LENGTH", "16")
        monkeypatch.setenv("PAKAY_PORT", "8123")
        config = load_config(path)
        assert config.salt == "env"
        assert config.min_length == 16
        assert config.port == 8123

    def test_bad_env_integer(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAKAY_CACHE_CAPACITY", "lots")
        with pytest.raises(ConfigurationError, match="cache_capacity"):
            load_config(tmp_path / "absent.ini")
