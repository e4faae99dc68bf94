"""The ``python -m pakay`` entry point."""

from __future__ import annotations

import logging

import pytest

import pakay.__main__ as entry
from pakay.config import PakayConfig


@pytest.fixture
def served(monkeypatch):
    calls = []
    monkeypatch.setattr(entry.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
    return calls


class TestMain:
    def test_runs_app_factory(self, served, monkeypatch):
        monkeypatch.setattr(entry, "load_config", lambda: PakayConfig(salt="s", host="0.0.0.0", port=9000))
        entry.main()
        assert served == [
            (("pakay.app:create_app",), {"factory": True, "host": "0.0.0.0", "port": 9000}),
        ]

    def test_warns_without_salt(self, served, monkeypatch, caplog):
        monkeypatch.setattr(entry, "load_config", lambda: PakayConfig())
        with caplog.at_level(logging.WARNING, logger="pakay"):
            entry.main()
        assert "No salt configured" in caplog.text
        assert len(served) == 1
