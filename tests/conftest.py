"""Pytest configuration and fixtures for intelx-cli tests."""

from unittest.mock import MagicMock

import pytest

from intelx_cli.config import Config
from intelx_cli.models import AccountInfo, SearchRecord


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path, monkeypatch):
    """Keep config and log files out of the real home directory."""
    monkeypatch.setattr("intelx_cli.config.LOG_PATH", str(tmp_path / "intelx.log"))
    monkeypatch.setattr("intelx_cli.config.CONFIG_PATH", str(tmp_path / "config.json"))
    monkeypatch.delenv("INTELX_KEY", raising=False)
    monkeypatch.delenv("INTELX_API_BASE", raising=False)


@pytest.fixture
def config(tmp_path):
    return Config(path=str(tmp_path / "config.json"), api_key="test-key", base_url="https://api.test")


def make_record(n, **overrides):
    data = {
        "systemid": f"sys-{n}",
        "storageid": f"store-{n}",
        "name": f"leaks/dump_{n}.txt",
        "date": "2024-03-01T12:00:00Z",
        "size": 2 * 1024 * 1024,
        "bucket": "leaks.public.general",
        "bucketh": "Leaks » Public",
        "indexfile": f"index-{n}",
    }
    data.update(overrides)
    return SearchRecord(data)


@pytest.fixture
def records():
    return [make_record(i) for i in range(1, 4)]


def account(credit=100, credit_max=100, reset=24):
    return AccountInfo({
        "searchesactive": 0,
        "maxconcurrentsearches": 5,
        "paths": {
            "/file/view": {"Credit": credit, "CreditMax": credit_max, "CreditReset": reset},
            "/file/read": {"Credit": 10, "CreditMax": 50, "CreditReset": 24},
            "/intelligent/search": {"Credit": 0, "CreditMax": 0, "CreditReset": 0},
        },
    })


@pytest.fixture
def fake_client():
    """A client double with enough preview credits for any test batch."""
    client = MagicMock()
    client.apikey = "test-key"
    client.limits.return_value = account()
    return client
