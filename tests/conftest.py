import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest


@pytest.fixture(autouse=True)
def set_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("PACT_PUBLISH_MAX_WORKERS", "1")
    monkeypatch.setenv("PACT_SCHEMA_VALIDATION_ENABLED", "true")


@pytest.fixture
def pact_dir(tmp_path: Path) -> Path:
    pact_dir = tmp_path / "pacts"
    pact_dir.mkdir()
    return pact_dir


@pytest.fixture
def write_pact(pact_dir: Path):
    """Write a pact document to the pact directory and return its path."""

    def _write(name: str, document) -> Path:
        path = pact_dir / name
        content = document if isinstance(document, str) else json.dumps(document)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def broker_client():
    client = MagicMock()
    client.publish.return_value = "http://broker/pacts/provider/Provider/consumer/Consumer/latest"
    return client
