"""Shared fixtures: settings without environment, and in-memory collaborators."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.config import load_settings
from app.main import create_app
from app.store import PersistenceError


class FakeClassifier:
    """Returns fixed scores, or raises the given exception."""

    def __init__(self, scores=None, error: Exception | None = None):
        self.scores = scores or {}
        self.error = error
        self.calls: list[str] = []

    async def classify(self, content: str):
        self.calls.append(content)
        if self.error is not None:
            raise self.error
        return dict(self.scores)


class FakeStore:
    """Key store that knows ``valid_keys`` and keeps inserted results in memory."""

    def __init__(self, valid_keys=("good-key",), fail_insert: bool = False):
        self.valid_keys = set(valid_keys)
        self.fail_insert = fail_insert
        self.lookups: list[str] = []
        self.inserted: list = []

    async def verify_api_key(self, apikey: str) -> bool:
        self.lookups.append(apikey)
        return apikey in self.valid_keys

    async def insert_result(self, result):
        if self.fail_insert:
            raise PersistenceError("insert rejected")
        self.inserted.append(result)
        return [result.model_dump()]


def fake_completion(content):
    """Shape of an OpenAI chat completion carrying ``content``."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def settings(tmp_path):
    return load_settings(config_path=str(tmp_path / "missing.toml"), environ={})


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def classifier():
    return FakeClassifier(scores={
        "toxicity": 0.82,
        "harassment": 0.1,
        "hate-speech": 0.0,
        "sexual": 0.0,
        "violence": 0.35,
        "spam": 0.05,
    })


@pytest.fixture
def client(settings, classifier, store):
    app = create_app(settings, classifier=classifier, store=store)
    return TestClient(app)
