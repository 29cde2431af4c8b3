"""Shared fixtures for the smoker test suite."""

import pytest

from smoker.clients.registry import ClientRegistry


class FakeParameterFetcher:
    """In-memory parameter store recording every lookup."""

    def __init__(self, values=None, errors=None):
        self.values = dict(values or {})
        self.errors = dict(errors or {})
        self.calls = []

    async def fetch_parameter(self, path):
        self.calls.append(path)
        if path in self.errors:
            raise self.errors[path]
        if path not in self.values:
            raise KeyError(path)
        return self.values[path]


class FakeDocumentFetcher:
    """In-memory JSON document store recording every lookup."""

    def __init__(self, documents=None, errors=None):
        self.documents = dict(documents or {})
        self.errors = dict(errors or {})
        self.calls = []

    async def fetch_json_document(self, url):
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url not in self.documents:
            raise FileNotFoundError(url)
        return self.documents[url]


@pytest.fixture
def parameter_fetcher():
    """Empty fake parameter store."""
    return FakeParameterFetcher()


@pytest.fixture
def document_fetcher():
    """Empty fake document store."""
    return FakeDocumentFetcher()


@pytest.fixture(autouse=True)
def reset_shared_registry():
    """Ensure no test sees the shared registry of another."""
    ClientRegistry.reset_shared()
    yield
    ClientRegistry.reset_shared()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove environment overrides that would leak into configurations."""
    for variable in ("AWS_REGION", "AWS_PROFILE", "SMOKER_LOG_LEVEL"):
        monkeypatch.delenv(variable, raising=False)
