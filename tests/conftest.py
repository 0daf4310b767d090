"""Pytest configuration and fixtures for stream-to-mongo tests."""

from __future__ import annotations

from typing import Any

import pytest

from tests.fakes import FakeCollection, FakeMongoClient


@pytest.fixture()
def fake_client() -> FakeMongoClient:
    """Provide an in-memory MongoDB client."""
    return FakeMongoClient()


@pytest.fixture()
def collection(fake_client: FakeMongoClient) -> FakeCollection:
    """The collection the default test config writes to."""
    return fake_client["streamToMongoDB"]["test"]


@pytest.fixture()
def sample_records() -> list[dict[str, Any]]:
    """Provide records keyed by a unique ``secret`` field."""
    return [
        {"secret": f"s{i:02d}", "name": f"customer {i}", "total": i * 10}
        for i in range(13)
    ]


@pytest.fixture()
def update_records(sample_records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Provide one update per sample record setting ``total`` to 1337."""
    return [{"secret": record["secret"], "total": 1337} for record in sample_records]
