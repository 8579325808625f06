"""Shared fixtures for the reqlog test suite."""

from typing import Optional

import pytest
import structlog

from reqlog.geo import GeoRecord

SEATTLE = GeoRecord(city="Seattle", country="US", timezone="America/Los_Angeles")


class FakeGeoDatabase:
    """In-memory ``GeoDatabase`` recording the IPs it was asked about."""

    def __init__(self, records: Optional[dict[str, GeoRecord]] = None, error: Exception | None = None):
        self.records = records or {}
        self.error = error
        self.calls: list[str] = []

    def lookup(self, ip: str) -> Optional[GeoRecord]:
        self.calls.append(ip)
        if self.error is not None:
            raise self.error
        return self.records.get(ip)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def seattle_db():
    return FakeGeoDatabase({"203.0.113.5": SEATTLE})


def events(captured: list[dict], name: str) -> list[dict]:
    """Captured log records with the given event name."""
    return [entry for entry in captured if entry["event"] == name]
