"""Shared test fixtures and marker registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import respx

from zonefs import ZoneFs

if TYPE_CHECKING:
    from collections.abc import Iterator

ENDPOINT = "https://storage.bunnycdn.com"
ZONE = "my-zone"
KEY = "secret-key"


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


def record(name: str, *, is_directory: bool = False, length: int = 0, checksum: str = "", **extra: object) -> dict:
    """A listing record as the storage API returns it."""
    item: dict[str, object] = {
        "Guid": "00000000-0000-0000-0000-000000000000",
        "StorageZoneName": ZONE,
        "Path": f"/{ZONE}/",
        "ObjectName": name,
        "Length": length,
        "LastChanged": "2024-01-01T00:00:00.000",
        "IsDirectory": is_directory,
        "ServerId": 0,
        "ArrayNumber": 0,
        "UserId": "user",
        "ContentType": "",
        "DateCreated": "2023-12-31T23:59:59.000",
        "StorageZoneId": 1,
        "Checksum": checksum if not is_directory else None,
        "ReplicatedZones": "",
    }
    item.update(extra)
    return item


@pytest.fixture
def router() -> Iterator[respx.MockRouter]:
    """Intercept every httpx request; unmatched requests fail the test."""
    with respx.mock(base_url=ENDPOINT, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff sleeps requested by the filesystem, recorded instead of slept."""
    return []


@pytest.fixture
def fs(router: respx.MockRouter, sleeps: list[float]) -> Iterator[ZoneFs]:
    zfs = ZoneFs(ZONE, KEY, "/", sleep=sleeps.append, max_attempts=4)
    yield zfs
    zfs.close()
