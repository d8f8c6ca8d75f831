"""Shared pytest fixtures for b2vfs tests.

Adapters are built on MemoryObjectStoreClient, which follows B2's
versioning rules closely enough to exercise every adapter path without
network access. A controllable clock lets tests move time forward to
expire download authorizations.
"""

import pytest

from b2vfs.adapter import B2Adapter
from b2vfs.store.client import BucketVisibility
from b2vfs.store.memory import MemoryObjectStoreClient


class FakeClock:
    """Manually advanced time source (epoch seconds)."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(clock) -> MemoryObjectStoreClient:
    """An empty in-memory store."""
    return MemoryObjectStoreClient(clock=clock)


@pytest.fixture
def bucket(client):
    """A private bucket in the in-memory store."""
    return client.create_bucket("private-bucket", BucketVisibility.PRIVATE)


@pytest.fixture
def public_bucket(client):
    return client.create_bucket("public-bucket", BucketVisibility.PUBLIC)


@pytest.fixture
async def adapter(client, bucket) -> B2Adapter:
    """An adapter rooted at ``root/`` in the private bucket."""
    return await B2Adapter.create(client, bucket_id=bucket.bucket_id, prefix="root")


@pytest.fixture
async def bare_adapter(client, bucket) -> B2Adapter:
    """An adapter with no root prefix."""
    return await B2Adapter.create(client, bucket_id=bucket.bucket_id, prefix="")


@pytest.fixture
async def public_adapter(client, public_bucket) -> B2Adapter:
    return await B2Adapter.create(client, bucket_id=public_bucket.bucket_id, prefix="")
