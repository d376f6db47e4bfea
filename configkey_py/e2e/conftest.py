"""Shared fixtures for E2E tests."""

import io

import pytest
import pytest_asyncio

from ..cluster import LocalCluster
from ..config import ServiceConfig
from ..store import MemoryEngine, SqliteEngine


@pytest_asyncio.fixture
async def cluster():
    """Single-node cluster over an in-memory engine."""
    c = LocalCluster(MemoryEngine(), config=ServiceConfig(tick_interval=0))
    c.start(epoch=1)
    yield c
    c.shutdown()


@pytest_asyncio.fixture
async def three_node():
    """Leader plus two peons sharing one engine, with a captured audit stream."""
    stream = io.StringIO()
    c = LocalCluster(
        MemoryEngine(), size=3,
        config=ServiceConfig(tick_interval=0, max_entry_size=64),
        audit_stream=stream,
    )
    c.start(epoch=1)
    yield c
    c.shutdown()


@pytest_asyncio.fixture
async def sqlite_cluster(tmp_path):
    """Single-node cluster over a SQLite file."""
    engine = SqliteEngine(str(tmp_path / "store.sqlite"))
    c = LocalCluster(engine, config=ServiceConfig(tick_interval=0))
    c.start(epoch=1)
    yield c
    c.shutdown()
    engine.close()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli" / "store.sqlite")
