"""
Test configuration: puts the repo root on sys.path and provides app fixtures.

The app fixture runs TestingConfig (in-memory SQLite, CSRF off) with a
process-local key-value store so each test starts from an empty collection.
"""

import itertools
import struct
import sys
import zlib
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app import create_app  # noqa: E402
from utils.kv_store import MemoryKeyValueStore  # noqa: E402
from utils import security  # noqa: E402


@pytest.fixture
def id_factory():
    """Deterministic ids: room-1, snag-2, photo-3, ..."""
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


def _png_chunk(kind, data):
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)


@pytest.fixture
def oversized_png():
    """A tiny PNG whose header claims a 20000x20000 canvas."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00" * 16))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture(autouse=True)
def clear_login_attempts():
    security._attempts.clear()
    yield
    security._attempts.clear()


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def app(memory_store):
    app = create_app("testing", store=memory_store)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "admin"})
    assert response.status_code == 200
    return client


@pytest.fixture
def repository(app):
    return app.extensions["report_repository"]
