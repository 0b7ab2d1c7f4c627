import logging

import pytest

from runstore.adapter import make_adapter
from runstore.config import Settings
from runstore.repository import RunRepository
from runstore.schema import create_schema

logger = logging.getLogger("runstore")
logger.setLevel(logging.DEBUG)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'runs.db'}"


@pytest.fixture(params=["msgpack", "json"])
def serializer_name(request):
    return request.param


@pytest.fixture
def settings(db_url, serializer_name):
    return Settings(db_url=db_url, serializer=serializer_name, server_id="test")


@pytest.fixture
def adapter(settings):
    """SQLite storage adapter with the ``details`` table created.

    Yields
    ------
    The adapter; its connection is closed after the test.
    """
    adapter = make_adapter(settings)
    create_schema(adapter.engine)
    yield adapter
    adapter.close()


@pytest.fixture
def repo(adapter, settings):
    return RunRepository(adapter, settings)
