"""
Tests for engine construction from the ``database`` config section.

No connection is opened: pool and echo settings are checked on the
engine object itself.
"""

import pytest
from sqlalchemy.pool import QueuePool, StaticPool

from garage_config.schema import DatabaseConfig
from garage_kernel.db.engine import (
    get_engine,
    get_session_factory,
    init_engine_from_config,
    reset_engine,
)


@pytest.fixture(autouse=True)
def _fresh_engine():
    reset_engine()
    yield
    reset_engine()


def test_pool_size_and_echo_reach_the_engine():
    engine = init_engine_from_config(DatabaseConfig(
        url="postgresql+psycopg2://garage@localhost/garage",
        echo=True,
        pool_size=3,
    ))

    assert engine is get_engine()
    assert isinstance(engine.pool, QueuePool)
    assert engine.pool.size() == 3
    assert engine.echo is True
    assert engine.dialect.name == "postgresql"


def test_sqlite_url_uses_shared_connection():
    engine = init_engine_from_config(DatabaseConfig(url="sqlite://"))

    assert isinstance(engine.pool, StaticPool)
    assert engine.echo is False
    assert get_session_factory().kw["bind"] is engine


def test_engine_required_before_use():
    with pytest.raises(RuntimeError, match="not initialized"):
        get_engine()
