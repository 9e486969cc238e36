import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from product_updater.database import KeyValueEntry, SqlStore, init_db
from product_updater.models import ApiResult, RegistryState, UpdatesResponse
from product_updater.registry import UpdateRegistry

from conftest import FILE_PATH


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory, clock):
    return SqlStore(session_factory, clock)


def test_set_and_get(sql_store):
    sql_store.set("key", {"nested": [1, 2, 3]})

    assert sql_store.get("key") == {"nested": [1, 2, 3]}
    assert sql_store.get("missing") is None


def test_set_overwrites(sql_store, session_factory):
    sql_store.set("key", "first")
    sql_store.set("key", "second")

    assert sql_store.get("key") == "second"
    with session_factory() as db:
        assert db.query(KeyValueEntry).count() == 1


def test_delete(sql_store):
    sql_store.set("key", "value")

    sql_store.delete("key")
    sql_store.delete("never-set")

    assert sql_store.get("key") is None


def test_ttl_expiry_removes_row(sql_store, session_factory, clock):
    sql_store.set("key", {"a": 1}, ttl=60)

    clock.advance(59)
    assert sql_store.get("key") == {"a": 1}

    clock.advance(1)
    assert sql_store.get("key") is None
    with session_factory() as db:
        assert db.query(KeyValueEntry).filter(KeyValueEntry.key == "key").first() is None


def test_rewrite_without_ttl_clears_expiry(sql_store, clock):
    sql_store.set("key", "value", ttl=60)
    sql_store.set("key", "value")

    clock.advance(3600)

    assert sql_store.get("key") == "value"


def test_registry_on_sql_store(sql_store, product):
    registry = UpdateRegistry(sql_store)

    registry.reconcile(product, ApiResult(data=UpdatesResponse(updates={"new_version": "1.3.0"})))
    assert registry.state(product) == RegistryState.PENDING

    registry.mark_up_to_date(product)
    doc = registry.snapshot()
    assert FILE_PATH in doc.up_to_date
    assert FILE_PATH not in doc.pending
