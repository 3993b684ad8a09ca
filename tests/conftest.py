import os

import pytest
from fastapi.testclient import TestClient

from deeptransfer.api.main import create_app
from deeptransfer.core.catalog.builtins import builtin_catalog
from deeptransfer.core.observability.metrics import reset_metrics
from deeptransfer.core.settings import TransferSettings
from deeptransfer.core.store.memory import InMemoryRecordStore


@pytest.fixture(scope="session", autouse=True)
def _force_test_env():
    # Make runtime behave deterministically in tests
    os.environ.setdefault("TRANSFER_ENV", "dev")


@pytest.fixture(autouse=True)
def _reset_named_counters():
    reset_metrics()
    yield


@pytest.fixture()
def catalog():
    return builtin_catalog()


@pytest.fixture()
def store(catalog):
    return InMemoryRecordStore(catalog)


@pytest.fixture()
def api(catalog, store):
    return create_app(TransferSettings(), catalog=catalog, store=store)


@pytest.fixture()
def client(api):
    return TestClient(api)
