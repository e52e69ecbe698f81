# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import threading
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import pandas as pd

from pos_core.config import AppConfig, SyncConfig
from pos_core.errors import NetworkUnreachableError, ServerRejectedError
from pos_core.offline.connection_manager import ConnectionManager
from pos_core.offline.gateway import RemoteGateway
from pos_core.offline.local_store import LocalRecordStore
from pos_core.offline.models import RecordType
from pos_core.offline.persistence_service import DataPersistenceService
from pos_core.offline.sync_engine import SyncEngine
from pos_core.offline.sync_queue import SyncQueue


BUSINESS_ID = "biz-001"


# =============================================================================
# FAKE BACKEND
# =============================================================================

class FakeGateway(RemoteGateway):
    """
    In-memory backend.

    - ``records[type][id]`` holds what the server has accepted
    - ``calls`` logs every (operation, type, id)
    - ``fail(type, id, error)`` makes every call for that record raise
    - ``unreachable = True`` makes every call raise NetworkUnreachableError
    - ``gate`` (a threading.Event) blocks calls until set
    - ``idempotent_creates = True`` makes a repeated create return the
      stored record unchanged, like an upsert-on-conflict-do-nothing backend
    """

    def __init__(self):
        self.records: Dict[RecordType, Dict[str, Dict[str, Any]]] = {t: {} for t in RecordType}
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self.unreachable = False
        self.idempotent_creates = False
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def fail(self, record_type: RecordType, record_id: str, error: Exception) -> None:
        self.failures[(record_type, record_id)] = error

    def heal(self, record_type: RecordType, record_id: str) -> None:
        self.failures.pop((record_type, record_id), None)

    def _call(self, operation: str, record_type: RecordType, record_id: Optional[str]) -> None:
        self.calls.append((operation, record_type, record_id))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.unreachable:
            raise NetworkUnreachableError("connection refused", endpoint=record_type.value)
        error = self.failures.get((record_type, record_id))
        if error is not None:
            raise error

    def create(self, record_type, record):
        self._call("create", record_type, record.get("id"))
        existing = self.records[record_type].get(record["id"])
        if existing is not None and self.idempotent_creates:
            return dict(existing)
        self.records[record_type][record["id"]] = dict(record)
        return dict(record)

    def update(self, record_type, record_id, record):
        self._call("update", record_type, record_id)
        current = self.records[record_type].get(record_id, {})
        self.records[record_type][record_id] = {**current, **record}
        return self.records[record_type][record_id]

    def delete(self, record_type, record_id):
        self._call("delete", record_type, record_id)
        self.records[record_type].pop(record_id, None)
        return None

    def list(self, record_type):
        self._call("list", record_type, None)
        return [dict(r) for r in self.records[record_type].values()]

    def health_check(self):
        if self.unreachable:
            return {"status": "offline", "error": "connection refused"}
        return {"status": "OK"}

    def calls_for(self, operation: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == operation]


def rejected(status_code: int = 400, message: str = "Dados inválidos") -> ServerRejectedError:
    return ServerRejectedError(message, status_code=status_code, endpoint="products")


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def business_id():
    return BUSINESS_ID


@pytest.fixture
def db_path(tmp_path):
    """SQLite file in a per-test temp directory"""
    return tmp_path / "pos_offline.db"


@pytest.fixture
def store(db_path):
    store = LocalRecordStore(db_path)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def queue(store):
    return SyncQueue(store, max_retries=3)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def connection():
    """Connectivity driven by set_online()/set_offline() only"""
    manager = ConnectionManager(gateway=None)
    manager.set_online()
    return manager


@pytest.fixture
def sync_config():
    return SyncConfig(sync_interval=60.0, max_retries=3, flush_on_exit=False)


@pytest.fixture
def engine(store, queue, gateway, connection, sync_config):
    engine = SyncEngine(store, queue, gateway, connection, sync_config)
    engine.initialize()
    yield engine
    engine.stop(flush=False)


@pytest.fixture
def service(store, queue, gateway, connection, engine, sync_config):
    """Online facade over a temp store and the fake backend"""
    config = AppConfig(sync=sync_config)
    return DataPersistenceService(store, queue, gateway, connection, engine, config)


@pytest.fixture
def offline_service(service, connection):
    """Same facade with the backend unreachable"""
    connection.set_offline()
    return service


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit in the modules that render to it"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f
    mock_st.button.return_value = False

    monkeypatch.setattr("pos_core.errors.handlers.st", mock_st)
    monkeypatch.setattr("pos_core.ui.sync_indicator.st", mock_st)

    yield mock_st


@pytest.fixture
def mock_session():
    """Mock requests.Session for the HTTP gateway"""
    session = MagicMock()
    session.headers = {}
    return session


def make_response(status_code: int = 200, body: Any = None, content: bytes = b"{}"):
    """Build a mock requests.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = content if body is not None or status_code != 204 else b""
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def assert_dataframe_equal(df1, df2, check_dtype=False):
    """Assert two DataFrames are equal"""
    pd.testing.assert_frame_equal(df1, df2, check_dtype=check_dtype)
