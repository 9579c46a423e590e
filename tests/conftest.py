"""
Shared test fixtures.

The mock client mimics the chainable supabase API the importer uses:
table().insert().execute(), table().select().limit().execute() and
rpc().execute(). Every call is recorded and failures can be queued per
table or function name.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest
from typing import Optional

from config.database import ListSession
from models.fields import FieldDescriptor
from services.throttle import ThrottleController

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", name: str, data: list = None):
        self._client = client
        self._name = name
        self._data = data if data is not None else []
        self._insert_payload = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        if isinstance(data, dict):
            data = [data]
        self._insert_payload = [dict(item) for item in data]
        return self

    def eq(self, column, value):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.raise_queued_failure(self._name)

        if self._insert_payload is not None:
            self._client.inserts.append((self._name, self._insert_payload))
            created = []
            for item in self._insert_payload:
                row = dict(item)
                row["id"] = self._client.next_id()
                created.append(row)
            if not self._client.return_representation:
                created = []
            return MockSupabaseResponse(data=created)

        return MockSupabaseResponse(data=list(self._data))


class MockSupabaseTable:
    """Mock Supabase table."""

    def __init__(self, client: "MockSupabaseClient", name: str, data: list = None):
        self._client = client
        self._name = name
        self._data = data or []

    def select(self, *args, **kwargs):
        self._client.selects.append(self._name)
        return MockSupabaseQuery(self._client, self._name, self._data.copy())

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name).insert(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, list] = {}
        self._rpc_results: dict[str, list] = {}
        self._failures: dict[str, list[Exception]] = {}
        self._id_counter = 0
        self.return_representation = True
        self.inserts: list[tuple[str, list[dict]]] = []
        self.selects: list[str] = []
        self.rpc_calls: list[tuple[str, dict]] = []

    def set_table_data(self, table_name: str, data: list):
        """Configure rows returned by select()."""
        self._tables[table_name] = data

    def set_rpc_result(self, function_name: str, data: list):
        """Configure rows returned by rpc(function_name)."""
        self._rpc_results[function_name] = data

    def fail_with(self, name: str, *errors: Exception):
        """Queue errors raised by the next execute() calls on a table or function."""
        self._failures.setdefault(name, []).extend(errors)

    def raise_queued_failure(self, name: str):
        queued = self._failures.get(name)
        if queued:
            raise queued.pop(0)

    def next_id(self) -> str:
        self._id_counter += 1
        return f"item-{self._id_counter}"

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name, self._tables.get(name, []))

    def rpc(self, function_name: str, params: Optional[dict] = None) -> MockSupabaseQuery:
        self.rpc_calls.append((function_name, params or {}))
        return MockSupabaseQuery(
            self, function_name, self._rpc_results.get(function_name, [])
        )

    @property
    def inserted_items(self) -> list[dict]:
        """All inserted payload items, in insert order."""
        return [item for _, payload in self.inserts for item in payload]


class FakeSleep:
    """Records sleeps instead of blocking."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_rpc_result("list_fields", [...])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_admin_supabase() -> MockSupabaseClient:
    """Mock client for the privileged connection."""
    return MockSupabaseClient()


@pytest.fixture
def session(mock_supabase) -> ListSession:
    """Session without a privileged connection."""
    return ListSession(site="https://test.supabase.co", client=mock_supabase)


@pytest.fixture
def admin_session(mock_supabase, mock_admin_supabase) -> ListSession:
    """Session able to overwrite timestamps."""
    return ListSession(
        site="https://test.supabase.co",
        client=mock_supabase,
        admin_client=mock_admin_supabase
    )


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def throttle(fake_sleep) -> ThrottleController:
    """Throttle that never blocks."""
    return ThrottleController(
        sleep_every=10,
        sleep_seconds=1.0,
        max_retries=3,
        backoff_base_seconds=2.0,
        backoff_max_seconds=60.0,
        sleep=fake_sleep
    )


@pytest.fixture
def sample_field_rows() -> list[dict]:
    """Field descriptor rows as returned by the list_fields function."""
    return [
        {"internal_name": "Title", "type_kind": "Text", "allowed_values": None},
        {"internal_name": "Status", "type_kind": "Choice", "allowed_values": ["Active", "Inactive"]},
        {"internal_name": "Tags", "type_kind": "MultiChoice", "allowed_values": ["Red", "Green", "Blue"]},
        {"internal_name": "Budget", "type_kind": "Currency", "allowed_values": None},
    ]


@pytest.fixture
def sample_fields(sample_field_rows) -> list[FieldDescriptor]:
    return [FieldDescriptor.model_validate(row) for row in sample_field_rows]


@pytest.fixture
def sample_column_map() -> dict[str, str]:
    return {
        "Project Name": "Title",
        "State": "Status",
        "Labels": "Tags",
        "Cost": "Budget",
    }
