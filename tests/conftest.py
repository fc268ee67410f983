"""
Shared test fixtures.

Settings are read at import time, so the required environment is set
before any application module is imported.
"""

import os
import sys
from pathlib import Path

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("ENVIRONMENT", "development")

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from datetime import datetime

from models.attribute import AttributeType
from tests.factories import ShopFactory
from tests.fakes import (
    FakeAttributeMappingRepository,
    FakeCategoryRepository,
    FakeProductRepository,
    FakeSettingsRepository,
    FakeShopRepository,
    ScriptedOracle,
    ScriptedRemoteClient,
)

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else None)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are recorded, not applied; every query returns the table's
    configured rows.
    """

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None, count: int = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._count = count

    def _record(self, method: str, *args, **kwargs):
        self._client.calls.append((self._table, method, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, data):
        self._record("insert", data)
        if isinstance(data, dict):
            data = [data]
        self._data = [{**item, "created_at": datetime.utcnow().isoformat() + "Z"} for item in data]
        return self

    def update(self, data):
        self._record("update", data)
        self._data = [{**item, **data} for item in self._data] if self._data else [data]
        return self

    def upsert(self, data, **kwargs):
        self._record("upsert", data, **kwargs)
        self._data = [data] if isinstance(data, dict) else data
        return self

    def delete(self):
        return self._record("delete")

    def eq(self, column, value):
        return self._record("eq", column, value)

    def ilike(self, column, pattern):
        return self._record("ilike", column, pattern)

    def or_(self, filters):
        return self._record("or_", filters)

    def order(self, column, **kwargs):
        return self._record("order", column, **kwargs)

    def range(self, start, end):
        self._record("range", start, end)
        self._data = self._data[start:end + 1]
        return self

    def limit(self, count):
        return self._record("limit", count)

    def execute(self) -> MockSupabaseResponse:
        if self._table in self._client.failing_tables:
            raise RuntimeError(f"{self._table} unavailable")
        return MockSupabaseResponse(data=self._data, count=self._count)


class MockSupabaseClient:
    """Mock Supabase client recording every call."""

    def __init__(self):
        self._tables = {}
        self.calls: list[tuple] = []
        self.failing_tables: set[str] = set()

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def table(self, name: str) -> MockSupabaseQuery:
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseQuery(self, name, list(config["data"]), config["count"])

    def rpc(self, function: str, params: dict) -> MockSupabaseQuery:
        self.calls.append(("rpc", function, (params,), {}))
        return MockSupabaseQuery(self, f"rpc:{function}")

    def calls_of(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[1] == method]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("shops", [{"id": 1, ...}])
            repo = ShopRepository(db=mock_supabase)
    """
    return MockSupabaseClient()


@pytest.fixture
def master_shop():
    return ShopFactory.master(id=1, name="Master CZ")


@pytest.fixture
def target_shop():
    return ShopFactory.create(id=2, name="Target SK")


@pytest.fixture
def shop_repository(master_shop, target_shop) -> FakeShopRepository:
    return FakeShopRepository([master_shop, target_shop])


@pytest.fixture
def settings_repository() -> FakeSettingsRepository:
    return FakeSettingsRepository()


@pytest.fixture
def mapping_repository() -> FakeAttributeMappingRepository:
    return FakeAttributeMappingRepository()


@pytest.fixture
def remote_client() -> ScriptedRemoteClient:
    return ScriptedRemoteClient()


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def category_repository() -> FakeCategoryRepository:
    return FakeCategoryRepository()


@pytest.fixture
def product_repository() -> FakeProductRepository:
    return FakeProductRepository()


@pytest.fixture
def flag_payload():
    """Raw Shoptet flags listing."""
    def build(*flags: tuple) -> dict:
        return {"data": {"flags": [
            {"code": code, "title": title, "color": "#ff0000", "system": False}
            for code, title in flags
        ]}}
    return build


@pytest.fixture
def variant_payload():
    """Raw Shoptet variant parameter listing."""
    def build(parameters: dict) -> dict:
        return {"data": {"parameters": [
            {
                "paramIndex": index,
                "paramName": name,
                "values": [
                    {"rawValue": raw, "paramValue": label, "valuePriority": position}
                    for position, (raw, label) in enumerate(values)
                ],
            }
            for index, (name, values) in parameters.items()
        ]}}
    return build


@pytest.fixture
def all_types():
    return list(AttributeType)


@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    The lifespan handler is not run, so no database connection is made.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/category-mappings/tree")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
