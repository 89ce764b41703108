"""
Shared pytest fixtures for quote engine tests.

Provides:
- Environment defaults for the Supabase client
- In-memory mock Supabase client
- Reference exchange rates
"""

import pytest
import os
import sys
from decimal import Decimal
from uuid import uuid4

# Set test environment before importing services
os.environ["TESTING"] = "true"
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# MOCK FACTORIES
# ============================================================================

def make_uuid():
    """Generate a UUID string."""
    return str(uuid4())


# ============================================================================
# SUPABASE MOCK
# ============================================================================

class MockSupabaseResponse:
    """Mock response from Supabase queries."""
    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error


class MockSupabaseQuery:
    """Mock Supabase query builder backed by the client's in-memory tables."""

    def __init__(self, client, table_name):
        self._client = client
        self.table_name = table_name
        self._filters = {}
        self._action = "select"
        self._payload = None
        self._order = None
        self._limit = None

    @property
    def _rows(self):
        return self._client._tables.setdefault(self.table_name, [])

    def select(self, columns="*"):
        self._action = "select"
        return self

    def insert(self, data):
        self._action = "insert"
        self._payload = data
        return self

    def upsert(self, data, on_conflict=""):
        self._action = "upsert"
        self._payload = data
        self._conflict = on_conflict or "id"
        return self

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    def eq(self, column, value):
        self._filters[column] = value
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row):
        return all(row.get(col) == val for col, val in self._filters.items())

    def execute(self):
        self._client.calls.append((self.table_name, self._action, self._payload, dict(self._filters)))

        if self._action == "insert":
            row = dict(self._payload)
            row.setdefault("id", make_uuid())
            self._rows.append(row)
            return MockSupabaseResponse(data=[row])

        if self._action == "upsert":
            key = self._conflict
            for row in self._rows:
                if row.get(key) == self._payload.get(key):
                    row.update(self._payload)
                    return MockSupabaseResponse(data=[row])
            row = dict(self._payload)
            self._rows.append(row)
            return MockSupabaseResponse(data=[row])

        matched = [r for r in self._rows if self._matches(r)]

        if self._action == "update":
            for row in matched:
                row.update(self._payload)
            return MockSupabaseResponse(data=matched)

        if self._action == "delete":
            self._client._tables[self.table_name] = [r for r in self._rows if not self._matches(r)]
            return MockSupabaseResponse(data=matched)

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self._limit is not None:
            matched = matched[:self._limit]
        return MockSupabaseResponse(data=matched)


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self):
        self._tables = {}
        self.calls = []

    def set_table_data(self, table_name, data):
        """Set mock data for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def get_table_data(self, table_name):
        return self._tables.get(table_name, [])

    def table(self, name):
        """Return a mock query for the table."""
        return MockSupabaseQuery(self, name)


@pytest.fixture
def mock_supabase():
    """Create a mock Supabase client."""
    return MockSupabaseClient()


# ============================================================================
# CALCULATION FIXTURES
# ============================================================================

@pytest.fixture
def rates():
    """Exchange rates used by the reference scenarios (MGA per unit)."""
    from calculation_models import Currency
    return {
        Currency.USD: Decimal("4500"),
        Currency.EUR: Decimal("4900"),
        Currency.CNY: Decimal("620"),
    }
