"""
Shared test fixtures.

Nothing here talks to the network: Supabase is an in-memory table
mock and the Wildberries APIs are fake requests sessions.
"""

import sys
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import json
import pytest
from typing import Any, Callable, Optional

from config.settings import Settings
from integrations.wildberries import WildberriesClient, WildberriesConfig
from services.item_store import ItemStore

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Chainable query that really applies eq() filters and updates."""

    def __init__(self, table: "MockSupabaseTable", op: str, values: dict = None):
        self._table = table
        self._op = op
        self._values = values
        self._filters = []

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def limit(self, count):
        return self

    def _matches(self, row: dict) -> bool:
        for column, value in self._filters:
            if row.get(column) != value:
                return False
        return True

    def execute(self) -> MockSupabaseResponse:
        rows = [row for row in self._table.rows if self._matches(row)]
        if self._op == "update":
            self._table.client.before_update(self._table.name, self._filters, self._values)
            for row in rows:
                row.update(self._values)
            return MockSupabaseResponse([dict(row) for row in rows])
        return MockSupabaseResponse([dict(row) for row in rows])


class MockSupabaseTable:
    """Mock Supabase table over a shared list of row dicts."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self.client = client
        self.name = name

    @property
    def rows(self) -> list:
        return self.client.rows(self.name)

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, "select")

    def update(self, values: dict):
        return MockSupabaseQuery(self, "update", dict(values))


class MockSupabaseClient:
    """Mock Supabase client recording every update."""

    def __init__(self):
        self._tables: dict[str, list] = {}
        self.updates: list[tuple[str, list, dict]] = []
        self._fail_after: Optional[int] = None
        self._fail_message = "update failed"

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table (copied, so tests keep their input)."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list:
        return self._tables.setdefault(table_name, [])

    def fail_updates_after(self, successful: int, message: str = "update failed"):
        """Let `successful` updates through, then raise on every later one."""
        self._fail_after = successful
        self._fail_message = message

    def before_update(self, table_name: str, filters: list, values: dict):
        if self._fail_after is not None and len(self.updates) >= self._fail_after:
            raise RuntimeError(self._fail_message)
        self.updates.append((table_name, list(filters), dict(values)))

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)


# ===================
# FAKE HTTP
# ===================

class FakeResponse:
    """Just enough of requests.Response for the Wildberries client."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")
        self.reason = ""
        self.headers = headers or {"content-type": "application/json"}

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """
    Replays scripted responses (or asks a handler) and records calls.

    A scripted item that is an exception is raised instead of returned.
    """

    def __init__(self, responses: list = None, handler: Callable = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: list[dict] = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "json": json})
        if self.handler is not None:
            result = self.handler(method, url, json)
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeCardsApi:
    """
    Stand-in for POST /content/v2/get/cards/list.

    Full-scan requests ({"withPhoto": -1}) get scan_pages in order, then
    empty pages. Filtered requests are answered by filter_handler.
    """

    def __init__(self, scan_pages: list = None, filter_handler: Callable = None):
        self.scan_pages = list(scan_pages or [])
        self.filter_handler = filter_handler or (lambda filter: {"cards": []})
        self.bodies: list[dict] = []

    def __call__(self, method, url, body):
        self.bodies.append(body)
        filter = body["settings"]["filter"]
        if filter == {"withPhoto": -1}:
            page = self.scan_pages.pop(0) if self.scan_pages else {"cards": []}
        else:
            page = self.filter_handler(filter)
        return FakeResponse(200, page)

    def filters(self) -> list:
        return [body["settings"]["filter"] for body in self.bodies]


class FakeSuppliesApi:
    """Stand-in for the supplies list and per-supply goods endpoints."""

    def __init__(self, supplies: Any = None, goods: dict = None):
        self.supplies = supplies if supplies is not None else []
        self.goods = goods or {}
        self.calls: list[tuple[str, str]] = []

    def __call__(self, method, url, body):
        self.calls.append((method, url))
        if url.endswith("/api/v1/supplies"):
            return FakeResponse(200, self.supplies)
        supply_id = int(url.rstrip("/").split("/")[-2])
        return FakeResponse(200, self.goods.get(supply_id, []))


# ===================
# FIXTURES
# ===================

@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the developer's .env."""
    return Settings(
        _env_file=None,
        supabase_url="http://supabase.test",
        supabase_service_key="service",
        wb_content_token="content-token",
        wb_api_token="api-token",
        environment="test",
    )


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("items", [
                {"id": "1", "kind": "product", "barcode": "111", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def item_store(mock_supabase) -> ItemStore:
    return ItemStore(client=mock_supabase, table="items")


@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Services are built per request, so tests patch the route factories:
        with patch("routes.marketplace.get_sku_sync_service", return_value=service):
            test_client.post("/api/marketplace/wb/sync-skus", json={})
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def sleeps() -> list:
    """Collects the delays a client or service asked to sleep."""
    return []


@pytest.fixture
def make_client(test_settings, sleeps):
    """
    Build a WildberriesClient over a FakeSession.

    Usage:
        client, session = make_client(handler=FakeCardsApi(...))
    """
    def _make(
        responses: list = None,
        handler: Callable = None,
        kind: str = "content",
    ) -> tuple[WildberriesClient, FakeSession]:
        session = FakeSession(responses=responses, handler=handler)
        config = (
            WildberriesConfig.content(test_settings)
            if kind == "content"
            else WildberriesConfig.supplies(test_settings)
        )
        return WildberriesClient(config, session=session, sleep=sleeps.append), session

    return _make
