"""
Unit tests for the cards list pager.

Run: pytest tests/unit/test_cursor_pager.py -v
"""

import pytest

from exceptions import RemoteError
from services.cursor_pager import (
    STOP_CALLBACK,
    STOP_DEADLINE,
    STOP_EMPTY,
    STOP_MAX_PAGES,
    STOP_STUCK,
    Cursor,
    CursorPager,
    next_cursor,
)
from tests.conftest import FakeResponse
from tests.factories import CardFactory


def _page(nm_ids: list, cursor: dict = None) -> FakeResponse:
    cards = [CardFactory.create(nm_id=nm_id, barcodes=[f"{nm_id}000"]) for nm_id in nm_ids]
    return FakeResponse(200, CardFactory.page(cards, cursor))


class Ticker:
    """Clock that advances one second per reading."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class TestNextCursor:
    """Tests for next_cursor()"""

    def test_advances_on_new_values(self):
        cursor = next_cursor(Cursor(), {"cursor": {"updatedAt": "2024-01-01T00:00:00Z", "nmID": 5}})

        assert cursor == Cursor("2024-01-01T00:00:00Z", 5)

    def test_identical_cursor_is_stuck(self):
        current = Cursor("2024-01-01T00:00:00Z", 5)

        assert next_cursor(current, {"cursor": {"updatedAt": "2024-01-01T00:00:00Z", "nmID": 5}}) is None

    def test_missing_cursor_is_stuck(self):
        assert next_cursor(Cursor(), {"cards": [{"nmID": 1}]}) is None

    def test_unusable_fields_are_stuck(self):
        assert next_cursor(Cursor(), {"cursor": {"updatedAt": "garbage", "nmID": "x"}}) is None

    def test_missing_nm_id_keeps_current(self):
        current = Cursor("2024-01-01T00:00:00Z", 5)

        cursor = next_cursor(current, {"cursor": {"updatedAt": "2024-01-02T00:00:00Z"}})

        assert cursor == Cursor("2024-01-02T00:00:00Z", 5)

    def test_repeated_timestamp_without_nm_id_is_stuck(self):
        """A missing nmID falls back to the current one, so nothing moved."""
        current = Cursor("2024-01-01T00:00:00Z", 7)

        assert next_cursor(current, {"cursor": {"updatedAt": "2024-01-01T00:00:00Z"}}) is None

    def test_millisecond_timestamp_normalized(self):
        cursor = next_cursor(Cursor(), {"data": {"cursor": {"updatedAt": 0, "nmID": 1}}})

        assert cursor.updated_at == "1970-01-01T00:00:00.000Z"

    def test_payload_omits_unset_fields(self):
        assert Cursor().to_payload(100) == {"limit": 100}
        assert Cursor("t", 3).to_payload(10) == {"limit": 10, "updatedAt": "t", "nmID": 3}


class TestScan:
    """Tests for CursorPager.scan()"""

    def test_walks_until_empty_page(self, make_client):
        """Should follow advancing cursors and stop on the empty page."""
        # Arrange
        client, session = make_client([
            _page([1, 2], CardFactory.cursor("2024-01-01T00:00:00Z", 2)),
            _page([3], CardFactory.cursor("2024-01-02T00:00:00Z", 3)),
            FakeResponse(200, {"cards": [], "cursor": {}}),
        ])
        pager = CursorPager(client, page_limit=2)
        seen = []

        # Act
        stats = pager.scan({"withPhoto": -1}, seen.extend)

        # Assert
        assert [entry.nm_id for entry in seen] == [1, 2, 3]
        assert stats.pages == 3
        assert stats.entries == 3
        assert stats.stop_reason == STOP_EMPTY
        assert stats.last_cursor == Cursor("2024-01-02T00:00:00Z", 3)

    def test_requests_carry_previous_cursor(self, make_client):
        client, session = make_client([
            _page([1], CardFactory.cursor("2024-01-01T00:00:00Z", 1)),
            FakeResponse(200, {"cards": []}),
        ])
        pager = CursorPager(client, page_limit=50)

        pager.scan({"withPhoto": -1}, lambda entries: None)

        first, second = (call["json"]["settings"] for call in session.calls)
        assert first == {"filter": {"withPhoto": -1}, "cursor": {"limit": 50}}
        assert second["cursor"] == {"limit": 50, "updatedAt": "2024-01-01T00:00:00Z", "nmID": 1}

    def test_repeated_cursor_stops_after_one_request(self, make_client):
        """A cursor equal to the one sent cannot advance the scan."""
        stuck = {"updatedAt": None, "nmID": None}
        client, session = make_client([_page([1], stuck) for _ in range(5)])
        pager = CursorPager(client)
        seen = []

        stats = pager.scan({"withPhoto": -1}, seen.extend)

        assert len(session.calls) == 1
        assert stats.stop_reason == STOP_STUCK
        assert [entry.nm_id for entry in seen] == [1]

    def test_stuck_after_advancing(self, make_client):
        client, session = make_client([
            _page([1], CardFactory.cursor("2024-01-01T00:00:00Z", 1)),
            _page([2], CardFactory.cursor("2024-01-01T00:00:00Z", 1)),
            _page([3], CardFactory.cursor("2024-01-02T00:00:00Z", 3)),
        ])
        pager = CursorPager(client)
        seen = []

        stats = pager.scan({"withPhoto": -1}, seen.extend)

        assert len(session.calls) == 2
        assert stats.stop_reason == STOP_STUCK
        assert [entry.nm_id for entry in seen] == [1, 2]

    def test_repeated_timestamp_without_nm_id_stops_scan(self, make_client):
        client, session = make_client([
            _page([1], CardFactory.cursor("2024-01-01T00:00:00Z", 7)),
            *[_page([n], {"updatedAt": "2024-01-01T00:00:00Z"}) for n in range(2, 21)],
        ])
        pager = CursorPager(client)
        seen = []

        stats = pager.scan({"withPhoto": -1}, seen.extend, max_pages=20)

        assert len(session.calls) == 2
        assert stats.stop_reason == STOP_STUCK
        assert stats.last_cursor == Cursor("2024-01-01T00:00:00Z", 7)
        assert [entry.nm_id for entry in seen] == [1, 2]

    def test_page_without_cursor_is_stuck(self, make_client):
        client, session = make_client([_page([1]), _page([2])])
        pager = CursorPager(client)

        stats = pager.scan({"withPhoto": -1}, lambda entries: None)

        assert stats.pages == 1
        assert stats.stop_reason == STOP_STUCK

    def test_max_pages(self, make_client):
        client, session = make_client([
            _page([n], CardFactory.cursor(f"2024-01-0{n}T00:00:00Z", n)) for n in range(1, 6)
        ])
        pager = CursorPager(client)

        stats = pager.scan({"withPhoto": -1}, lambda entries: None, max_pages=2)

        assert len(session.calls) == 2
        assert stats.stop_reason == STOP_MAX_PAGES

    def test_deadline_checked_before_each_request(self, make_client):
        client, session = make_client([
            _page([n], CardFactory.cursor(f"2024-01-0{n}T00:00:00Z", n)) for n in range(1, 6)
        ])
        pager = CursorPager(client, clock=Ticker())

        stats = pager.scan({"withPhoto": -1}, lambda entries: None, deadline=3.0)

        assert len(session.calls) == 2
        assert stats.stop_reason == STOP_DEADLINE

    def test_callback_can_stop_scan(self, make_client):
        client, session = make_client([
            _page([1], CardFactory.cursor("2024-01-01T00:00:00Z", 1)),
            _page([2], CardFactory.cursor("2024-01-02T00:00:00Z", 2)),
        ])
        pager = CursorPager(client)

        stats = pager.scan({"withPhoto": -1}, lambda entries: False)

        assert len(session.calls) == 1
        assert stats.stop_reason == STOP_CALLBACK
        assert stats.last_cursor == Cursor("2024-01-01T00:00:00Z", 1)

    def test_unknown_shape_is_empty(self, make_client):
        client, session = make_client([FakeResponse(200, {"items": [{"nmID": 1}]})])
        pager = CursorPager(client)

        stats = pager.scan({"withPhoto": -1}, lambda entries: None)

        assert stats.stop_reason == STOP_EMPTY
        assert stats.entries == 0

    def test_first_page_summary_recorded(self, make_client):
        client, session = make_client([
            _page([7], CardFactory.cursor("2024-01-01T00:00:00Z", 7)),
            FakeResponse(200, {"cards": []}),
        ])
        pager = CursorPager(client)

        stats = pager.scan({"barcode": ["7000"]}, lambda entries: None)

        assert stats.first_page["cardsCount"] == 1
        assert stats.first_page["firstCard"]["nmID"] == 7
        assert stats.first_page["payload"]["settings"]["filter"] == {"barcode": ["7000"]}

    def test_error_after_delivered_pages_propagates(self, make_client):
        """Pages delivered before the failure stay delivered."""
        client, session = make_client([
            _page([1], CardFactory.cursor("2024-01-01T00:00:00Z", 1)),
            FakeResponse(400, text="bad request"),
        ])
        pager = CursorPager(client)
        seen = []

        with pytest.raises(RemoteError):
            pager.scan({"withPhoto": -1}, seen.extend)

        assert [entry.nm_id for entry in seen] == [1]
