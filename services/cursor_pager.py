"""
Cursor-driven scan of the Wildberries cards list.

The API returns a (updatedAt, nmID) cursor with every page. It is known
to repeat cursors and to omit them, so the pager stops on any page that
does not move the cursor instead of trusting the API to end the list.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from integrations.wildberries import CARDS_LIST_PATH, WildberriesClient
from services.catalog_normalizer import (
    CatalogEntry,
    NM_ID_KEYS,
    UPDATED_AT_KEYS,
    extract_cards,
    extract_cursor,
    normalize_page,
    normalize_updated_at,
    summarize_page,
    to_int,
)

logger = structlog.get_logger(__name__)


# Stop reasons
STOP_EMPTY = "empty"
STOP_STUCK = "stuck"
STOP_MAX_PAGES = "max_pages"
STOP_DEADLINE = "deadline"
STOP_CALLBACK = "stopped"

# on_page returns False to end the scan early
PageCallback = Callable[[list[CatalogEntry]], Optional[bool]]


@dataclass(frozen=True)
class Cursor:
    """Position in the cards list. Both fields None means "from the start"."""

    updated_at: Optional[str] = None
    nm_id: Optional[int] = None

    def to_payload(self, limit: int) -> dict:
        payload: dict[str, Any] = {"limit": limit}
        if self.updated_at:
            payload["updatedAt"] = self.updated_at
        if self.nm_id is not None and self.nm_id > 0:
            payload["nmID"] = self.nm_id
        return payload

    def as_dict(self) -> dict:
        return {"updatedAt": self.updated_at, "nmID": self.nm_id}


def next_cursor(current: Cursor, payload: Any) -> Optional[Cursor]:
    """
    Cursor to request next, or None when the page cannot advance.

    A page cannot advance when its cursor has neither a usable timestamp
    nor a usable nmID, or when both fields equal the current cursor.
    A missing nmID keeps the current one, and the comparison is made
    after that substitution.
    """
    raw = extract_cursor(payload)
    updated_at = normalize_updated_at(_first(raw, UPDATED_AT_KEYS))
    nm_id = to_int(_first(raw, NM_ID_KEYS))

    if updated_at is None and nm_id is None:
        return None
    advanced = Cursor(
        updated_at=updated_at,
        nm_id=nm_id if nm_id is not None else current.nm_id,
    )
    if advanced == current:
        return None
    return advanced


def _first(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


@dataclass
class PageStats:
    """Outcome of one scan. Every stop reason is a success."""

    pages: int = 0
    entries: int = 0
    stop_reason: Optional[str] = None
    last_cursor: Cursor = field(default_factory=Cursor)
    first_page: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "pages": self.pages,
            "entries": self.entries,
            "stopReason": self.stop_reason,
            "cursor": self.last_cursor.as_dict(),
        }


class CursorPager:
    """
    Walks the cards list page by page.

    Usage:
        pager = CursorPager(client)
        stats = pager.scan({"withPhoto": -1}, on_page=handle_entries)
    """

    def __init__(
        self,
        client: WildberriesClient,
        page_limit: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.page_limit = page_limit
        self._clock = clock

    def build_request(self, filter: dict, cursor: Cursor, page_limit: int) -> dict:
        return {
            "settings": {
                "filter": filter,
                "cursor": cursor.to_payload(page_limit),
            }
        }

    def scan(
        self,
        filter: dict,
        on_page: PageCallback,
        page_limit: Optional[int] = None,
        max_pages: int = 500,
        deadline: Optional[float] = None,
    ) -> PageStats:
        """
        Request pages until the list ends, stalls, or the budget runs out.

        Args:
            filter: Cards list filter, e.g. {"withPhoto": -1}
            on_page: Receives each page's entries before the cursor is
                evaluated; returning False stops the scan
            page_limit: Cards per page (defaults to the pager's)
            max_pages: Page budget
            deadline: Optional clock() value after which no new page is requested

        Returns:
            PageStats with the stop reason

        Raises:
            Whatever the client raises; pages delivered before the error
            have already reached on_page.
        """
        limit = page_limit or self.page_limit
        stats = PageStats()
        cursor = Cursor()

        while True:
            if stats.pages >= max_pages:
                stats.stop_reason = STOP_MAX_PAGES
                break
            if deadline is not None and self._clock() >= deadline:
                stats.stop_reason = STOP_DEADLINE
                break

            request_body = self.build_request(filter, cursor, limit)
            payload = self.client.request(CARDS_LIST_PATH, body=request_body)
            stats.pages += 1
            if stats.first_page is None:
                stats.first_page = summarize_page(payload, request_body)

            if not extract_cards(payload):
                stats.stop_reason = STOP_EMPTY
                break

            entries = normalize_page(payload)
            stats.entries += len(entries)
            wants_more = on_page(entries)

            advanced = next_cursor(cursor, payload)
            if advanced is None:
                stats.stop_reason = STOP_STUCK
                break
            cursor = advanced
            stats.last_cursor = cursor

            if wants_more is False:
                stats.stop_reason = STOP_CALLBACK
                break

        logger.info(
            "catalog_scan_finished",
            filter=filter,
            pages=stats.pages,
            entries=stats.entries,
            stop_reason=stats.stop_reason
        )
        return stats
