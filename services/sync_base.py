"""
Shared wiring for marketplace sync passes.

A pass loads the local index once, feeds catalog pages through one
Reconciler, and flushes the accumulated patches at the end. The
Reconciler of the most recent pass stays on the service so the write
phase can be retried on its own after a failure.
"""

import time
from typing import Callable, Optional

import structlog

from config.settings import Settings, get_settings
from integrations.wildberries import WildberriesClient, get_content_client
from models.marketplace import SyncRequest
from services.cursor_pager import CursorPager
from services.item_store import ItemStore
from services.patch_writer import PatchWriter, WriteResult
from services.reconciliation import LocalIndex, PendingPatch, Reconciler

logger = structlog.get_logger(__name__)


class MarketplaceSyncService:
    """Base for the full SKU sync and the targeted category lookup."""

    pass_name = "marketplace_sync"

    def __init__(
        self,
        store: Optional[ItemStore] = None,
        content_client: Optional[WildberriesClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.store = store or ItemStore()
        self.content_client = content_client or get_content_client(self.settings)
        self.pager = CursorPager(
            self.content_client,
            page_limit=self.settings.sync_page_limit,
            clock=clock,
        )
        self.writer = PatchWriter(self.store, batch_size=self.settings.write_batch_size)
        self._clock = clock
        self.last_pass: Optional[Reconciler] = None

    def start_pass(self) -> Reconciler:
        """Load the local index and open a fresh patch map."""
        index = LocalIndex.from_rows(self.store.load_products())
        self.last_pass = Reconciler(index)
        logger.info(
            "sync_pass_started",
            sync=self.pass_name,
            records=index.size,
            codes=len(index.by_code),
            barcodes=len(index.by_barcode)
        )
        return self.last_pass

    def page_budget(self, request: SyncRequest) -> int:
        if request.max_pages is not None:
            return request.max_pages
        return self.settings.sync_max_pages

    def deadline_for(self, request: SyncRequest) -> Optional[float]:
        seconds = request.deadline_seconds or self.settings.sync_deadline_seconds
        return self._clock() + seconds if seconds else None

    def flush(self, patches: list[PendingPatch]) -> WriteResult:
        """
        Write patches and raise if a write failed.

        Raises:
            StoreWriteError: With the count applied before the failure
        """
        result = self.writer.apply(patches)
        result.raise_for_error()
        return result
