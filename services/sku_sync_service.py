"""
Full catalog SKU sync.

Walks the whole Wildberries cards list and writes nmID and subject
name onto every local product whose vendor code or barcode appears in
it. If the catalog returns no cards at all, recent supplies are used to
recover barcode/nmID pairs instead.
"""

import time
from typing import Callable, Optional

import structlog

from config.settings import Settings
from integrations.wildberries import (
    CARDS_LIST_PATH,
    WildberriesClient,
    get_supplies_client,
)
from models.marketplace import SkuSyncResponse, SyncRequest
from services.catalog_normalizer import CatalogEntry, summarize_page
from services.item_store import ItemStore
from services.reconciliation import Reconciler
from services.supplies_service import SuppliesQuery, SuppliesService
from services.sync_base import MarketplaceSyncService

logger = structlog.get_logger(__name__)


FULL_SCAN_FILTER = {"withPhoto": -1}
DEBUG_SAMPLE_SIZE = 3
NM_ID_PROBE_LIMIT = 100


class SkuSyncService(MarketplaceSyncService):
    """
    Full pass: scan every card, match, write.

    Usage:
        service = SkuSyncService()
        response = service.run(SyncRequest(debug=True))
    """

    pass_name = "sku_sync"

    def __init__(
        self,
        store: Optional[ItemStore] = None,
        content_client: Optional[WildberriesClient] = None,
        supplies_client: Optional[WildberriesClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(store, content_client, settings, clock)
        self.supplies = SuppliesService(
            supplies_client or get_supplies_client(self.settings),
            pacing_ms=self.settings.supplies_pacing_ms,
            sleep=sleep,
        )

    def run(self, request: SyncRequest) -> SkuSyncResponse:
        """
        Run one full pass.

        Raises:
            ConfigError, RemoteError, ExhaustedRetriesError: From the API
            DatabaseError: If products cannot be loaded
            StoreWriteError: If a patch write fails
        """
        response = SkuSyncResponse()

        if request.debug:
            response.token = {
                key: value
                for key, value in self.content_client.token_info().items()
                if key != "hash"
            }
            if request.nm_ids:
                response.nm_id_query = self._probe_nm_ids(request.nm_ids)

        reconciler = self.start_pass()
        sample: list[dict] = []

        def on_page(entries: list[CatalogEntry]) -> None:
            if request.debug and len(sample) < DEBUG_SAMPLE_SIZE:
                for entry in entries[:DEBUG_SAMPLE_SIZE - len(sample)]:
                    sample.append(self._sample(entry, reconciler))
            reconciler.reconcile(entries)

        stats = self.pager.scan(
            FULL_SCAN_FILTER,
            on_page,
            max_pages=self.page_budget(request),
            deadline=self.deadline_for(request),
        )
        response.total_cards = stats.entries
        response.stop_reason = stats.stop_reason
        response.matched_by_code = reconciler.matched_by_code
        response.matched_by_barcode = reconciler.matched_by_barcode

        if not stats.entries:
            supplies = self.supplies.match_goods(self._supplies_query(request), reconciler)
            response.supplies_total = supplies.total
            response.supplies_matched = supplies.matched

        result = self.flush(reconciler.pending())
        response.updated = result.applied_count
        if request.debug:
            response.sample = sample

        logger.info(
            "sku_sync_completed",
            total_cards=response.total_cards,
            matched_by_code=response.matched_by_code,
            matched_by_barcode=response.matched_by_barcode,
            supplies_matched=response.supplies_matched,
            updated=response.updated,
            stop_reason=response.stop_reason
        )
        return response

    def _probe_nm_ids(self, nm_ids: list[int]) -> dict:
        """Debug-only: what does a direct nmID filter return for the first ids?"""
        body = {
            "settings": {
                "filter": {"nmID": nm_ids[:NM_ID_PROBE_LIMIT]},
                "cursor": {"limit": NM_ID_PROBE_LIMIT},
            }
        }
        payload = self.content_client.request(CARDS_LIST_PATH, body=body)
        summary = summarize_page(payload)
        return {
            "nmIdsCount": len(nm_ids),
            "cardsCount": summary["cardsCount"],
            "firstCard": summary["firstCard"],
            "cursor": summary["cursor"],
        }

    @staticmethod
    def _sample(entry: CatalogEntry, reconciler: Reconciler) -> dict:
        return {
            "nmID": entry.nm_id,
            "vendorCode": entry.vendor_code,
            "barcodesCount": len(entry.barcodes),
            "subjectName": entry.subject_name,
            "matched": reconciler.match(entry) is not None,
        }

    def _supplies_query(self, request: SyncRequest) -> SuppliesQuery:
        query = SuppliesQuery(max_supplies=request.max_supplies or self.settings.max_supplies)
        if request.status_ids is not None:
            query.status_ids = request.status_ids
        query.date_from = request.date_from
        query.date_till = request.date_till
        if request.date_type:
            query.date_type = request.date_type
        return query
