"""
Targeted category lookup by barcode, vendor code or nmID.

Lookups run from strongest to weakest key: barcode filter, vendor code
filter, nmID filter (only when the first two found nothing), and finally
a page-by-page scan of the whole catalog when every filter came back
empty. Every card found is reconciled against local products exactly as
in the full sync, so the same patches are written either way.
"""

from typing import Optional

import structlog

from integrations.wildberries import CARDS_LIST_PATH
from models.marketplace import CategoryItem, CategoryLookupResponse, SyncRequest
from services.catalog_normalizer import CatalogEntry
from services.cursor_pager import PageStats
from services.patch_writer import chunk
from services.reconciliation import Reconciler
from services.sync_base import MarketplaceSyncService

logger = structlog.get_logger(__name__)


FILTER_CHUNK = 100
SCAN_FILTER = {"withPhoto": -1}


def unique(values: list) -> list:
    """De-duplicate keeping first-seen order."""
    return list(dict.fromkeys(values))


class LookupResults:
    """Cards found so far, keyed by barcode, nmID and vendor code."""

    def __init__(self):
        self.by_barcode: dict[str, CategoryItem] = {}
        self.by_nm_id: dict[int, CategoryItem] = {}
        self.by_vendor_code: dict[str, CategoryItem] = {}

    def add_entries(self, entries: list[CatalogEntry]) -> None:
        for entry in entries:
            base = {
                "nm_id": entry.nm_id,
                "subject_id": entry.subject_id,
                "subject_name": entry.subject_name,
                "vendor_code": entry.vendor_code or None,
            }
            if entry.barcodes:
                for barcode in entry.barcodes:
                    self._add(CategoryItem(barcode=barcode, **base))
            else:
                self._add(CategoryItem(**base))

    def _add(self, item: CategoryItem) -> None:
        if item.barcode:
            self.by_barcode[item.barcode] = item
        if item.nm_id is not None:
            self.by_nm_id[item.nm_id] = item
        if item.vendor_code:
            self.by_vendor_code[item.vendor_code] = item

    @property
    def empty(self) -> bool:
        return not (self.by_barcode or self.by_nm_id or self.by_vendor_code)

    def items(self) -> list[CategoryItem]:
        """Barcode rows first, then code-only rows, then nmID-only rows."""
        return [
            *self.by_barcode.values(),
            *(item for item in self.by_vendor_code.values() if not item.barcode),
            *(
                item for item in self.by_nm_id.values()
                if not item.barcode and not item.vendor_code
            ),
        ]


class CategoryLookupService(MarketplaceSyncService):
    """
    Resolve the caller's identifiers and persist what was found.

    Usage:
        service = CategoryLookupService()
        response = service.run(SyncRequest(barcodes=["2000000000011"]))
    """

    pass_name = "category_lookup"

    def run(self, request: SyncRequest) -> CategoryLookupResponse:
        """
        Run one targeted pass.

        Raises:
            ConfigError, RemoteError, ExhaustedRetriesError: From the API
            DatabaseError: If products cannot be loaded
            StoreWriteError: If a patch write fails
        """
        barcodes = unique(request.barcodes)
        nm_ids = unique(request.nm_ids)
        vendor_codes = unique(request.vendor_codes)
        received = len(barcodes) + len(nm_ids) + len(vendor_codes)

        debug: Optional[dict] = None
        if request.debug:
            debug = {
                "barcodesCount": len(barcodes),
                "nmIdsCount": len(nm_ids),
                "vendorCodesCount": len(vendor_codes),
                "token": self.content_client.token_info(),
            }
            if request.probe:
                debug["probe"] = self._probe()

        if not request.has_targets:
            if debug is not None:
                debug["reason"] = "empty-input"
            return CategoryLookupResponse(debug=debug)

        reconciler = self.start_pass()
        results = LookupResults()

        def collect(entries: list[CatalogEntry]) -> None:
            results.add_entries(entries)
            reconciler.reconcile(entries)

        self._filter_lookup("barcode", barcodes, collect, debug, "barcodeQuery")
        self._filter_lookup("vendorCode", vendor_codes, collect, debug, "vendorCodeQuery")
        if not results.by_barcode and not results.by_vendor_code:
            self._filter_lookup("nmID", nm_ids, collect, debug, "nmIdQuery")

        if results.empty:
            self._scan_fallback(barcodes, results, reconciler, request, debug)

        items = results.items()
        write = self.flush(reconciler.pending())

        logger.info(
            "category_lookup_completed",
            received=received,
            found=len(items),
            matched_by_code=reconciler.matched_by_code,
            matched_by_barcode=reconciler.matched_by_barcode,
            matched_by_wb_sku=reconciler.matched_by_wb_sku,
            updated=write.applied_count
        )
        return CategoryLookupResponse(
            items=items,
            received=received,
            total=len(items),
            matched_by_code=reconciler.matched_by_code,
            matched_by_barcode=reconciler.matched_by_barcode,
            updated=write.applied_count,
            debug=debug,
        )

    def _filter_lookup(self, field, values, collect, debug, debug_key) -> None:
        """One single-page filtered request per chunk of 100 values."""
        for values_chunk in chunk(values, FILTER_CHUNK):
            stats = self.pager.scan(
                {field: values_chunk},
                collect,
                page_limit=FILTER_CHUNK,
                max_pages=1,
            )
            self._remember(debug, debug_key, stats)

    def _scan_fallback(
        self,
        barcodes: list[str],
        results: LookupResults,
        reconciler: Reconciler,
        request: SyncRequest,
        debug: Optional[dict],
    ) -> None:
        """Scan the catalog until every requested barcode has been seen."""
        remaining = set(barcodes)
        if not remaining:
            return

        logger.info("category_scan_fallback", remaining=len(remaining))

        def on_page(entries: list[CatalogEntry]) -> bool:
            results.add_entries(entries)
            reconciler.reconcile(entries)
            remaining.difference_update(results.by_barcode.keys())
            return bool(remaining)

        stats = self.pager.scan(
            SCAN_FILTER,
            on_page,
            max_pages=min(self.settings.fallback_scan_max_pages, self.page_budget(request)),
            deadline=self.deadline_for(request),
        )
        self._remember(debug, "scanQuery", stats)
        if debug is not None:
            debug["scan"] = {**stats.to_dict(), "remaining": len(remaining)}

    @staticmethod
    def _remember(debug: Optional[dict], key: str, stats: PageStats) -> None:
        if debug is not None and key not in debug and stats.first_page is not None:
            debug[key] = stats.first_page

    def _probe(self) -> dict:
        body = {
            "settings": {
                "filter": SCAN_FILTER,
                "cursor": {"limit": 1},
            }
        }
        return {
            "payload": body,
            "response": self.content_client.request_raw(CARDS_LIST_PATH, body),
        }
