"""
Supplies fallback for SKU sync.

When the catalog scan returns no cards at all, recent supplies still
list barcode/nmID pairs for goods that were shipped. Each supply's goods
are fetched separately, paced to stay under the API rate limit.
"""

import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Optional

import structlog

from integrations.wildberries import SUPPLIES_LIST_PATH, WildberriesClient
from services.catalog_normalizer import NM_ID_KEYS, to_int, to_text
from services.reconciliation import Reconciler

logger = structlog.get_logger(__name__)


DEFAULT_STATUS_IDS = (1, 2, 3)
DEFAULT_DATE_TYPE = "createDate"
DEFAULT_LOOKBACK_DAYS = 365


@dataclass
class SuppliesQuery:
    status_ids: list[int] = field(default_factory=lambda: list(DEFAULT_STATUS_IDS))
    date_from: Optional[str] = None
    date_till: Optional[str] = None
    date_type: str = DEFAULT_DATE_TYPE
    max_supplies: int = 200

    def to_body(self, today: Optional[date] = None) -> dict:
        today = today or date.today()
        return {
            "dates": [{
                "from": self.date_from or (today - timedelta(days=DEFAULT_LOOKBACK_DAYS)).isoformat(),
                "till": self.date_till or today.isoformat(),
                "type": self.date_type,
            }],
            "statusIDs": self.status_ids,
        }


@dataclass
class SuppliesResult:
    total: int = 0
    matched: int = 0


def _supply_rows(payload: Any) -> list:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("supplies"), list):
        return payload["supplies"]
    return []


def _supply_id(row: Any) -> Optional[int]:
    if not isinstance(row, dict):
        return None
    return to_int(row.get("supplyID", row.get("supplyId")))


class SuppliesService:
    """Matches goods from recent supplies to local records by barcode."""

    def __init__(
        self,
        client: WildberriesClient,
        pacing_ms: int = 200,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.pacing_ms = pacing_ms
        self._sleep = sleep

    def list_supply_ids(self, query: SuppliesQuery) -> list[int]:
        payload = self.client.request(SUPPLIES_LIST_PATH, method="POST", body=query.to_body())
        ids = [sid for sid in (_supply_id(row) for row in _supply_rows(payload)) if sid is not None]
        return ids[:query.max_supplies]

    def match_goods(self, query: SuppliesQuery, reconciler: Reconciler) -> SuppliesResult:
        """
        Stage patches for supply goods whose barcode is known locally.

        Supply goods carry no category, so the record's own label is kept.
        """
        result = SuppliesResult()
        supply_ids = self.list_supply_ids(query)
        result.total = len(supply_ids)
        logger.info("supplies_fallback_started", supplies=result.total)

        for position, supply_id in enumerate(supply_ids):
            if position:
                self._sleep(self.pacing_ms / 1000)
            goods = self.client.request(f"{SUPPLIES_LIST_PATH}/{supply_id}/goods", method="GET")
            for row in goods if isinstance(goods, list) else []:
                if not isinstance(row, dict):
                    continue
                barcode = to_text(row.get("barcode"))
                nm_id = to_int(next((row[k] for k in NM_ID_KEYS if row.get(k) is not None), None))
                if not barcode or nm_id is None:
                    continue
                record = reconciler.index.find_by_barcode(barcode)
                if record is None:
                    continue
                reconciler.stage(record, nm_id)
                result.matched += 1

        logger.info("supplies_fallback_finished", supplies=result.total, matched=result.matched)
        return result
