"""
Matching catalog entries to local item records.

Per entry: vendor code first, then barcodes in order, then a record
already linked to the entry's nmID through its wb_sku. A match stages a
patch keyed by record id; a later match for the same record replaces
the earlier one, so the writer sees at most one patch per record.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog

from services.catalog_normalizer import CatalogEntry

logger = structlog.get_logger(__name__)


MATCH_BY_CODE = "code"
MATCH_BY_BARCODE = "barcode"
MATCH_BY_WB_SKU = "wb_sku"


@dataclass(frozen=True)
class LocalRecord:
    """A row of the items table, as loaded at pass start."""

    id: str
    code: Optional[str] = None
    barcode: Optional[str] = None
    wb_sku: Optional[str] = None
    mp_category_wb: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "LocalRecord":
        return cls(
            id=str(row["id"]),
            code=row.get("code"),
            barcode=row.get("barcode"),
            wb_sku=row.get("wb_sku"),
            mp_category_wb=row.get("mp_category_wb"),
        )


@dataclass(frozen=True)
class PendingPatch:
    """Staged update for one record: wb_sku always, category when known."""

    record_id: str
    wb_sku: str
    mp_category_wb: Optional[str] = None

    def to_update(self) -> dict:
        update: dict[str, Any] = {"wb_sku": self.wb_sku}
        if self.mp_category_wb:
            update["mp_category_wb"] = self.mp_category_wb
        return update


def code_key(value: Any) -> str:
    """Vendor codes compare trimmed and case-insensitively."""
    return str(value).strip().lower() if value is not None else ""


def barcode_key(value: Any) -> str:
    return str(value).strip() if value is not None else ""


class LocalIndex:
    """Read-only lookups over the records loaded for one pass."""

    def __init__(self, records: Iterable[LocalRecord]):
        self.by_code: dict[str, LocalRecord] = {}
        self.by_barcode: dict[str, LocalRecord] = {}
        self.by_wb_sku: dict[str, LocalRecord] = {}
        self.size = 0
        for record in records:
            self.size += 1
            code = code_key(record.code)
            if code:
                self.by_code[code] = record
            barcode = barcode_key(record.barcode)
            if barcode:
                self.by_barcode[barcode] = record
            wb_sku = barcode_key(record.wb_sku)
            if wb_sku:
                self.by_wb_sku[wb_sku] = record

    @classmethod
    def from_rows(cls, rows: Iterable[dict]) -> "LocalIndex":
        return cls(LocalRecord.from_row(row) for row in rows)

    def find_by_code(self, vendor_code: str) -> Optional[LocalRecord]:
        key = code_key(vendor_code)
        return self.by_code.get(key) if key else None

    def find_by_barcode(self, barcode: str) -> Optional[LocalRecord]:
        key = barcode_key(barcode)
        return self.by_barcode.get(key) if key else None

    def find_by_wb_sku(self, nm_id: int) -> Optional[LocalRecord]:
        return self.by_wb_sku.get(str(nm_id))


@dataclass(frozen=True)
class Match:
    record: LocalRecord
    method: str
    identifier: str


class Reconciler:
    """
    Accumulates patches across every page of a pass.

    Usage:
        reconciler = Reconciler(LocalIndex.from_rows(rows))
        pager.scan(filter, on_page=reconciler.reconcile)
        writer.apply(reconciler.pending())
    """

    def __init__(self, index: LocalIndex):
        self.index = index
        self.patches: dict[str, PendingPatch] = {}
        self.matched_by_code = 0
        self.matched_by_barcode = 0
        self.matched_by_wb_sku = 0
        self.unmatched = 0

    def match(self, entry: CatalogEntry) -> Optional[Match]:
        """Local record for an entry: vendor code, then barcodes, then wb_sku."""
        if entry.vendor_code:
            record = self.index.find_by_code(entry.vendor_code)
            if record is not None:
                return Match(record, MATCH_BY_CODE, entry.vendor_code)
        for barcode in entry.barcodes:
            record = self.index.find_by_barcode(barcode)
            if record is not None:
                return Match(record, MATCH_BY_BARCODE, barcode)
        record = self.index.find_by_wb_sku(entry.nm_id)
        if record is not None:
            return Match(record, MATCH_BY_WB_SKU, str(entry.nm_id))
        return None

    def stage(
        self,
        record: LocalRecord,
        nm_id: int,
        label: Optional[str] = None,
    ) -> PendingPatch:
        """Stage or replace the patch for a record. A blank label keeps the local one."""
        patch = PendingPatch(
            record_id=record.id,
            wb_sku=str(nm_id),
            mp_category_wb=label or record.mp_category_wb or None,
        )
        if record.id in self.patches:
            logger.debug(
                "patch_replaced",
                record_id=record.id,
                previous_wb_sku=self.patches[record.id].wb_sku,
                wb_sku=patch.wb_sku
            )
        self.patches[record.id] = patch
        return patch

    def reconcile(self, entries: Iterable[CatalogEntry]) -> dict[str, PendingPatch]:
        """Match a page of entries and return the accumulated patch map."""
        for entry in entries:
            found = self.match(entry)
            if found is None:
                self.unmatched += 1
                continue
            if found.method == MATCH_BY_CODE:
                self.matched_by_code += 1
            elif found.method == MATCH_BY_BARCODE:
                self.matched_by_barcode += 1
            else:
                self.matched_by_wb_sku += 1
            self.stage(found.record, entry.nm_id, entry.subject_name)
        return self.patches

    def pending(self) -> list[PendingPatch]:
        """Patches in first-staged order."""
        return list(self.patches.values())

    @property
    def matched(self) -> int:
        return self.matched_by_code + self.matched_by_barcode + self.matched_by_wb_sku
