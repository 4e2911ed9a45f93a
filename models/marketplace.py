"""
Marketplace sync request and response schemas.

Request fields are parsed leniently: callers send loosely typed JSON
(numbers as strings, stray blanks), and invalid members of a list are
dropped rather than failing the whole request.
"""

import math
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from models.base import BaseSchema, CamelResponse


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class SyncRequest(BaseSchema):
    """
    Body accepted by both sync endpoints.

    A bare JSON array is accepted by the route and treated as barcodes.
    """

    barcodes: list[str] = Field(default_factory=list)
    nm_ids: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("nmIds", "wbSkus", "nm_ids"),
    )
    vendor_codes: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("vendorCodes", "codes", "vendor_codes"),
    )
    debug: bool = False
    probe: bool = False
    max_pages: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("maxPages", "max_pages"),
    )
    deadline_seconds: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("deadlineSeconds", "deadline_seconds"),
    )

    # Supplies fallback
    status_ids: Optional[list[int]] = Field(
        None,
        validation_alias=AliasChoices("statusIds", "status_ids"),
    )
    date_from: Optional[str] = Field(None, validation_alias=AliasChoices("dateFrom", "date_from"))
    date_till: Optional[str] = Field(None, validation_alias=AliasChoices("dateTill", "date_till"))
    date_type: Optional[str] = Field(None, validation_alias=AliasChoices("dateType", "date_type"))
    max_supplies: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("maxSupplies", "max_supplies"),
    )

    @field_validator("barcodes", "vendor_codes", mode="before")
    @classmethod
    def clean_strings(cls, v: Any) -> list[str]:
        """Trim, stringify and drop blanks."""
        out = []
        for item in _as_list(v):
            text = "" if item is None else str(item).strip()
            if text:
                out.append(text)
        return out

    @field_validator("nm_ids", mode="before")
    @classmethod
    def clean_nm_ids(cls, v: Any) -> list[int]:
        """Keep positive finite numbers only."""
        out = []
        for item in _as_list(v):
            number = _as_number(item)
            if number is not None and number > 0:
                out.append(int(number))
        return out

    @field_validator("status_ids", mode="before")
    @classmethod
    def clean_status_ids(cls, v: Any) -> Optional[list[int]]:
        if not isinstance(v, list):
            return None
        return [int(n) for n in (_as_number(item) for item in v) if n is not None]

    @field_validator("debug", "probe", mode="before")
    @classmethod
    def strict_true(cls, v: Any) -> bool:
        """Only a JSON true enables a flag."""
        return v is True

    @field_validator("max_pages", mode="before")
    @classmethod
    def optional_max_pages(cls, v: Any) -> Optional[int]:
        """Unset or non-numeric falls back to the configured page budget."""
        number = _as_number(v)
        return int(number) if number is not None else None

    @field_validator("deadline_seconds", mode="before")
    @classmethod
    def positive_deadline(cls, v: Any) -> Optional[float]:
        number = _as_number(v)
        return number if number is not None and number > 0 else None

    @field_validator("max_supplies", mode="before")
    @classmethod
    def optional_int(cls, v: Any) -> Optional[int]:
        number = _as_number(v)
        return int(number) if number is not None else None

    @field_validator("date_from", "date_till", "date_type", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @property
    def has_targets(self) -> bool:
        return bool(self.barcodes or self.nm_ids or self.vendor_codes)


# ===================
# RESPONSES
# ===================

class CategoryItem(CamelResponse):
    """One resolved identifier with what the marketplace knows about it."""

    barcode: Optional[str] = None
    nm_id: Optional[int] = Field(None, alias="nmId")
    subject_id: Optional[int] = None
    subject_name: Optional[str] = None
    vendor_code: Optional[str] = None


class CategoryLookupResponse(CamelResponse):
    items: list[CategoryItem] = Field(default_factory=list)
    received: int = 0
    total: int = 0
    matched_by_code: int = 0
    matched_by_barcode: int = 0
    updated: int = 0
    debug: Optional[dict[str, Any]] = None


class SkuSyncResponse(CamelResponse):
    total_cards: int = 0
    matched_by_code: int = 0
    matched_by_barcode: int = 0
    supplies_total: int = 0
    supplies_matched: int = 0
    updated: int = 0
    stop_reason: Optional[str] = None
    sample: Optional[list[dict[str, Any]]] = None
    token: Optional[dict[str, Any]] = None
    nm_id_query: Optional[dict[str, Any]] = None
