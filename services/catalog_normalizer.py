"""
Normalization of Wildberries card-list pages.

The cards list endpoint has returned cards under several keys over
time. Each known location is one entry in CARD_LOCATIONS; a new shape
is supported by appending a path, not by adding a branch.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import structlog

logger = structlog.get_logger(__name__)


# Probed in order; the first location holding a list wins
CARD_LOCATIONS: tuple[tuple[str, ...], ...] = (
    ("cards",),
    ("data", "cards"),
    ("data", "cardsList"),
)

CURSOR_LOCATIONS: tuple[tuple[str, ...], ...] = (
    ("cursor",),
    ("data", "cursor"),
)

NM_ID_KEYS = ("nmID", "nmId")
SUBJECT_ID_KEYS = ("subjectID", "subjectId")
UPDATED_AT_KEYS = ("updatedAt", "updated_at")

_DIGITS = re.compile(r"^\d+$")


@dataclass(frozen=True)
class CatalogEntry:
    """One card from a catalog page, reduced to the fields sync needs."""

    nm_id: int
    vendor_code: str = ""
    subject_name: str = ""
    subject_id: Optional[int] = None
    barcodes: tuple[str, ...] = ()


# ===================
# SHAPE PROBING
# ===================

def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_list(payload: Any, locations: Iterable[tuple[str, ...]]) -> Optional[list]:
    for path in locations:
        value = _dig(payload, path)
        if isinstance(value, list):
            return value
    return None


def _first_present(raw: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def extract_cards(payload: Any) -> list:
    """Raw card dicts from a page body, or [] when no known location matches."""
    return _first_list(payload, CARD_LOCATIONS) or []


def extract_cursor(payload: Any) -> dict:
    """Raw cursor object from a page body, or {} when absent."""
    for path in CURSOR_LOCATIONS:
        value = _dig(payload, path)
        if isinstance(value, dict):
            return value
    return {}


# ===================
# SCALAR COERCION
# ===================

def to_int(value: Any) -> Optional[int]:
    """Finite integer value of a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None


def to_text(value: Any) -> str:
    """Trimmed string form; None becomes ""."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_updated_at(value: Any) -> Optional[str]:
    """
    Cursor timestamp as a stable string.

    Numbers and digit-only strings are epoch milliseconds and are
    rendered as ISO-8601 UTC. Other strings are kept verbatim when they
    parse as a timestamp. Anything else is None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return _iso_from_millis(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if _DIGITS.match(text):
            return _iso_from_millis(int(text))
        try:
            datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return text
    return None


def _iso_from_millis(millis: float) -> Optional[str]:
    try:
        moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


# ===================
# CARDS
# ===================

def card_identifiers(raw: dict) -> tuple[str, ...]:
    """Barcodes plus size SKUs, trimmed and de-duplicated in first-seen order."""
    candidates: list[Any] = []
    direct = raw.get("barcodes")
    if isinstance(direct, list):
        candidates.extend(direct)
    sizes = raw.get("sizes")
    if isinstance(sizes, list):
        for size in sizes:
            skus = size.get("skus") if isinstance(size, dict) else None
            if isinstance(skus, list):
                candidates.extend(skus)

    seen: dict[str, None] = {}
    for candidate in candidates:
        code = to_text(candidate)
        if code:
            seen.setdefault(code, None)
    return tuple(seen)


def normalize_card(raw: Any) -> Optional[CatalogEntry]:
    """CatalogEntry for one raw card, or None if it has no usable nmID."""
    if not isinstance(raw, dict):
        return None
    nm_id = to_int(_first_present(raw, NM_ID_KEYS))
    if nm_id is None or nm_id <= 0:
        return None
    return CatalogEntry(
        nm_id=nm_id,
        vendor_code=to_text(raw.get("vendorCode")),
        subject_name=to_text(raw.get("subjectName")),
        subject_id=to_int(_first_present(raw, SUBJECT_ID_KEYS)),
        barcodes=card_identifiers(raw),
    )


def normalize_page(payload: Any) -> list[CatalogEntry]:
    """All usable entries from a page body. An unknown shape is an empty page."""
    cards = extract_cards(payload)
    entries = []
    skipped = 0
    for raw in cards:
        entry = normalize_card(raw)
        if entry is None:
            skipped += 1
            continue
        entries.append(entry)
    if skipped:
        logger.debug("cards_skipped_without_nm_id", skipped=skipped, total=len(cards))
    return entries


def summarize_card(raw: Any) -> Optional[dict]:
    """Short description of a raw card for debug output."""
    if not isinstance(raw, dict):
        return None
    sizes = raw.get("sizes") if isinstance(raw.get("sizes"), list) else []
    barcodes = raw.get("barcodes") if isinstance(raw.get("barcodes"), list) else []
    return {
        "nmID": _first_present(raw, NM_ID_KEYS),
        "subjectID": _first_present(raw, SUBJECT_ID_KEYS),
        "subjectName": raw.get("subjectName"),
        "vendorCode": raw.get("vendorCode"),
        "barcodesCount": len(barcodes),
        "skusCount": sum(
            len(size["skus"])
            for size in sizes
            if isinstance(size, dict) and isinstance(size.get("skus"), list)
        ),
    }


def summarize_page(payload: Any, request_body: Optional[dict] = None) -> dict:
    """Debug summary of a raw page: card count, first card and cursor."""
    cards = extract_cards(payload)
    summary = {
        "cardsCount": len(cards),
        "firstCard": summarize_card(cards[0]) if cards else None,
        "cursor": extract_cursor(payload) or None,
    }
    if request_body is not None:
        summary["payload"] = request_body
    return summary
