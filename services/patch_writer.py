"""
Batched application of staged patches to the item store.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

import structlog

from exceptions import StoreWriteError
from services.reconciliation import PendingPatch

logger = structlog.get_logger(__name__)


class PatchTarget(Protocol):
    """Anything that can overwrite one record's fields by id."""

    def update_item(self, record_id: str, values: dict) -> None: ...


@dataclass
class WriteResult:
    applied_count: int = 0
    error: Optional[StoreWriteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def chunk(items: list, size: int) -> list[list]:
    """Split a list into consecutive slices of at most size items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class PatchWriter:
    """
    Writes patches in fixed-size batches and stops at the first failure.

    Already applied patches are not rolled back; the result reports how
    many went through. Each write overwrites the same fields by id, so
    a failed run can be repeated with the same patches.
    """

    def __init__(self, target: PatchTarget, batch_size: int = 50):
        self.target = target
        self.batch_size = batch_size

    def apply(self, patches: Iterable[PendingPatch]) -> WriteResult:
        rows = list(patches)
        result = WriteResult()
        if not rows:
            return result

        for batch_number, batch in enumerate(chunk(rows, self.batch_size), start=1):
            for patch in batch:
                try:
                    self.target.update_item(patch.record_id, patch.to_update())
                except Exception as e:
                    logger.error(
                        "patch_write_failed",
                        record_id=patch.record_id,
                        batch=batch_number,
                        applied=result.applied_count,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    result.error = StoreWriteError(
                        patch.record_id,
                        result.applied_count,
                        getattr(e, "message", None) or str(e)
                    )
                    return result
                result.applied_count += 1
            logger.debug("patch_batch_written", batch=batch_number, size=len(batch))

        logger.info("patches_written", applied=result.applied_count, total=len(rows))
        return result
