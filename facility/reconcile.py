"""Outstanding-equipment reconciliation across lending and booking records."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger("facility.reconcile")

UNKNOWN_BORROWER = "unknown"


@dataclass(frozen=True)
class LendingSource:
    """A direct lending transaction with explicit per-equipment quantities."""

    tag: ClassVar[str] = "lending"

    record_id: int
    quantities: Mapping[int, int]
    borrower_id: Optional[int] = None
    borrower_name: str = UNKNOWN_BORROWER
    borrowed_at: Optional[datetime] = None

    def borrowed_quantity(self, equipment_id: int) -> int:
        return self.quantities.get(equipment_id, 0)


@dataclass(frozen=True)
class BookingSource:
    """An approved room booking that requested equipment.

    Bookings only record *which* equipment was requested, so each one counts
    as a borrow of ``implied_quantity`` units and can never be returned.
    """

    tag: ClassVar[str] = "booking"

    record_id: int
    equipment_ids: Sequence[int] = field(default_factory=tuple)
    borrower_id: Optional[int] = None
    borrower_name: str = UNKNOWN_BORROWER
    borrowed_at: Optional[datetime] = None
    implied_quantity: int = 1

    def borrowed_quantity(self, equipment_id: int) -> int:
        return self.implied_quantity if equipment_id in self.equipment_ids else 0


BorrowSource = Union[LendingSource, BookingSource]


@dataclass(frozen=True)
class ReturnRecord:
    """Projection of a checkout: what came back for one lending transaction."""

    lending_id: int
    created_at: datetime
    returned: Mapping[int, int]
    status: str = "returned"


@dataclass(frozen=True)
class MissingRecord:
    source: str
    record_id: int
    borrower_id: Optional[int]
    borrower_name: str
    borrowed_at: Optional[datetime]
    borrowed_quantity: int
    returned_quantity: int
    missing_quantity: int
    status: str


def parallel_quantities(equipment_ids: Sequence[int], quantities: Sequence[int]) -> Dict[int, int]:
    """Fold the parallel id/quantity arrays of a lending row into a mapping.

    A missing quantity slot counts as zero; repeated ids are summed.
    """

    folded: Dict[int, int] = {}
    for index, equipment_id in enumerate(equipment_ids or []):
        quantity = quantities[index] if index < len(quantities or []) else 0
        folded[equipment_id] = folded.get(equipment_id, 0) + int(quantity or 0)
    return folded


def latest_returns(checkouts: Iterable[ReturnRecord]) -> Dict[int, ReturnRecord]:
    """Keep only the most recent checkout per lending transaction."""

    latest: Dict[int, ReturnRecord] = {}
    for record in checkouts:
        current = latest.get(record.lending_id)
        if current is None or record.created_at > current.created_at:
            latest[record.lending_id] = record
    return latest


def reconcile(
    equipment_id: int,
    sources: Iterable[BorrowSource],
    checkouts: Iterable[ReturnRecord] = (),
) -> List[MissingRecord]:
    """Return the borrow events of ``equipment_id`` that still have units outstanding.

    ``missing = max(0, borrowed - returned)``; events whose missing quantity
    is zero are dropped, so the result describes outstanding debt only.
    """

    returns = latest_returns(checkouts)
    outstanding: List[MissingRecord] = []
    for source in sources:
        borrowed = source.borrowed_quantity(equipment_id)
        if borrowed <= 0:
            continue

        returned = 0
        if isinstance(source, LendingSource):
            checkout = returns.get(source.record_id)
            if checkout is not None:
                returned = int(checkout.returned.get(equipment_id, 0))

        missing = max(0, borrowed - returned)
        if missing == 0:
            continue
        outstanding.append(
            MissingRecord(
                source=source.tag,
                record_id=source.record_id,
                borrower_id=source.borrower_id,
                borrower_name=source.borrower_name,
                borrowed_at=source.borrowed_at,
                borrowed_quantity=borrowed,
                returned_quantity=returned,
                missing_quantity=missing,
                status="active",
            )
        )

    logger.debug("Equipment %s has %d outstanding borrow events", equipment_id, len(outstanding))
    return outstanding
