# Overview: Meter registry; authoritative last-known cumulative index per nozzle.

from __future__ import annotations

from decimal import Decimal

from ..errors import InvalidError, NotFoundError
from ..extensions import db
from ..models import Nozzle, Shift
from ..models.shifts import SHIFT_STATUS_CLOSED, SHIFT_STATUS_VALIDATED
from .concurrency import lock_for_update
from .shift_checks import check_index_not_below


def get_nozzle(nozzle_id: int, *, for_update: bool = False) -> Nozzle:
    """Load a nozzle, optionally locking its row for the rest of the transaction."""
    query = db.session.query(Nozzle).filter_by(id=nozzle_id)
    if for_update:
        query = lock_for_update(query)
    nozzle = query.first()
    if not nozzle:
        raise NotFoundError(f"Nozzle {nozzle_id} not found", {"nozzle_id": nozzle_id})
    return nozzle


def get_current_index(nozzle_id: int) -> Decimal:
    return Decimal(get_nozzle(nozzle_id).current_index)


def last_recorded_index_end(nozzle_id: int) -> Decimal | None:
    """End reading of the most recently ended shift on this nozzle, if any."""
    last_shift = db.session.query(Shift).filter(
        Shift.nozzle_id == nozzle_id,
        Shift.status.in_([SHIFT_STATUS_CLOSED, SHIFT_STATUS_VALIDATED]),
        Shift.index_end.isnot(None),
    ).order_by(Shift.ended_at.desc(), Shift.id.desc()).first()

    if not last_shift:
        return None
    return Decimal(last_shift.index_end)


def advance_index(nozzle: Nozzle, index_end: Decimal) -> None:
    """
    Move the nozzle meter forward to index_end.

    Must be called on a row locked by the caller, inside the transaction
    that closes the shift, so the two writes commit together.
    """
    check = check_index_not_below(nozzle.current_index, index_end, "End index")
    if check.is_blocking:
        raise InvalidError(check.message, {"nozzle_id": nozzle.id, **check.details})
    nozzle.current_index = index_end
