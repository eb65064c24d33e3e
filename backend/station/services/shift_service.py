"""
Shift lifecycle service.

WHY: A shift is the unit of accountability at the pump: one pompiste, one
nozzle, a start and an end meter reading, and every sale in between.

DESIGN PRINCIPLES:
- OPEN -> CLOSED -> VALIDATED, nothing leaves VALIDATED or re-enters OPEN
- At most one OPEN shift per nozzle and per pompiste (row locks + partial
  unique indexes)
- Closing a shift and advancing the nozzle meter commit together
- Meter drift and long shifts warn; meter regression and excessive
  duration block
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, ForbiddenError, InvalidError, NotFoundError
from ..extensions import db
from ..models import Nozzle, Shift, User
from ..models.auth import is_manager_role
from ..models.shifts import (
    SHIFT_STATUS_CLOSED,
    SHIFT_STATUS_OPEN,
    SHIFT_STATUS_VALIDATED,
    SHIFT_STATUSES,
)
from ..validation import format_liters, to_decimal
from station.time_utils import elapsed_minutes, utcnow
from . import aggregation_service, meter_service
from .concurrency import lock_for_update, run_with_retry
from .shift_checks import check_index_continuity, check_index_not_below, check_shift_duration


INDEX_PRECISION = Decimal("0.01")


def _parse_index(value, field: str) -> Decimal:
    index = to_decimal(value, field)
    if index < 0:
        raise InvalidError(f"{field} cannot be negative (got {index})")
    if index != index.quantize(INDEX_PRECISION):
        raise InvalidError(f"{field} has more than two decimals (got {index})")
    return index.quantize(INDEX_PRECISION)


def _get_shift_locked(shift_id: int) -> Shift:
    shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})
    return shift


def _find_open_shift(**filters) -> Shift | None:
    return db.session.query(Shift).filter_by(status=SHIFT_STATUS_OPEN, **filters).first()


def _reject_if_validated(shift: Shift) -> None:
    if shift.status == SHIFT_STATUS_VALIDATED:
        raise ConflictError(
            f"Shift {shift.id} is already validated and can no longer be modified",
            {"shift_id": shift.id, "status": shift.status},
        )


# =============================================================================
# LIFECYCLE
# =============================================================================

def start_shift(pompiste_id: int, nozzle_id: int, index_start) -> Shift:
    """
    Open a shift for a pompiste on a nozzle.

    Raises:
        NotFoundError: nozzle or pompiste unknown
        InvalidError: nozzle inactive, index below the nozzle meter
        ConflictError: an OPEN shift already exists on the nozzle or for the pompiste
    """
    index = _parse_index(index_start, "index_start")

    def _op():
        nozzle = meter_service.get_nozzle(nozzle_id, for_update=True)
        if not nozzle.is_active:
            raise InvalidError(f"Nozzle {nozzle.code} is inactive", {"nozzle_id": nozzle.id})

        pompiste = lock_for_update(db.session.query(User).filter_by(id=pompiste_id)).first()
        if not pompiste:
            raise NotFoundError(f"Pompiste {pompiste_id} not found", {"pompiste_id": pompiste_id})
        if not pompiste.is_active:
            raise InvalidError(f"User {pompiste_id} is inactive", {"pompiste_id": pompiste_id})

        open_on_nozzle = _find_open_shift(nozzle_id=nozzle.id)
        if open_on_nozzle:
            raise ConflictError(
                f"Nozzle {nozzle.code} already has an open shift ({open_on_nozzle.id})",
                {"existing_shift_id": open_on_nozzle.id, "nozzle_id": nozzle.id},
            )

        open_for_pompiste = _find_open_shift(pompiste_id=pompiste.id)
        if open_for_pompiste:
            raise ConflictError(
                f"Pompiste {pompiste.id} already has an open shift ({open_for_pompiste.id}) "
                f"on nozzle {open_for_pompiste.nozzle_id}",
                {"existing_shift_id": open_for_pompiste.id, "pompiste_id": pompiste.id},
            )

        regression = check_index_not_below(nozzle.current_index, index, "Start index")
        if regression.is_blocking:
            raise InvalidError(
                f"{regression.message}, the current meter of nozzle {nozzle.code}",
                {"nozzle_id": nozzle.id, **regression.details},
            )

        continuity = check_index_continuity(
            meter_service.last_recorded_index_end(nozzle.id),
            index,
            current_app.config.get("INDEX_CONTINUITY_TOLERANCE", 0),
        )
        if continuity.is_warning:
            current_app.logger.warning("Nozzle %s: %s", nozzle.code, continuity.message)

        shift = Shift(
            nozzle_id=nozzle.id,
            pompiste_id=pompiste.id,
            index_start=index,
            status=SHIFT_STATUS_OPEN,
            started_at=utcnow(),
        )
        db.session.add(shift)
        db.session.commit()

        current_app.logger.info(
            "Shift %s opened by pompiste %s on nozzle %s at index %s",
            shift.id, pompiste.id, nozzle.code, format_liters(index),
        )
        return shift

    return run_with_retry(
        _op,
        conflict_message="An open shift already exists for this nozzle or pompiste",
        conflict_on=("uq_shifts_open_nozzle", "uq_shifts_open_pompiste"),
    )


def end_shift(
    shift_id: int,
    actor_id: int,
    index_end,
    incident_note: str | None = None,
    *,
    actor_role: str | None = None,
) -> Shift:
    """
    Close an OPEN shift with its end meter reading.

    The shift transition and the nozzle meter update are one atomic unit.
    Non-manager actors may only close their own shift.
    """
    index = _parse_index(index_end, "index_end")
    note = (incident_note or "").strip() or None

    def _op():
        shift = _get_shift_locked(shift_id)
        _reject_if_validated(shift)
        if shift.status != SHIFT_STATUS_OPEN:
            raise ConflictError(
                f"Shift {shift.id} is not open (status {shift.status})",
                {"shift_id": shift.id, "status": shift.status},
            )

        if not is_manager_role(actor_role) and shift.pompiste_id != actor_id:
            raise ForbiddenError(
                f"Shift {shift.id} belongs to another pompiste",
                {"shift_id": shift.id},
            )

        regression = check_index_not_below(shift.index_start, index, "End index")
        if regression.is_blocking:
            raise InvalidError(
                f"{regression.message}, the start index of shift {shift.id}",
                {"shift_id": shift.id, **regression.details},
            )

        now = utcnow()
        duration = check_shift_duration(
            shift.started_at,
            now,
            float(current_app.config["SHIFT_DURATION_WARN_HOURS"]),
            float(current_app.config["SHIFT_DURATION_BLOCK_HOURS"]),
        )
        if duration.is_blocking:
            raise InvalidError(duration.message, {"shift_id": shift.id, **duration.details})
        if duration.is_warning:
            current_app.logger.warning("Shift %s: %s", shift.id, duration.message)

        nozzle = meter_service.get_nozzle(shift.nozzle_id, for_update=True)
        meter_service.advance_index(nozzle, index)

        shift.index_end = index
        shift.ended_at = now
        shift.status = SHIFT_STATUS_CLOSED
        shift.incident_note = note
        shift.closed_by_user_id = actor_id

        db.session.commit()

        current_app.logger.info(
            "Shift %s closed, meter %s -> %s (%s L)",
            shift.id, format_liters(shift.index_start), format_liters(index),
            format_liters(index - Decimal(shift.index_start)),
        )
        return shift

    return run_with_retry(_op)


def validate_shift(shift_id: int, manager_id: int) -> Shift:
    """
    Manager sign-off of a CLOSED shift. VALIDATED is terminal.

    Re-validating is rejected (ConflictError) so a double click by two
    managers cannot rewrite the validator.
    """
    def _op():
        manager = db.session.query(User).filter_by(id=manager_id).first()
        if not manager:
            raise NotFoundError(f"User {manager_id} not found", {"user_id": manager_id})
        if not is_manager_role(manager.role):
            raise ForbiddenError(
                f"User {manager_id} is not a manager and cannot validate shifts",
                {"user_id": manager_id, "role": manager.role},
            )

        shift = _get_shift_locked(shift_id)
        _reject_if_validated(shift)
        if shift.status != SHIFT_STATUS_CLOSED:
            raise InvalidError(
                f"Shift {shift.id} must be closed before validation (status {shift.status})",
                {"shift_id": shift.id, "status": shift.status},
            )

        shift.status = SHIFT_STATUS_VALIDATED
        shift.validated_by_user_id = manager.id
        shift.validated_at = utcnow()
        db.session.commit()

        current_app.logger.info("Shift %s validated by manager %s", shift.id, manager.id)
        return shift

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})
    return shift


def list_shifts(
    station_id: int | None = None,
    pompiste_id: int | None = None,
    nozzle_id: int | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Shift]:
    """Shifts matching every given filter, newest first."""
    query = db.session.query(Shift)

    if status:
        status = status.upper()
        if status not in SHIFT_STATUSES:
            raise InvalidError(f"Unknown shift status {status}. Must be one of {SHIFT_STATUSES}")
        query = query.filter(Shift.status == status)
    if station_id:
        query = query.join(Nozzle).filter(Nozzle.station_id == station_id)
    if pompiste_id:
        query = query.filter(Shift.pompiste_id == pompiste_id)
    if nozzle_id:
        query = query.filter(Shift.nozzle_id == nozzle_id)
    if date_from:
        query = query.filter(Shift.started_at >= date_from)
    if date_to:
        query = query.filter(Shift.started_at <= date_to)

    return query.order_by(Shift.started_at.desc(), Shift.id.desc()).all()


def list_open_shifts(station_id: int | None = None) -> list[Shift]:
    """Open shifts, oldest first (longest-running on top)."""
    query = db.session.query(Shift).filter(Shift.status == SHIFT_STATUS_OPEN)
    if station_id:
        query = query.join(Nozzle).filter(Nozzle.station_id == station_id)
    return query.order_by(Shift.started_at.asc(), Shift.id.asc()).all()


def get_shift_statistics(shift_id: int) -> dict:
    """
    Meter volume, revenue and duration of a shift.

    Volume comes from the meter (0 while open); revenue comes from sales.
    Duration runs to now while the shift is open.
    """
    shift = get_shift(shift_id)
    summary = aggregation_service.summarize_shift(shift.id)

    quantity_sold = Decimal("0")
    if shift.index_end is not None:
        quantity_sold = Decimal(shift.index_end) - Decimal(shift.index_start)

    total_minutes = elapsed_minutes(shift.started_at, shift.ended_at)

    return {
        "shift_id": shift.id,
        "status": shift.status,
        "quantity_sold": str(quantity_sold),
        "revenue_cents": summary.total_revenue_cents,
        "sales_count": summary.sale_count,
        "sales_quantity": str(summary.total_quantity),
        "duration": {
            "hours": total_minutes // 60,
            "minutes": total_minutes % 60,
            "total_minutes": total_minutes,
        },
    }
