"""
Cash reconciliation.

WHY: Closing a shift's cash is a separate sign-off from closing the pump.
The pompiste declares what was collected per payment method; the engine
compares it with what the recorded sales say should be there and turns
the difference into a signed, immutable financial record.

DESIGN PRINCIPLES:
- Expected amounts come from the shift aggregator, never from client input
- Both sides of the method set are reconciled (undeclared = 0, unsold = 0)
- variance = actual - expected; negative is a shortfall
- One register per shift, enforced by a unique constraint as well as a check
- A shortfall debt, when requested, is written in the same transaction
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import ConflictError, InvalidError, NotFoundError
from ..extensions import db
from ..models import CashRegister, Nozzle, PaymentDetail, PaymentMethod, PompisteDebt, Shift
from ..models.debts import DEBT_REASON_CASH_VARIANCE
from ..models.shifts import SHIFT_STATUS_OPEN
from ..validation import format_cents, to_cents
from station.time_utils import utcnow
from . import aggregation_service, debt_service
from .concurrency import lock_for_update, run_with_retry


@dataclass(frozen=True)
class DeclaredAmount:
    payment_method_id: int
    actual_cents: int
    reference: str | None = None


@dataclass
class ReconciliationResult:
    cash_register: CashRegister
    debt: PompisteDebt | None = None

    @property
    def debt_created(self) -> bool:
        return self.debt is not None

    def to_dict(self) -> dict:
        return {
            "cash_register": self.cash_register.to_dict(),
            "debt_created": self.debt_created,
            "debt_id": self.debt.id if self.debt else None,
        }


def _parse_declared(declared) -> list[DeclaredAmount]:
    if declared is not None and not isinstance(declared, (list, tuple)):
        raise InvalidError("declared must be a list of per-method amounts")
    lines = []
    seen = set()
    for position, entry in enumerate(declared or [], start=1):
        if isinstance(entry, DeclaredAmount):
            line = entry
        elif not isinstance(entry, dict):
            raise InvalidError(f"Declaration #{position} must be an object")
        else:
            method_id = entry.get("payment_method_id")
            if isinstance(method_id, bool) or not isinstance(method_id, int):
                raise InvalidError(f"Declaration #{position}: payment_method_id must be an integer id")
            reference = entry.get("reference")
            line = DeclaredAmount(
                payment_method_id=method_id,
                actual_cents=to_cents(entry.get("actual_cents"), f"declared[{position}].actual_cents"),
                reference=reference.strip() if isinstance(reference, str) and reference.strip() else None,
            )
        if line.actual_cents < 0:
            raise InvalidError(
                f"Declaration #{position}: amount cannot be negative (got {format_cents(line.actual_cents)})"
            )
        if line.payment_method_id in seen:
            raise InvalidError(
                f"Payment method {line.payment_method_id} is declared more than once",
                {"payment_method_id": line.payment_method_id},
            )
        seen.add(line.payment_method_id)
        lines.append(line)
    return lines


def _existing_register_id(shift_id: int) -> int | None:
    row = db.session.query(CashRegister.id).filter_by(shift_id=shift_id).first()
    return row[0] if row else None


def reconcile(expected: dict[int, int], declared: list[DeclaredAmount]) -> list[PaymentDetail]:
    """
    Build one unsaved PaymentDetail per method in expected | declared,
    ordered by payment method id.
    """
    actual = {d.payment_method_id: d for d in declared}
    details = []
    for method_id in sorted(set(expected) | set(actual)):
        expected_cents = expected.get(method_id, 0)
        line = actual.get(method_id)
        actual_cents = line.actual_cents if line else 0
        details.append(PaymentDetail(
            payment_method_id=method_id,
            expected_cents=expected_cents,
            actual_cents=actual_cents,
            variance_cents=actual_cents - expected_cents,
            reference=line.reference if line else None,
        ))
    return details


def close_cash_register(
    shift_id: int,
    declared,
    variance_note: str | None = None,
    create_debt_on_negative_variance: bool = True,
    closed_by_user_id: int | None = None,
) -> ReconciliationResult:
    """
    Reconcile the declared amounts of an ended shift.

    Args:
        shift_id: CLOSED or VALIDATED shift
        declared: list of {"payment_method_id", "actual_cents", "reference"?}
        variance_note: explanation, mandatory when |variance| reaches the threshold
        create_debt_on_negative_variance: open a CASH_VARIANCE debt on a shortfall
        closed_by_user_id: actor performing the closing

    Raises:
        NotFoundError: unknown shift or payment method
        InvalidError: shift still OPEN, bad declaration, missing variance note
        ConflictError: the shift already has a cash register
    """
    lines = _parse_declared(declared)
    note = (variance_note or "").strip() or None

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})
        if shift.status == SHIFT_STATUS_OPEN:
            raise InvalidError(
                f"Shift {shift.id} is still OPEN; end it before reconciling its cash",
                {"shift_id": shift.id, "status": shift.status},
            )
        existing_id = _existing_register_id(shift.id)
        if existing_id:
            raise ConflictError(
                f"Shift {shift.id} already has a cash register",
                {"shift_id": shift.id, "cash_register_id": existing_id},
            )

        for line in lines:
            if not db.session.get(PaymentMethod, line.payment_method_id):
                raise NotFoundError(
                    f"Payment method {line.payment_method_id} not found",
                    {"payment_method_id": line.payment_method_id},
                )

        summary = aggregation_service.summarize_shift(shift.id)
        details = reconcile(summary.expected_by_method(), lines)
        expected_total = sum(d.expected_cents for d in details)
        actual_total = sum(d.actual_cents for d in details)
        variance = actual_total - expected_total

        threshold = int(current_app.config.get("CASH_VARIANCE_NOTE_THRESHOLD_CENTS", 5000))
        if abs(variance) >= threshold and not note:
            raise InvalidError(
                f"A variance note is required: variance {format_cents(variance)} reaches the "
                f"threshold of {format_cents(threshold)}",
                {"variance_cents": variance, "threshold_cents": threshold},
            )

        closed_at = utcnow()
        register = CashRegister(
            shift_id=shift.id,
            expected_total_cents=expected_total,
            actual_total_cents=actual_total,
            variance_cents=variance,
            variance_note=note,
            closed_by_user_id=closed_by_user_id,
            closed_at=closed_at,
        )
        db.session.add(register)
        db.session.flush()
        for detail in details:
            detail.cash_register_id = register.id
            db.session.add(detail)

        debt = None
        if variance < 0 and create_debt_on_negative_variance:
            debt = debt_service.add_debt(
                shift.pompiste_id,
                shift.station_id,
                -variance,
                DEBT_REASON_CASH_VARIANCE,
                description=f"Cash shortfall of {closed_at:%d/%m/%Y} - shift {shift.id}",
                related_entity_type="CashRegister",
                related_entity_id=register.id,
                cash_register_id=register.id,
                created_by_user_id=closed_by_user_id,
            )

        db.session.commit()

        current_app.logger.info(
            "Cash register %s closed for shift %s: expected %s, actual %s, variance %s%s",
            register.id, shift.id, format_cents(expected_total), format_cents(actual_total),
            format_cents(variance), f", debt {debt.id} created" if debt else "",
        )
        return ReconciliationResult(cash_register=register, debt=debt)

    return run_with_retry(
        _op,
        conflict_message=f"Shift {shift_id} already has a cash register",
        conflict_on=("uq_cash_registers_shift",),
    )


def get_cash_register(cash_register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, cash_register_id)
    if not register:
        raise NotFoundError(
            f"Cash register {cash_register_id} not found", {"cash_register_id": cash_register_id}
        )
    return register


def get_by_shift(shift_id: int) -> CashRegister:
    register = db.session.query(CashRegister).filter_by(shift_id=shift_id).first()
    if not register:
        raise NotFoundError(f"No cash register for shift {shift_id}", {"shift_id": shift_id})
    return register


def list_with_variance(station_id: int, min_abs_variance_cents: int = 0) -> list[CashRegister]:
    """Registers of a station whose |variance| is at least the given amount."""
    query = db.session.query(CashRegister).join(Shift).join(Nozzle, Shift.nozzle_id == Nozzle.id).filter(
        Nozzle.station_id == station_id,
        db.func.abs(CashRegister.variance_cents) >= min_abs_variance_cents,
    )
    return query.order_by(CashRegister.variance_cents.desc(), CashRegister.closed_at.desc()).all()
