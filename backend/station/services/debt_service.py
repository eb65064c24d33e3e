"""
Pompiste debt ledger.

WHY: Cash shortfalls, salary advances and damages leave a pompiste owing
the station. The ledger records the balance and every repayment until it
is settled or a manager cancels it.

DESIGN PRINCIPLES:
- remaining_cents only decreases, through DebtPayment rows
- status is recomputed from remaining_cents in the same write; callers never set it
- Overpayment is rejected, not clamped
- Cancellation keeps the amounts (history) and exposes an old/new audit pair
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..errors import ConflictError, InvalidError, NotFoundError
from ..extensions import db
from ..models import DebtPayment, PompisteDebt, Station, User
from ..models.auth import ROLE_POMPISTE
from ..models.debts import (
    DEBT_STATUS_CANCELLED,
    DEBT_STATUS_PAID,
    DEBT_STATUS_PARTIALLY_PAID,
    DEBT_STATUS_PENDING,
    SETTLED_DEBT_STATUSES,
    VALID_DEBT_REASONS,
    VALID_REPAYMENT_METHODS,
)
from ..validation import format_cents, to_cents
from station.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


VALID_DEBT_STATUSES = [
    DEBT_STATUS_PENDING,
    DEBT_STATUS_PARTIALLY_PAID,
    DEBT_STATUS_PAID,
    DEBT_STATUS_CANCELLED,
]


@dataclass
class DebtCancellation:
    """Cancelled debt plus the before/after pair for the external audit log."""
    debt: PompisteDebt
    old_value: dict
    new_value: dict

    @property
    def audit(self) -> dict:
        return {"old": self.old_value, "new": self.new_value}


def derive_status(amount_cents: int, remaining_cents: int) -> str:
    """Status of a non-cancelled debt as a pure function of its balance."""
    if remaining_cents == 0:
        return DEBT_STATUS_PAID
    if remaining_cents < amount_cents:
        return DEBT_STATUS_PARTIALLY_PAID
    return DEBT_STATUS_PENDING


def _get_debt_locked(debt_id: int) -> PompisteDebt:
    debt = lock_for_update(db.session.query(PompisteDebt).filter_by(id=debt_id)).first()
    if not debt:
        raise NotFoundError(f"Debt {debt_id} not found", {"debt_id": debt_id})
    return debt


# =============================================================================
# CREATION
# =============================================================================

def add_debt(
    pompiste_id: int,
    station_id: int,
    amount_cents: int,
    reason: str,
    *,
    description: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: int | None = None,
    cash_register_id: int | None = None,
    created_by_user_id: int | None = None,
) -> PompisteDebt:
    """
    Stage a new debt in the current transaction without committing.

    Used directly by cash reconciliation so the register and the shortfall
    debt commit together.
    """
    reason = (reason or "").upper()
    if reason not in VALID_DEBT_REASONS:
        raise InvalidError(f"Invalid debt reason: {reason}. Must be one of {VALID_DEBT_REASONS}")
    if amount_cents <= 0:
        raise InvalidError(f"Debt amount must be positive (got {format_cents(amount_cents)})")

    pompiste = db.session.get(User, pompiste_id)
    if not pompiste:
        raise NotFoundError(f"Pompiste {pompiste_id} not found", {"pompiste_id": pompiste_id})
    if pompiste.role != ROLE_POMPISTE:
        raise InvalidError(
            f"User {pompiste_id} is not a pompiste",
            {"pompiste_id": pompiste_id, "role": pompiste.role},
        )
    if not db.session.get(Station, station_id):
        raise NotFoundError(f"Station {station_id} not found", {"station_id": station_id})

    debt = PompisteDebt(
        pompiste_id=pompiste_id,
        station_id=station_id,
        reason=reason,
        description=(description or "").strip() or None,
        amount_cents=amount_cents,
        remaining_cents=amount_cents,
        status=DEBT_STATUS_PENDING,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        cash_register_id=cash_register_id,
        created_by_user_id=created_by_user_id,
        created_at=utcnow(),
    )
    db.session.add(debt)
    db.session.flush()
    return debt


def create_debt(
    pompiste_id: int,
    station_id: int,
    amount_cents,
    reason: str,
    created_by_user_id: int,
    description: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: int | None = None,
) -> PompisteDebt:
    """Record a debt entered by a manager (salary advance, damage...)."""
    amount = to_cents(amount_cents, "amount_cents")

    def _op():
        debt = add_debt(
            pompiste_id,
            station_id,
            amount,
            reason,
            description=description,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            created_by_user_id=created_by_user_id,
        )
        db.session.commit()
        current_app.logger.info(
            "Debt %s of %s created for pompiste %s (%s)",
            debt.id, format_cents(debt.amount_cents), debt.pompiste_id, debt.reason,
        )
        return debt

    return run_with_retry(_op)


# =============================================================================
# REPAYMENT AND CANCELLATION
# =============================================================================

def add_payment(
    debt_id: int,
    amount_cents,
    method: str,
    receiver_id: int,
    note: str | None = None,
    *,
    paid_at: datetime | None = None,
) -> DebtPayment:
    """
    Record a repayment and reduce the outstanding balance.

    Raises:
        NotFoundError: debt or receiver unknown
        ConflictError: debt already PAID or CANCELLED
        InvalidError: amount <= 0, amount above the remaining balance, unknown method
    """
    amount = to_cents(amount_cents, "amount_cents")
    method = (method or "").upper()
    if method not in VALID_REPAYMENT_METHODS:
        raise InvalidError(f"Invalid repayment method: {method}. Must be one of {VALID_REPAYMENT_METHODS}")
    if amount <= 0:
        raise InvalidError(f"Repayment amount must be positive (got {format_cents(amount)})")

    def _op():
        debt = _get_debt_locked(debt_id)
        if debt.status in SETTLED_DEBT_STATUSES:
            label = "already paid" if debt.status == DEBT_STATUS_PAID else "cancelled"
            raise ConflictError(
                f"Debt {debt.id} is {label}",
                {"debt_id": debt.id, "status": debt.status},
            )
        if amount > debt.remaining_cents:
            raise InvalidError(
                f"Repayment {format_cents(amount)} exceeds the remaining balance "
                f"{format_cents(debt.remaining_cents)}",
                {"debt_id": debt.id, "amount_cents": amount, "remaining_cents": debt.remaining_cents},
            )
        if not db.session.get(User, receiver_id):
            raise NotFoundError(f"User {receiver_id} not found", {"user_id": receiver_id})

        payment = DebtPayment(
            debt_id=debt.id,
            amount_cents=amount,
            method=method,
            note=(note or "").strip() or None,
            received_by_user_id=receiver_id,
            paid_at=paid_at or utcnow(),
        )
        db.session.add(payment)

        debt.remaining_cents = debt.remaining_cents - amount
        debt.status = derive_status(debt.amount_cents, debt.remaining_cents)

        db.session.commit()

        current_app.logger.info(
            "Debt %s repayment %s via %s, remaining %s (%s)",
            debt.id, format_cents(amount), method, format_cents(debt.remaining_cents), debt.status,
        )
        return payment

    return run_with_retry(_op)


def cancel_debt(debt_id: int, actor_id: int, reason: str) -> DebtCancellation:
    """
    Cancel an unsettled debt. Amounts are kept; the reason is appended to
    the description.
    """
    reason = (reason or "").strip()
    if not reason:
        raise InvalidError("A cancellation reason is required")

    def _op():
        debt = _get_debt_locked(debt_id)
        if debt.status == DEBT_STATUS_PAID:
            raise InvalidError(
                f"Debt {debt.id} is already paid and cannot be cancelled",
                {"debt_id": debt.id, "status": debt.status},
            )
        if debt.status == DEBT_STATUS_CANCELLED:
            raise ConflictError(
                f"Debt {debt.id} is already cancelled",
                {"debt_id": debt.id, "status": debt.status},
            )

        old_value = {"status": debt.status}
        marker = f"[CANCELLED] {reason}"
        debt.description = f"{debt.description}\n\n{marker}" if debt.description else marker
        debt.status = DEBT_STATUS_CANCELLED

        db.session.commit()

        current_app.logger.info("Debt %s cancelled by user %s: %s", debt.id, actor_id, reason)
        return DebtCancellation(
            debt=debt,
            old_value=old_value,
            new_value={"status": DEBT_STATUS_CANCELLED, "cancel_reason": reason},
        )

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_debt(debt_id: int) -> PompisteDebt:
    debt = db.session.get(PompisteDebt, debt_id)
    if not debt:
        raise NotFoundError(f"Debt {debt_id} not found", {"debt_id": debt_id})
    return debt


def list_debts(
    pompiste_id: int | None = None,
    station_id: int | None = None,
    status: str | None = None,
) -> list[PompisteDebt]:
    query = db.session.query(PompisteDebt)
    if pompiste_id:
        query = query.filter(PompisteDebt.pompiste_id == pompiste_id)
    if station_id:
        query = query.filter(PompisteDebt.station_id == station_id)
    if status:
        status = status.upper()
        if status not in VALID_DEBT_STATUSES:
            raise InvalidError(f"Unknown debt status {status}. Must be one of {VALID_DEBT_STATUSES}")
        query = query.filter(PompisteDebt.status == status)
    return query.order_by(PompisteDebt.created_at.desc(), PompisteDebt.id.desc()).all()


def get_total_outstanding(pompiste_id: int) -> tuple[int, int]:
    """Sum of remaining balances over the pompiste's unsettled debts."""
    total, count = db.session.query(
        func.coalesce(func.sum(PompisteDebt.remaining_cents), 0),
        func.count(PompisteDebt.id),
    ).filter(
        PompisteDebt.pompiste_id == pompiste_id,
        PompisteDebt.status.notin_(list(SETTLED_DEBT_STATUSES)),
    ).one()
    return int(total or 0), int(count)
