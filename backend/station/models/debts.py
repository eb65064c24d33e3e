from __future__ import annotations

from ..extensions import db
from station.time_utils import to_utc_z


DEBT_STATUS_PENDING = "PENDING"
DEBT_STATUS_PARTIALLY_PAID = "PARTIALLY_PAID"
DEBT_STATUS_PAID = "PAID"
DEBT_STATUS_CANCELLED = "CANCELLED"

SETTLED_DEBT_STATUSES = {DEBT_STATUS_PAID, DEBT_STATUS_CANCELLED}

DEBT_REASON_CASH_VARIANCE = "CASH_VARIANCE"
DEBT_REASON_SALARY_ADVANCE = "SALARY_ADVANCE"
DEBT_REASON_DAMAGE = "DAMAGE"
DEBT_REASON_FUEL_LOSS = "FUEL_LOSS"
DEBT_REASON_OTHER = "OTHER"

VALID_DEBT_REASONS = [
    DEBT_REASON_CASH_VARIANCE,
    DEBT_REASON_SALARY_ADVANCE,
    DEBT_REASON_DAMAGE,
    DEBT_REASON_FUEL_LOSS,
    DEBT_REASON_OTHER,
]

REPAYMENT_CASH = "CASH"
REPAYMENT_SALARY_DEDUCTION = "SALARY_DEDUCTION"
REPAYMENT_BANK_TRANSFER = "BANK_TRANSFER"
REPAYMENT_OTHER = "OTHER"

VALID_REPAYMENT_METHODS = [
    REPAYMENT_CASH,
    REPAYMENT_SALARY_DEDUCTION,
    REPAYMENT_BANK_TRANSFER,
    REPAYMENT_OTHER,
]


class PompisteDebt(db.Model):
    """
    Standing balance owed by a pompiste.

    INVARIANT: 0 <= remaining_cents <= amount_cents.
    status is derived from remaining_cents (PAID iff zero) except for the
    explicit transition to CANCELLED; it is never taken from client input.
    """
    __tablename__ = "pompiste_debts"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_debts_amount_positive"),
        db.CheckConstraint(
            "remaining_cents >= 0 AND remaining_cents <= amount_cents",
            name="ck_debts_remaining_bounds",
        ),
        db.Index("ix_debts_pompiste_status", "pompiste_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pompiste_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)

    reason = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    remaining_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=DEBT_STATUS_PENDING, index=True)

    # Originating record (CashRegister for cash shortfalls)
    related_entity_type = db.Column(db.String(32), nullable=True)
    related_entity_id = db.Column(db.Integer, nullable=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    pompiste = db.relationship("User", foreign_keys=[pompiste_id], backref=db.backref("debts", lazy=True))
    station = db.relationship("Station")
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    cash_register = db.relationship("CashRegister", backref=db.backref("debts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "pompiste_id": self.pompiste_id,
            "station_id": self.station_id,
            "reason": self.reason,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "remaining_cents": self.remaining_cents,
            "status": self.status,
            "related_entity_type": self.related_entity_type,
            "related_entity_id": self.related_entity_id,
            "cash_register_id": self.cash_register_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class DebtPayment(db.Model):
    """Immutable repayment against a debt."""
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_debt_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("pompiste_debts.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    note = db.Column(db.String(500), nullable=True)

    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt = db.relationship(
        "PompisteDebt",
        backref=db.backref("payments", lazy=True, order_by="DebtPayment.paid_at.desc()"),
    )
    received_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "note": self.note,
            "received_by_user_id": self.received_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
        }
