from __future__ import annotations

from ..extensions import db
from station.time_utils import to_utc_z


class CashRegister(db.Model):
    """
    Financial closing of a shift: what the till should hold versus what was
    counted. Exactly one per shift (unique shift_id), immutable once written.

    variance_cents = actual_total_cents - expected_total_cents (negative = shortfall)
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.UniqueConstraint("shift_id", name="uq_cash_registers_shift"),
        db.Index("ix_cash_registers_closed_at", "closed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False)

    expected_total_cents = db.Column(db.Integer, nullable=False)
    actual_total_cents = db.Column(db.Integer, nullable=False)
    variance_cents = db.Column(db.Integer, nullable=False, index=True)
    variance_note = db.Column(db.Text, nullable=True)

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    shift = db.relationship("Shift", backref=db.backref("cash_register", uselist=False, lazy=True))
    closed_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "expected_total_cents": self.expected_total_cents,
            "actual_total_cents": self.actual_total_cents,
            "variance_cents": self.variance_cents,
            "variance_note": self.variance_note,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_at": to_utc_z(self.closed_at),
            "details": [d.to_dict() for d in self.details],
        }


class PaymentDetail(db.Model):
    """Per-payment-method line of a cash register."""
    __tablename__ = "payment_details"
    __table_args__ = (
        db.UniqueConstraint("cash_register_id", "payment_method_id", name="uq_payment_details_register_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False)

    expected_cents = db.Column(db.Integer, nullable=False)
    actual_cents = db.Column(db.Integer, nullable=False)
    variance_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    cash_register = db.relationship(
        "CashRegister",
        backref=db.backref("details", lazy=True, order_by="PaymentDetail.payment_method_id"),
    )
    payment_method = db.relationship("PaymentMethod")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_method_id": self.payment_method_id,
            "expected_cents": self.expected_cents,
            "actual_cents": self.actual_cents,
            "variance_cents": self.variance_cents,
            "reference": self.reference,
        }
