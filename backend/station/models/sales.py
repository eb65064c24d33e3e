from __future__ import annotations

from ..extensions import db
from station.time_utils import to_utc_z


class Sale(db.Model):
    """
    One fuel dispensing transaction inside an OPEN shift.

    IMMUTABLE: unit price is a snapshot of the active price at sale time and
    total_cents = quantity x unit price. Sales are never updated or deleted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        db.Index("ix_sales_shift_sold_at", "shift_id", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    fuel_type_id = db.Column(db.Integer, db.ForeignKey("fuel_types.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)  # liters
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False)

    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True, order_by="Sale.sold_at"))
    fuel_type = db.relationship("FuelType")
    client = db.relationship("Client")

    def to_dict(self, include_payments: bool = True) -> dict:
        data = {
            "id": self.id,
            "shift_id": self.shift_id,
            "fuel_type_id": self.fuel_type_id,
            "client_id": self.client_id,
            "quantity": str(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "sold_at": to_utc_z(self.sold_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SalePayment(db.Model):
    """One payment-method allocation of a sale total (split payments allowed)."""
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_sale_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="SalePayment.id"))
    payment_method = db.relationship("PaymentMethod")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method_id": self.payment_method_id,
            "amount_cents": self.amount_cents,
            "reference": self.reference,
        }
