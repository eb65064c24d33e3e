"""
Shift aggregation (read side).

Derives volume, revenue and per-payment-method totals for a shift purely
from its recorded sales. Nothing is cached: sales are immutable and only
appended while the shift is OPEN, so a recomputation is always current.
The per-method totals are the "expected" side of cash reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import NotFoundError
from ..extensions import db
from ..models import Sale, SalePayment, Shift


@dataclass
class FuelTypeTotals:
    fuel_type_id: int
    quantity: Decimal = Decimal("0")
    amount_cents: int = 0
    sale_count: int = 0

    def to_dict(self) -> dict:
        return {
            "fuel_type_id": self.fuel_type_id,
            "quantity": str(self.quantity),
            "amount_cents": self.amount_cents,
            "sale_count": self.sale_count,
        }


@dataclass
class PaymentMethodTotals:
    payment_method_id: int
    amount_cents: int = 0
    payment_count: int = 0

    def to_dict(self) -> dict:
        return {
            "payment_method_id": self.payment_method_id,
            "amount_cents": self.amount_cents,
            "payment_count": self.payment_count,
        }


@dataclass
class ShiftSummary:
    shift_id: int
    sale_count: int = 0
    total_quantity: Decimal = Decimal("0")
    total_revenue_cents: int = 0
    by_fuel_type: list[FuelTypeTotals] = field(default_factory=list)
    by_payment_method: list[PaymentMethodTotals] = field(default_factory=list)

    def expected_by_method(self) -> dict[int, int]:
        return {m.payment_method_id: m.amount_cents for m in self.by_payment_method}

    @property
    def total_collected_cents(self) -> int:
        return sum(m.amount_cents for m in self.by_payment_method)

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "sale_count": self.sale_count,
            "total_quantity": str(self.total_quantity),
            "total_revenue_cents": self.total_revenue_cents,
            "total_collected_cents": self.total_collected_cents,
            "by_fuel_type": [f.to_dict() for f in self.by_fuel_type],
            "by_payment_method": [m.to_dict() for m in self.by_payment_method],
        }


def summarize_shift(shift_id: int) -> ShiftSummary:
    if not db.session.query(Shift.id).filter_by(id=shift_id).first():
        raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})

    sales = db.session.query(Sale).filter_by(shift_id=shift_id).order_by(Sale.sold_at, Sale.id).all()
    payments = db.session.query(SalePayment).join(Sale).filter(
        Sale.shift_id == shift_id
    ).order_by(SalePayment.id).all()

    summary = ShiftSummary(shift_id=shift_id)
    fuel_totals: dict[int, FuelTypeTotals] = {}
    for sale in sales:
        quantity = Decimal(sale.quantity)
        summary.sale_count += 1
        summary.total_quantity += quantity
        summary.total_revenue_cents += sale.total_cents

        totals = fuel_totals.setdefault(sale.fuel_type_id, FuelTypeTotals(sale.fuel_type_id))
        totals.quantity += quantity
        totals.amount_cents += sale.total_cents
        totals.sale_count += 1

    method_totals: dict[int, PaymentMethodTotals] = {}
    for payment in payments:
        totals = method_totals.setdefault(
            payment.payment_method_id, PaymentMethodTotals(payment.payment_method_id)
        )
        totals.amount_cents += payment.amount_cents
        totals.payment_count += 1

    summary.by_fuel_type = [fuel_totals[k] for k in sorted(fuel_totals)]
    summary.by_payment_method = [method_totals[k] for k in sorted(method_totals)]
    return summary
