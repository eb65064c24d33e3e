"""
Fuel sale recording.

WHY: Sales are the revenue side of a shift. They can only be written while
the shift is OPEN, which is what prevents revenue from being edited after
the pompiste has handed over the till.

DESIGN PRINCIPLES:
- Unit price is snapshotted from the active station price at sale time
- Split payments: one sale, several payment methods
- The split must add up to the sale total (one cent of rounding tolerated)
- Sale and payments are written in one transaction and never modified
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import ConflictError, InvalidError, NotFoundError
from ..extensions import db
from ..models import Client, FuelType, PaymentMethod, Sale, SalePayment, Shift
from ..models.shifts import SHIFT_STATUS_OPEN
from ..validation import LITER_PRECISION, format_cents, multiply_to_cents, to_cents, to_decimal
from station.time_utils import utcnow
from . import pricing_service
from .concurrency import lock_for_update, run_with_retry


@dataclass(frozen=True)
class PaymentLine:
    payment_method_id: int
    amount_cents: int
    reference: str | None = None


def _parse_payments(payments) -> list[PaymentLine]:
    if not payments or not isinstance(payments, (list, tuple)):
        raise InvalidError("A sale needs at least one payment")

    lines = []
    for position, entry in enumerate(payments, start=1):
        if isinstance(entry, PaymentLine):
            line = entry
        elif not isinstance(entry, dict):
            raise InvalidError(f"Payment #{position} must be an object")
        else:
            method_id = entry.get("payment_method_id")
            if isinstance(method_id, bool) or not isinstance(method_id, int):
                raise InvalidError(f"Payment #{position}: payment_method_id must be an integer id")
            reference = entry.get("reference")
            line = PaymentLine(
                payment_method_id=method_id,
                amount_cents=to_cents(entry.get("amount_cents"), f"payments[{position}].amount_cents"),
                reference=reference.strip() if isinstance(reference, str) and reference.strip() else None,
            )
        if line.amount_cents <= 0:
            raise InvalidError(
                f"Payment #{position}: amount must be positive (got {format_cents(line.amount_cents)})"
            )
        lines.append(line)
    return lines


def _check_payment_method(line: PaymentLine) -> PaymentMethod:
    method = db.session.get(PaymentMethod, line.payment_method_id)
    if not method:
        raise NotFoundError(
            f"Payment method {line.payment_method_id} not found",
            {"payment_method_id": line.payment_method_id},
        )
    if not method.is_active:
        raise InvalidError(
            f"Payment method '{method.name}' is inactive",
            {"payment_method_id": method.id},
        )
    if method.requires_reference and not line.reference:
        raise InvalidError(
            f"Payment method '{method.name}' requires a reference",
            {"payment_method_id": method.id},
        )
    return method


def check_payment_total(total_cents: int, lines: list[PaymentLine], tolerance_cents: int) -> None:
    """Raise InvalidError when the split does not add up to the sale total."""
    paid = sum(line.amount_cents for line in lines)
    difference = paid - total_cents
    if abs(difference) > tolerance_cents:
        gap = "shortfall" if difference < 0 else "excess"
        raise InvalidError(
            f"payment sum {format_cents(paid)} does not match sale total {format_cents(total_cents)} "
            f"({gap} of {format_cents(abs(difference))})",
            {"expected_cents": total_cents, "paid_cents": paid, "difference_cents": difference},
        )


def record_sale(
    shift_id: int,
    fuel_type_id: int,
    quantity,
    payments,
    client_id: int | None = None,
) -> Sale:
    """
    Record one fuel sale with its payment split.

    Args:
        shift_id: OPEN shift the sale belongs to
        fuel_type_id: fuel dispensed
        quantity: liters (> 0, up to three decimals)
        payments: list of {"payment_method_id", "amount_cents", "reference"?}
        client_id: optional account customer

    Raises:
        ConflictError: shift is not OPEN
        NotFoundError: unknown shift, fuel type, client or payment method
        InvalidError: no active price, missing reference, split mismatch
    """
    liters = to_decimal(quantity, "quantity")
    if liters != liters.quantize(LITER_PRECISION):
        raise InvalidError(f"quantity has more than three decimals (got {liters})")
    if liters <= 0:
        raise InvalidError(f"quantity must be positive (got {liters})")
    liters = liters.quantize(LITER_PRECISION)
    lines = _parse_payments(payments)

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})
        if shift.status != SHIFT_STATUS_OPEN:
            raise ConflictError(
                f"Cannot record a sale on shift {shift.id} with status {shift.status}; the shift must be OPEN",
                {"shift_id": shift.id, "status": shift.status},
            )

        fuel_type = db.session.get(FuelType, fuel_type_id)
        if not fuel_type:
            raise NotFoundError(f"Fuel type {fuel_type_id} not found", {"fuel_type_id": fuel_type_id})

        if client_id is not None and not db.session.get(Client, client_id):
            raise NotFoundError(f"Client {client_id} not found", {"client_id": client_id})

        sold_at = utcnow()
        price = pricing_service.get_active_price(shift.station_id, fuel_type.id, sold_at)
        if not price:
            raise InvalidError(
                f"No active price for {fuel_type.name} at station {shift.station_id}",
                {"station_id": shift.station_id, "fuel_type_id": fuel_type.id},
            )

        for line in lines:
            _check_payment_method(line)

        total_cents = multiply_to_cents(liters, price.selling_price_cents)
        check_payment_total(
            total_cents, lines, int(current_app.config.get("PAYMENT_SUM_TOLERANCE_CENTS", 1))
        )

        sale = Sale(
            shift_id=shift.id,
            fuel_type_id=fuel_type.id,
            client_id=client_id,
            quantity=liters,
            unit_price_cents=price.selling_price_cents,
            total_cents=total_cents,
            sold_at=sold_at,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SalePayment(
                sale_id=sale.id,
                payment_method_id=line.payment_method_id,
                amount_cents=line.amount_cents,
                reference=line.reference,
            ))

        db.session.commit()

        current_app.logger.info(
            "Sale %s recorded on shift %s: %s L x %s = %s",
            sale.id, shift.id, liters, format_cents(sale.unit_price_cents), format_cents(total_cents),
        )
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})
    return sale


def list_shift_sales(shift_id: int) -> list[Sale]:
    """All sales of a shift in the order they were made."""
    if not db.session.get(Shift, shift_id):
        raise NotFoundError(f"Shift {shift_id} not found", {"shift_id": shift_id})
    return db.session.query(Sale).filter_by(shift_id=shift_id).order_by(Sale.sold_at, Sale.id).all()
