"""
Shift aggregation tests: volume, revenue and per-method totals derived from sales.
"""

from decimal import Decimal

import pytest

from station.errors import NotFoundError
from station.services import aggregation_service, sale_service, shift_service


def test_empty_shift_has_zero_totals(db_session, nozzle, pompiste):
    shift = shift_service.start_shift(pompiste.id, nozzle.id, "1000.00")

    summary = aggregation_service.summarize_shift(shift.id)

    assert summary.sale_count == 0
    assert summary.total_quantity == Decimal("0")
    assert summary.total_revenue_cents == 0
    assert summary.by_payment_method == []
    assert summary.expected_by_method() == {}


def test_totals_per_fuel_type_and_payment_method(db_session, nozzle, pompiste, price, gasoil, cash, card):
    shift = shift_service.start_shift(pompiste.id, nozzle.id, "1000.00")
    sale_service.record_sale(shift.id, gasoil.id, "20", [{"payment_method_id": cash.id, "amount_cents": 25000}])
    sale_service.record_sale(
        shift.id,
        gasoil.id,
        "30",
        [
            {"payment_method_id": cash.id, "amount_cents": 15000},
            {"payment_method_id": card.id, "amount_cents": 22500},
        ],
    )

    summary = aggregation_service.summarize_shift(shift.id)

    assert summary.sale_count == 2
    assert summary.total_quantity == Decimal("50")
    assert summary.total_revenue_cents == 62500
    assert summary.expected_by_method() == {cash.id: 40000, card.id: 22500}
    assert summary.total_collected_cents == summary.total_revenue_cents

    [fuel_totals] = summary.by_fuel_type
    assert fuel_totals.fuel_type_id == gasoil.id
    assert fuel_totals.sale_count == 2

    data = summary.to_dict()
    assert data["total_quantity"] == "50.000"
    assert [m["payment_method_id"] for m in data["by_payment_method"]] == sorted([cash.id, card.id])


def test_unknown_shift(db_session):
    with pytest.raises(NotFoundError):
        aggregation_service.summarize_shift(404)
