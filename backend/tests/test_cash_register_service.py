"""
Cash reconciliation tests.

Verifies:
- expected amounts come from the shift's sales; both sides of the method set are reconciled
- variance = actual - expected, per method and in total
- one register per shift; OPEN shifts cannot be reconciled
- a variance note is required past the threshold
- a shortfall opens a CASH_VARIANCE debt in the same transaction
"""

import pytest

from station.errors import ConflictError, InvalidError, NotFoundError
from station.models import CashRegister, PaymentDetail, PompisteDebt
from station.models.debts import DEBT_REASON_CASH_VARIANCE, DEBT_STATUS_PENDING
from station.services import aggregation_service, cash_register_service, sale_service, shift_service


@pytest.fixture(scope='function')
def ended_shift(db_session, nozzle, pompiste, price, gasoil, cash, card):
    """Shift with 625.00 of sales: Cash 400.00, Card 225.00."""
    shift = shift_service.start_shift(pompiste.id, nozzle.id, "1000.00")
    sale_service.record_sale(
        shift.id, gasoil.id, "20",
        [{"payment_method_id": cash.id, "amount_cents": 25000}],
    )
    sale_service.record_sale(
        shift.id, gasoil.id, "30",
        [
            {"payment_method_id": cash.id, "amount_cents": 15000},
            {"payment_method_id": card.id, "amount_cents": 22500},
        ],
    )
    return shift_service.end_shift(shift.id, pompiste.id, "1050.00")


def _declared(cash_cents, card_cents, cash, card):
    return [
        {"payment_method_id": cash.id, "actual_cents": cash_cents},
        {"payment_method_id": card.id, "actual_cents": card_cents},
    ]


class TestCloseCashRegister:
    def test_balanced_close(self, db_session, ended_shift, cash, card, manager):
        result = cash_register_service.close_cash_register(
            ended_shift.id, _declared(40000, 22500, cash, card), closed_by_user_id=manager.id
        )

        register = result.cash_register
        assert register.expected_total_cents == 62500
        assert register.actual_total_cents == 62500
        assert register.variance_cents == 0
        assert register.closed_by_user_id == manager.id
        assert not result.debt_created
        assert db_session.query(PompisteDebt).count() == 0

    def test_expected_total_matches_aggregated_revenue(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))

        summary = aggregation_service.summarize_shift(ended_shift.id)
        register = result.cash_register
        assert register.expected_total_cents == summary.total_revenue_cents
        assert register.variance_cents == register.actual_total_cents - register.expected_total_cents

    def test_shortfall_creates_debt(self, db_session, ended_shift, cash, card, pompiste):
        result = cash_register_service.close_cash_register(
            ended_shift.id,
            _declared(39500, 22500, cash, card),
            variance_note="Short on change",
            create_debt_on_negative_variance=True,
        )

        register = result.cash_register
        assert register.variance_cents == -500
        assert register.variance_note == "Short on change"
        details = {d.payment_method_id: d for d in register.details}
        assert details[cash.id].expected_cents == 40000
        assert details[cash.id].variance_cents == -500
        assert details[card.id].variance_cents == 0

        debt = result.debt
        assert result.debt_created
        assert debt.pompiste_id == pompiste.id
        assert debt.station_id == ended_shift.station_id
        assert debt.reason == DEBT_REASON_CASH_VARIANCE
        assert debt.amount_cents == 500
        assert debt.remaining_cents == 500
        assert debt.status == DEBT_STATUS_PENDING
        assert debt.cash_register_id == register.id
        assert debt.related_entity_type == "CashRegister"
        assert f"shift {ended_shift.id}" in debt.description

    def test_shortfall_without_debt_flag(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(
            ended_shift.id, _declared(39500, 22500, cash, card), create_debt_on_negative_variance=False
        )

        assert result.cash_register.variance_cents == -500
        assert result.debt is None
        assert db_session.query(PompisteDebt).count() == 0

    def test_surplus_never_creates_debt(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(ended_shift.id, _declared(41000, 22500, cash, card))

        assert result.cash_register.variance_cents == 1000
        assert not result.debt_created

    def test_undeclared_method_counts_as_zero(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(
            ended_shift.id,
            [{"payment_method_id": cash.id, "actual_cents": 40000}],
            variance_note="Card terminal batch lost",
        )

        details = {d.payment_method_id: d for d in result.cash_register.details}
        assert details[card.id].actual_cents == 0
        assert details[card.id].variance_cents == -22500
        assert result.cash_register.variance_cents == -22500

    def test_declared_method_without_sales_counts_as_surplus(self, db_session, ended_shift, cash, card, voucher):
        result = cash_register_service.close_cash_register(
            ended_shift.id,
            _declared(40000, 22500, cash, card) + [
                {"payment_method_id": voucher.id, "actual_cents": 1000, "reference": "V-9"}
            ],
        )

        details = {d.payment_method_id: d for d in result.cash_register.details}
        assert details[voucher.id].expected_cents == 0
        assert details[voucher.id].variance_cents == 1000
        assert details[voucher.id].reference == "V-9"
        assert len(details) == 3

    def test_large_variance_requires_note(self, db_session, ended_shift, cash, card):
        with pytest.raises(InvalidError) as exc:
            cash_register_service.close_cash_register(ended_shift.id, _declared(30000, 22500, cash, card))

        assert "variance note is required" in exc.value.message
        assert db_session.query(CashRegister).count() == 0
        assert db_session.query(PaymentDetail).count() == 0

    def test_small_variance_note_is_optional(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(ended_shift.id, _declared(39999, 22500, cash, card))
        assert result.cash_register.variance_note is None

    def test_open_shift_cannot_be_reconciled(self, db_session, nozzle, pompiste, cash):
        shift = shift_service.start_shift(pompiste.id, nozzle.id, "1000.00")

        with pytest.raises(InvalidError):
            cash_register_service.close_cash_register(shift.id, [{"payment_method_id": cash.id, "actual_cents": 0}])

    def test_validated_shift_can_be_reconciled(self, db_session, ended_shift, cash, card, manager):
        shift_service.validate_shift(ended_shift.id, manager.id)

        result = cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))
        assert result.cash_register.shift_id == ended_shift.id

    def test_second_close_conflicts(self, db_session, ended_shift, cash, card):
        cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))

        with pytest.raises(ConflictError):
            cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))

        assert db_session.query(CashRegister).count() == 1

    def test_concurrent_close_is_a_conflict(self, db_session, ended_shift, cash, card, monkeypatch):
        cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))
        # the other close committed after this one checked
        monkeypatch.setattr(cash_register_service, "_existing_register_id", lambda shift_id: None)

        with pytest.raises(ConflictError) as exc:
            cash_register_service.close_cash_register(
                ended_shift.id, _declared(39500, 22500, cash, card), variance_note="Short"
            )

        assert exc.value.details == {"constraint": "uq_cash_registers_shift"}
        assert db_session.query(CashRegister).count() == 1
        assert db_session.query(PompisteDebt).count() == 0

    def test_duplicate_method_in_declaration(self, db_session, ended_shift, cash):
        with pytest.raises(InvalidError):
            cash_register_service.close_cash_register(
                ended_shift.id,
                [
                    {"payment_method_id": cash.id, "actual_cents": 20000},
                    {"payment_method_id": cash.id, "actual_cents": 20000},
                ],
            )

    def test_negative_declared_amount(self, db_session, ended_shift, cash):
        with pytest.raises(InvalidError):
            cash_register_service.close_cash_register(
                ended_shift.id, [{"payment_method_id": cash.id, "actual_cents": -1}]
            )

    def test_unknown_declared_method(self, db_session, ended_shift):
        with pytest.raises(NotFoundError):
            cash_register_service.close_cash_register(
                ended_shift.id, [{"payment_method_id": 999, "actual_cents": 100}]
            )

    def test_unknown_shift(self, db_session):
        with pytest.raises(NotFoundError):
            cash_register_service.close_cash_register(999, [])


class TestCashRegisterQueries:
    def test_lookup_by_id_and_shift(self, db_session, ended_shift, cash, card):
        result = cash_register_service.close_cash_register(ended_shift.id, _declared(40000, 22500, cash, card))

        assert cash_register_service.get_cash_register(result.cash_register.id).shift_id == ended_shift.id
        assert cash_register_service.get_by_shift(ended_shift.id).id == result.cash_register.id

    def test_missing_register(self, db_session, ended_shift):
        with pytest.raises(NotFoundError):
            cash_register_service.get_by_shift(ended_shift.id)
        with pytest.raises(NotFoundError):
            cash_register_service.get_cash_register(12)

    def test_list_with_variance_filters_by_magnitude(self, db_session, ended_shift, cash, card, station):
        cash_register_service.close_cash_register(ended_shift.id, _declared(39500, 22500, cash, card))

        assert len(cash_register_service.list_with_variance(station.id)) == 1
        assert len(cash_register_service.list_with_variance(station.id, 500)) == 1
        assert cash_register_service.list_with_variance(station.id, 501) == []
        assert cash_register_service.list_with_variance(station.id + 1) == []
