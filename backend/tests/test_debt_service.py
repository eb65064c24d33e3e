"""
Debt ledger tests.

Verifies:
- remaining balance only decreases, status follows it (PAID iff zero)
- overpayment is rejected, settled debts accept no payment
- cancellation keeps the amounts and exposes the audit pair
"""

from datetime import datetime

import pytest

from station.errors import ConflictError, InvalidError, NotFoundError
from station.models import DebtPayment
from station.models.debts import (
    DEBT_STATUS_CANCELLED,
    DEBT_STATUS_PAID,
    DEBT_STATUS_PARTIALLY_PAID,
    DEBT_STATUS_PENDING,
)
from station.services import debt_service


@pytest.fixture(scope='function')
def debt(db_session, pompiste, station, manager):
    return debt_service.create_debt(
        pompiste_id=pompiste.id,
        station_id=station.id,
        amount_cents=10000,
        reason="SALARY_ADVANCE",
        created_by_user_id=manager.id,
        description="Advance on March salary",
    )


class TestCreateDebt:
    def test_creates_pending_debt(self, db_session, debt, pompiste, manager):
        assert debt.status == DEBT_STATUS_PENDING
        assert debt.amount_cents == 10000
        assert debt.remaining_cents == 10000
        assert debt.pompiste_id == pompiste.id
        assert debt.created_by_user_id == manager.id
        assert debt.created_at is not None

    def test_reason_must_be_known(self, db_session, pompiste, station, manager):
        with pytest.raises(InvalidError):
            debt_service.create_debt(pompiste.id, station.id, 100, "GAMBLING", manager.id)

    def test_amount_must_be_positive(self, db_session, pompiste, station, manager):
        with pytest.raises(InvalidError):
            debt_service.create_debt(pompiste.id, station.id, 0, "OTHER", manager.id)

    def test_only_pompistes_carry_debts(self, db_session, station, manager):
        with pytest.raises(InvalidError):
            debt_service.create_debt(manager.id, station.id, 100, "OTHER", manager.id)

    def test_unknown_pompiste_or_station(self, db_session, pompiste, station, manager):
        with pytest.raises(NotFoundError):
            debt_service.create_debt(999, station.id, 100, "OTHER", manager.id)
        with pytest.raises(NotFoundError):
            debt_service.create_debt(pompiste.id, 999, 100, "OTHER", manager.id)


class TestAddPayment:
    def test_partial_then_full_repayment(self, db_session, debt, manager):
        debt_service.add_payment(debt.id, 4000, "CASH", manager.id)
        debt = debt_service.get_debt(debt.id)
        assert debt.remaining_cents == 6000
        assert debt.status == DEBT_STATUS_PARTIALLY_PAID

        debt_service.add_payment(debt.id, 6000, "salary_deduction", manager.id, "March payroll")
        debt = debt_service.get_debt(debt.id)
        assert debt.remaining_cents == 0
        assert debt.status == DEBT_STATUS_PAID
        assert sorted(p.amount_cents for p in debt.payments) == [4000, 6000]

    def test_overpayment_is_rejected_not_clamped(self, db_session, debt, manager):
        with pytest.raises(InvalidError) as exc:
            debt_service.add_payment(debt.id, 10001, "CASH", manager.id)

        assert "exceeds the remaining balance 100.00" in exc.value.message
        assert debt_service.get_debt(debt.id).remaining_cents == 10000
        assert db_session.query(DebtPayment).count() == 0

    def test_paid_debt_accepts_no_payment(self, db_session, debt, manager):
        debt_service.add_payment(debt.id, 10000, "CASH", manager.id)

        with pytest.raises(ConflictError):
            debt_service.add_payment(debt.id, 1, "CASH", manager.id)

    def test_cancelled_debt_accepts_no_payment(self, db_session, debt, manager):
        debt_service.cancel_debt(debt.id, manager.id, "Written off")

        with pytest.raises(ConflictError):
            debt_service.add_payment(debt.id, 100, "CASH", manager.id)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, db_session, debt, manager, amount):
        with pytest.raises(InvalidError):
            debt_service.add_payment(debt.id, amount, "CASH", manager.id)

    def test_unknown_method(self, db_session, debt, manager):
        with pytest.raises(InvalidError):
            debt_service.add_payment(debt.id, 100, "BITCOIN", manager.id)

    def test_explicit_paid_at(self, db_session, debt, manager):
        paid_at = datetime(2026, 3, 1, 10, 0, 0)
        payment = debt_service.add_payment(debt.id, 100, "BANK_TRANSFER", manager.id, paid_at=paid_at)
        assert payment.paid_at.replace(tzinfo=None) == paid_at

    def test_unknown_debt(self, db_session, manager):
        with pytest.raises(NotFoundError):
            debt_service.add_payment(404, 100, "CASH", manager.id)

    def test_remaining_never_increases(self, db_session, debt, manager):
        remaining = [debt.remaining_cents]
        for amount in (1000, 2500, 1, 6499):
            debt_service.add_payment(debt.id, amount, "CASH", manager.id)
            remaining.append(debt_service.get_debt(debt.id).remaining_cents)

        assert remaining == sorted(remaining, reverse=True)
        assert remaining[-1] == 0


class TestCancelDebt:
    def test_cancel_keeps_amounts_and_returns_audit_pair(self, db_session, debt, manager):
        debt_service.add_payment(debt.id, 2500, "CASH", manager.id)

        cancellation = debt_service.cancel_debt(debt.id, manager.id, "Left the company")

        cancelled = cancellation.debt
        assert cancelled.status == DEBT_STATUS_CANCELLED
        assert cancelled.amount_cents == 10000
        assert cancelled.remaining_cents == 7500
        assert cancelled.description == "Advance on March salary\n\n[CANCELLED] Left the company"
        assert cancellation.audit == {
            "old": {"status": DEBT_STATUS_PARTIALLY_PAID},
            "new": {"status": DEBT_STATUS_CANCELLED, "cancel_reason": "Left the company"},
        }

    def test_paid_debt_cannot_be_cancelled(self, db_session, debt, manager):
        debt_service.add_payment(debt.id, 10000, "CASH", manager.id)

        with pytest.raises(InvalidError):
            debt_service.cancel_debt(debt.id, manager.id, "Too late")

    def test_second_cancel_conflicts(self, db_session, debt, manager):
        debt_service.cancel_debt(debt.id, manager.id, "Duplicate entry")

        with pytest.raises(ConflictError):
            debt_service.cancel_debt(debt.id, manager.id, "Again")

    def test_reason_is_required(self, db_session, debt, manager):
        with pytest.raises(InvalidError):
            debt_service.cancel_debt(debt.id, manager.id, "   ")


class TestDebtQueries:
    def test_outstanding_ignores_settled_debts(self, db_session, debt, pompiste, station, manager):
        second = debt_service.create_debt(pompiste.id, station.id, 3000, "DAMAGE", manager.id)
        third = debt_service.create_debt(pompiste.id, station.id, 2000, "FUEL_LOSS", manager.id)
        debt_service.add_payment(debt.id, 1000, "CASH", manager.id)
        debt_service.add_payment(second.id, 3000, "CASH", manager.id)
        debt_service.cancel_debt(third.id, manager.id, "Meter fault, not the pompiste")

        assert debt_service.get_total_outstanding(pompiste.id) == (9000, 1)

    def test_outstanding_without_debts(self, db_session, pompiste):
        assert debt_service.get_total_outstanding(pompiste.id) == (0, 0)

    def test_list_filters(self, db_session, debt, pompiste, other_pompiste, station, manager):
        other = debt_service.create_debt(other_pompiste.id, station.id, 500, "OTHER", manager.id)

        assert {d.id for d in debt_service.list_debts(station_id=station.id)} == {debt.id, other.id}
        assert [d.id for d in debt_service.list_debts(pompiste_id=other_pompiste.id)] == [other.id]
        assert [d.id for d in debt_service.list_debts(status="pending", pompiste_id=pompiste.id)] == [debt.id]

    def test_list_rejects_unknown_status(self, db_session):
        with pytest.raises(InvalidError):
            debt_service.list_debts(status="FORGIVEN")
