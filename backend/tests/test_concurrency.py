"""
Transaction helper tests.

Verifies:
- a violation of a listed unique constraint is reported as a conflict naming it
- any other integrity error propagates unchanged and leaves nothing behind
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from station.errors import ConflictError
from station.extensions import db
from station.models import PompisteDebt, Shift
from station.models.shifts import SHIFT_STATUS_OPEN
from station.services.concurrency import run_with_retry
from station.time_utils import utcnow


def _two_open_shifts(nozzle, pompiste, other_pompiste):
    def _op():
        for user in (pompiste, other_pompiste):
            db.session.add(Shift(nozzle_id=nozzle.id, pompiste_id=user.id,
                                 index_start=Decimal("1000.00"), status=SHIFT_STATUS_OPEN, started_at=utcnow()))
        db.session.commit()
    return _op


class TestRunWithRetry:
    def test_listed_unique_violation_is_a_conflict(self, db_session, nozzle, pompiste, other_pompiste):
        with pytest.raises(ConflictError) as exc:
            run_with_retry(
                _two_open_shifts(nozzle, pompiste, other_pompiste),
                conflict_message="Nozzle busy",
                conflict_on=("uq_shifts_open_nozzle",),
            )

        assert exc.value.message == "Nozzle busy"
        assert exc.value.details == {"constraint": "uq_shifts_open_nozzle"}
        assert db_session.query(Shift).count() == 0

    def test_unlisted_unique_violation_propagates(self, db_session, nozzle, pompiste, other_pompiste):
        with pytest.raises(IntegrityError):
            run_with_retry(
                _two_open_shifts(nozzle, pompiste, other_pompiste),
                conflict_on=("uq_cash_registers_shift",),
            )

        assert db_session.query(Shift).count() == 0

    def test_check_constraint_violation_propagates(self, db_session, pompiste, station):
        def _op():
            db.session.add(PompisteDebt(
                pompiste_id=pompiste.id, station_id=station.id, reason="OTHER",
                amount_cents=0, remaining_cents=0, created_at=utcnow(),
            ))
            db.session.commit()

        with pytest.raises(IntegrityError):
            run_with_retry(_op, conflict_on=("uq_shifts_open_nozzle", "uq_shifts_open_pompiste"))

        assert db_session.query(PompisteDebt).count() == 0
