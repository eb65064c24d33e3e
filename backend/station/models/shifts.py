from __future__ import annotations

from sqlalchemy import event, inspect

from ..errors import ConflictError
from ..extensions import db
from station.time_utils import to_utc_z


SHIFT_STATUS_OPEN = "OPEN"
SHIFT_STATUS_CLOSED = "CLOSED"
SHIFT_STATUS_VALIDATED = "VALIDATED"

SHIFT_STATUSES = [SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED, SHIFT_STATUS_VALIDATED]

_OPEN_ONLY = db.text("status = 'OPEN'")


class Shift(db.Model):
    """
    One pompiste's working session on one nozzle.

    LIFECYCLE:
    - OPEN: pompiste is dispensing, sales may be recorded
    - CLOSED: meter end reading captured, nozzle index advanced
    - VALIDATED: manager sign-off, terminal and immutable

    The partial unique indexes are the database-side guarantee that a nozzle
    and a pompiste each have at most one OPEN shift, whatever the isolation
    level of the concurrent transactions racing to create one.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_open_nozzle", "nozzle_id", unique=True,
            sqlite_where=_OPEN_ONLY, postgresql_where=_OPEN_ONLY,
        ),
        db.Index(
            "uq_shifts_open_pompiste", "pompiste_id", unique=True,
            sqlite_where=_OPEN_ONLY, postgresql_where=_OPEN_ONLY,
        ),
        db.CheckConstraint(
            "index_end IS NULL OR index_end >= index_start",
            name="ck_shifts_index_order",
        ),
        db.Index("ix_shifts_nozzle_started", "nozzle_id", "started_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    nozzle_id = db.Column(db.Integer, db.ForeignKey("nozzles.id"), nullable=False, index=True)
    pompiste_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    index_start = db.Column(db.Numeric(14, 2), nullable=False)
    index_end = db.Column(db.Numeric(14, 2), nullable=True)  # Set when closing

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    incident_note = db.Column(db.Text, nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Manager sign-off
    validated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    nozzle = db.relationship("Nozzle", backref=db.backref("shifts", lazy=True))
    pompiste = db.relationship("User", foreign_keys=[pompiste_id], backref=db.backref("shifts", lazy=True))
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    validated_by = db.relationship("User", foreign_keys=[validated_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def station_id(self) -> int:
        return self.nozzle.station_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nozzle_id": self.nozzle_id,
            "pompiste_id": self.pompiste_id,
            "index_start": str(self.index_start),
            "index_end": str(self.index_end) if self.index_end is not None else None,
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "ended_at": to_utc_z(self.ended_at) if self.ended_at else None,
            "incident_note": self.incident_note,
            "closed_by_user_id": self.closed_by_user_id,
            "validated_by_user_id": self.validated_by_user_id,
            "validated_at": to_utc_z(self.validated_at) if self.validated_at else None,
            "version_id": self.version_id,
        }


@event.listens_for(Shift, "before_update")
def _reject_validated_shift_changes(mapper, connection, target):
    """A VALIDATED shift is frozen: refuse any flush that would rewrite it."""
    history = inspect(target).attrs.status.history
    persisted_status = history.deleted[0] if history.deleted else target.status
    if persisted_status == SHIFT_STATUS_VALIDATED:
        raise ConflictError(
            f"Shift {target.id} is validated and can no longer be modified",
            {"shift_id": target.id, "status": SHIFT_STATUS_VALIDATED},
        )
