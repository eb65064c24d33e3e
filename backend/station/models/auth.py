from __future__ import annotations

from ..extensions import db
from station.time_utils import to_utc_z


ROLE_POMPISTE = "POMPISTE"
ROLE_MANAGER = "MANAGER"
ROLE_ADMIN = "ADMIN"

VALID_ROLES = [ROLE_POMPISTE, ROLE_MANAGER, ROLE_ADMIN]
MANAGER_ROLES = {ROLE_MANAGER, ROLE_ADMIN}


def is_manager_role(role: str | None) -> bool:
    return (role or "").upper() in MANAGER_ROLES


class User(db.Model):
    """
    Station staff. Authentication lives upstream; the core only needs the
    identity for attribution, the role for manager-only transitions, and a
    lockable row so one pompiste cannot open two shifts at once.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=True, index=True)

    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    badge_code = db.Column(db.String(32), nullable=True, unique=True)

    role = db.Column(db.String(16), nullable=False, default=ROLE_POMPISTE, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    station = db.relationship("Station", backref=db.backref("users", lazy=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "badge_code": self.badge_code,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
