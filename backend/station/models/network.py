from __future__ import annotations

from ..extensions import db
from station.time_utils import to_utc_z


class Station(db.Model):
    """A fuel station. Every nozzle, price and debt is scoped to one station."""
    __tablename__ = "stations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class FuelType(db.Model):
    __tablename__ = "fuel_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)  # GASOIL, SP95...
    name = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name, "is_active": self.is_active}


class Tank(db.Model):
    """Underground tank feeding one or more nozzles of the same fuel type."""
    __tablename__ = "tanks"
    __table_args__ = (
        db.UniqueConstraint("station_id", "code", name="uq_tanks_station_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    fuel_type_id = db.Column(db.Integer, db.ForeignKey("fuel_types.id"), nullable=False)
    code = db.Column(db.String(32), nullable=False)
    capacity_liters = db.Column(db.Numeric(12, 3), nullable=False)

    station = db.relationship("Station", backref=db.backref("tanks", lazy=True))
    fuel_type = db.relationship("FuelType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "fuel_type_id": self.fuel_type_id,
            "code": self.code,
            "capacity_liters": str(self.capacity_liters),
        }


class Nozzle(db.Model):
    """
    Physical dispensing point with a cumulative meter.

    current_index is the authoritative last-known reading. It never decreases
    and is only written by the shift close, in the same transaction that
    closes the shift. version_id guards it against concurrent closes.
    """
    __tablename__ = "nozzles"
    __table_args__ = (
        db.UniqueConstraint("station_id", "code", name="uq_nozzles_station_code"),
        db.CheckConstraint("current_index >= 0", name="ck_nozzles_index_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    fuel_type_id = db.Column(db.Integer, db.ForeignKey("fuel_types.id"), nullable=False)
    tank_id = db.Column(db.Integer, db.ForeignKey("tanks.id"), nullable=True)

    code = db.Column(db.String(32), nullable=False)  # e.g. "P1-A"
    current_index = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    station = db.relationship("Station", backref=db.backref("nozzles", lazy=True))
    fuel_type = db.relationship("FuelType")
    tank = db.relationship("Tank", backref=db.backref("nozzles", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "fuel_type_id": self.fuel_type_id,
            "tank_id": self.tank_id,
            "code": self.code,
            "current_index": str(self.current_index),
            "is_active": self.is_active,
            "version_id": self.version_id,
        }


class Price(db.Model):
    """
    Selling price of a fuel type at a station over a validity window.

    The active price has effective_to NULL (or in the future). Sales snapshot
    the price, so closing a window never rewrites history.
    """
    __tablename__ = "prices"
    __table_args__ = (
        db.Index("ix_prices_station_fuel_from", "station_id", "fuel_type_id", "effective_from"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False)
    fuel_type_id = db.Column(db.Integer, db.ForeignKey("fuel_types.id"), nullable=False)

    selling_price_cents = db.Column(db.Integer, nullable=False)  # per liter, tax included
    effective_from = db.Column(db.DateTime(timezone=True), nullable=False)
    effective_to = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "fuel_type_id": self.fuel_type_id,
            "selling_price_cents": self.selling_price_cents,
            "effective_from": to_utc_z(self.effective_from),
            "effective_to": to_utc_z(self.effective_to) if self.effective_to else None,
        }


class PaymentMethod(db.Model):
    """Tender accepted at the pump (cash, card, fleet voucher...)."""
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # Card slips, voucher numbers, cheque numbers...
    requires_reference = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
            "requires_reference": self.requires_reference,
        }


class Client(db.Model):
    """Account customer a sale may be attributed to."""
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "station_id": self.station_id, "name": self.name}
