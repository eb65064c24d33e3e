# Overview: Active selling price lookup per station and fuel type.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..models import Price
from station.time_utils import utcnow


def get_active_price(station_id: int, fuel_type_id: int, at: datetime | None = None) -> Price | None:
    """
    Price in effect at `at` (default now), or None when nothing is active.

    The most recent window that has started and not yet ended wins.
    """
    at = at or utcnow()
    return db.session.query(Price).filter(
        Price.station_id == station_id,
        Price.fuel_type_id == fuel_type_id,
        Price.effective_from <= at,
        or_(Price.effective_to.is_(None), Price.effective_to > at),
    ).order_by(Price.effective_from.desc(), Price.id.desc()).first()
