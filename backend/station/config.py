# backend/station/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/station.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///station.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shift duration policy (hours): warn past A, refuse to close past B
    SHIFT_DURATION_WARN_HOURS = _env_float("SHIFT_DURATION_WARN_HOURS", 12)
    SHIFT_DURATION_BLOCK_HOURS = _env_float("SHIFT_DURATION_BLOCK_HOURS", 24)

    # Liters of meter drift between consecutive shifts tolerated silently
    INDEX_CONTINUITY_TOLERANCE = _env_float("INDEX_CONTINUITY_TOLERANCE", 0.0)

    # Payment split must equal the sale total within this many cents
    PAYMENT_SUM_TOLERANCE_CENTS = _env_int("PAYMENT_SUM_TOLERANCE_CENTS", 1)

    # |variance| above this requires a variance note (5000 = 50.00)
    CASH_VARIANCE_NOTE_THRESHOLD_CENTS = _env_int("CASH_VARIANCE_NOTE_THRESHOLD_CENTS", 5000)

    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3)


def check_policy(config) -> None:
    """Reject threshold combinations that make the duration tiers meaningless."""
    warn = float(config["SHIFT_DURATION_WARN_HOURS"])
    block = float(config["SHIFT_DURATION_BLOCK_HOURS"])
    if warn <= 0 or block <= 0:
        raise ValueError("Shift duration thresholds must be positive")
    if warn > block:
        raise ValueError(
            f"SHIFT_DURATION_WARN_HOURS ({warn}) cannot exceed SHIFT_DURATION_BLOCK_HOURS ({block})"
        )
    if float(config["INDEX_CONTINUITY_TOLERANCE"]) < 0:
        raise ValueError("INDEX_CONTINUITY_TOLERANCE cannot be negative")
    if int(config["PAYMENT_SUM_TOLERANCE_CENTS"]) < 0:
        raise ValueError("PAYMENT_SUM_TOLERANCE_CENTS cannot be negative")
