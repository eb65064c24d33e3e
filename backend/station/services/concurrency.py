# Overview: Transaction helpers shared by every state-changing service operation.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _unique_keys() -> dict[str, str]:
    """Map "table.col[, table.col]" to the name of the unique index or constraint on those columns."""
    keys = {}
    for table in db.metadata.tables.values():
        named = [ix for ix in table.indexes if ix.unique]
        named += [c for c in table.constraints if isinstance(c, UniqueConstraint)]
        for item in named:
            if item.name:
                keys[", ".join(f"{table.name}.{col.name}" for col in item.columns)] = item.name
    return keys


def _constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(getattr(exc, "orig", None), "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    # SQLite only reports the columns, e.g. "UNIQUE constraint failed: shifts.nozzle_id"
    message = str(getattr(exc, "orig", exc))
    if not message.startswith("UNIQUE constraint failed:"):
        return None
    return _unique_keys().get(message.split(":", 1)[1].strip())


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1,
                   conflict_message: str | None = None, conflict_on: tuple[str, ...] = ()):
    """
    Execute one transactional unit of work, retrying on concurrency failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). A violation of one of the unique
    constraints named in conflict_on means a concurrent caller won the
    race: it is reported as a ConflictError carrying the constraint name.
    Any other failure, other integrity errors included, rolls the session
    back before propagating so no partial write survives.
    """
    if attempts is None:
        attempts = int(current_app.config.get("DB_RETRY_ATTEMPTS", 3))

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConflictError(
                        "The record was modified concurrently; reload and retry",
                    ) from exc
                raise
            current_app.logger.warning(
                "Concurrency failure (attempt %s/%s), retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            constraint = _constraint_name(exc)
            if constraint not in conflict_on:
                raise
            raise ConflictError(
                conflict_message or "A concurrent operation already created this record",
                {"constraint": constraint},
            ) from exc
        except Exception:
            db.session.rollback()
            raise
