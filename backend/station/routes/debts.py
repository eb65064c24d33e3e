# Overview: Flask API routes for the pompiste debt ledger; parses input and returns JSON responses.

# backend/station/routes/debts.py
"""
Debt Ledger API Routes

SECURITY:
- Every ledger write (create, repayment, cancel) is manager-only
- Repayments are recorded against the receiving manager (the actor)
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, require_manager
from ..services import debt_service
from ..validation import require_fields, to_id
from station.time_utils import parse_iso_datetime
from ..errors import InvalidError


debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.post("/")
@debts_bp.post("")
@require_actor
@require_manager
def create_debt_route():
    """
    Record a debt against a pompiste.

    Request body:
    {
        "pompiste_id": 3,
        "station_id": 1,
        "amount_cents": 20000,
        "reason": "SALARY_ADVANCE",
        "description": "..."   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "pompiste_id", "station_id", "amount_cents", "reason")

    related_id = data.get("related_entity_id")
    debt = debt_service.create_debt(
        pompiste_id=to_id(data["pompiste_id"], "pompiste_id"),
        station_id=to_id(data["station_id"], "station_id"),
        amount_cents=data["amount_cents"],
        reason=data["reason"],
        created_by_user_id=g.actor_id,
        description=data.get("description"),
        related_entity_type=data.get("related_entity_type"),
        related_entity_id=to_id(related_id, "related_entity_id") if related_id is not None else None,
    )
    return jsonify({"debt": debt.to_dict()}), 201


@debts_bp.post("/<int:debt_id>/payments")
@require_actor
@require_manager
def add_debt_payment_route(debt_id: int):
    """
    Record a repayment.

    Request body:
    {
        "amount_cents": 500,
        "method": "CASH",
        "note": "...",   (optional)
        "paid_at": "2026-03-01T10:00:00Z"   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "amount_cents", "method")

    try:
        paid_at = parse_iso_datetime(data.get("paid_at"))
    except (TypeError, ValueError, AttributeError):
        raise InvalidError("paid_at must be an ISO-8601 datetime")

    payment = debt_service.add_payment(
        debt_id,
        data["amount_cents"],
        data["method"],
        g.actor_id,
        data.get("note"),
        paid_at=paid_at,
    )
    return jsonify({"payment": payment.to_dict(), "debt": payment.debt.to_dict()}), 201


@debts_bp.post("/<int:debt_id>/cancel")
@require_actor
@require_manager
def cancel_debt_route(debt_id: int):
    data = request.get_json(silent=True) or {}
    require_fields(data, "reason")

    cancellation = debt_service.cancel_debt(debt_id, g.actor_id, data["reason"])
    return jsonify({"debt": cancellation.debt.to_dict(), "audit": cancellation.audit})


@debts_bp.get("/")
@debts_bp.get("")
@require_actor
def list_debts_route():
    """Query params: pompiste_id, station_id, status"""
    debts = debt_service.list_debts(
        pompiste_id=request.args.get("pompiste_id", type=int),
        station_id=request.args.get("station_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify({"debts": [d.to_dict() for d in debts], "count": len(debts)})


@debts_bp.get("/<int:debt_id>")
@require_actor
def get_debt_route(debt_id: int):
    debt = debt_service.get_debt(debt_id)
    return jsonify({"debt": debt.to_dict(include_payments=True)})


@debts_bp.get("/outstanding/<int:pompiste_id>")
@require_actor
def outstanding_route(pompiste_id: int):
    total_cents, count = debt_service.get_total_outstanding(pompiste_id)
    return jsonify({"pompiste_id": pompiste_id, "total_cents": total_cents, "debt_count": count})
