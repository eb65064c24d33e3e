# Overview: Flask API routes for cash reconciliation; parses input and returns JSON responses.

# backend/station/routes/cash_registers.py
"""
Cash Register API Routes

WHY: Financial closing of an ended shift. The pompiste (or a manager)
declares the counted amounts per payment method; the service computes the
variance and, on a shortfall, the pompiste's debt.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor
from ..errors import InvalidError
from ..services import cash_register_service
from ..validation import require_fields


cash_registers_bp = Blueprint("cash_registers", __name__, url_prefix="/api/cash-registers")


@cash_registers_bp.post("/shifts/<int:shift_id>/close")
@require_actor
def close_cash_register_route(shift_id: int):
    """
    Reconcile the cash of an ended shift.

    Request body:
    {
        "declared": [
            {"payment_method_id": 1, "actual_cents": 39500},
            {"payment_method_id": 2, "actual_cents": 22500, "reference": "BATCH-77"}
        ],
        "variance_note": "Customer drove off",   (required past the threshold)
        "create_debt_on_negative_variance": true   (optional, default true)
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "declared")

    create_debt = data.get("create_debt_on_negative_variance", True)
    if not isinstance(create_debt, bool):
        raise InvalidError("create_debt_on_negative_variance must be a boolean")

    result = cash_register_service.close_cash_register(
        shift_id,
        data["declared"],
        variance_note=data.get("variance_note"),
        create_debt_on_negative_variance=create_debt,
        closed_by_user_id=g.actor_id,
    )
    return jsonify(result.to_dict()), 201


@cash_registers_bp.get("/<int:cash_register_id>")
@require_actor
def get_cash_register_route(cash_register_id: int):
    register = cash_register_service.get_cash_register(cash_register_id)
    return jsonify({"cash_register": register.to_dict()})


@cash_registers_bp.get("/shifts/<int:shift_id>")
@require_actor
def get_shift_cash_register_route(shift_id: int):
    register = cash_register_service.get_by_shift(shift_id)
    return jsonify({"cash_register": register.to_dict()})


@cash_registers_bp.get("/variances")
@require_actor
def list_variances_route():
    """
    Cash registers of a station with a notable variance.

    Query params: station_id (required), min_abs_variance_cents (default 0)
    """
    station_id = request.args.get("station_id", type=int)
    if not station_id:
        raise InvalidError("station_id required")
    min_abs = request.args.get("min_abs_variance_cents", default=0, type=int)
    if min_abs < 0:
        raise InvalidError("min_abs_variance_cents cannot be negative")

    registers = cash_register_service.list_with_variance(station_id, min_abs)
    return jsonify({"cash_registers": [r.to_dict() for r in registers], "count": len(registers)})
