# Overview: Flask API routes for the shift lifecycle; parses input and returns JSON responses.

# backend/station/routes/shifts.py
"""
Shift API Routes

WHY: A shift is a pompiste's session on one nozzle. These endpoints drive
it from OPEN to CLOSED to VALIDATED and expose its read-side numbers.

SECURITY:
- Every route requires the acting user headers
- A pompiste may only start or end their own shift; managers may act for anyone
- Validation is manager-only
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, require_manager
from ..errors import ForbiddenError, InvalidError
from ..models.auth import is_manager_role
from ..services import aggregation_service, shift_service
from ..validation import require_fields, to_id
from station.time_utils import parse_iso_datetime


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise InvalidError(f"{name} must be an ISO-8601 datetime")


# =============================================================================
# LIFECYCLE
# =============================================================================

@shifts_bp.post("/start")
@require_actor
def start_shift_route():
    """
    Open a shift on a nozzle.

    Request body:
    {
        "nozzle_id": 1,
        "index_start": "1000.00",
        "pompiste_id": 3   (optional, defaults to the actor)
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "nozzle_id", "index_start")

    pompiste_id = to_id(data.get("pompiste_id", g.actor_id), "pompiste_id")
    if pompiste_id != g.actor_id and not is_manager_role(g.actor_role):
        raise ForbiddenError(
            "Only a manager can open a shift for another pompiste",
            {"actor_id": g.actor_id, "pompiste_id": pompiste_id},
        )

    shift = shift_service.start_shift(
        pompiste_id=pompiste_id,
        nozzle_id=to_id(data["nozzle_id"], "nozzle_id"),
        index_start=data["index_start"],
    )
    return jsonify({"shift": shift.to_dict()}), 201


@shifts_bp.post("/<int:shift_id>/end")
@require_actor
def end_shift_route(shift_id: int):
    """
    Close an open shift with its end meter reading.

    Request body:
    {
        "index_end": "1050.00",
        "incident_note": "..."   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "index_end")

    shift = shift_service.end_shift(
        shift_id,
        g.actor_id,
        data["index_end"],
        data.get("incident_note"),
        actor_role=g.actor_role,
    )
    return jsonify({"shift": shift.to_dict()})


@shifts_bp.post("/<int:shift_id>/validate")
@require_actor
@require_manager
def validate_shift_route(shift_id: int):
    shift = shift_service.validate_shift(shift_id, g.actor_id)
    return jsonify({"shift": shift.to_dict()})


# =============================================================================
# QUERIES
# =============================================================================

@shifts_bp.get("/")
@shifts_bp.get("")
@require_actor
def list_shifts_route():
    """
    List shifts, newest first.

    Query params: station_id, pompiste_id, nozzle_id, status, date_from, date_to
    """
    shifts = shift_service.list_shifts(
        station_id=request.args.get("station_id", type=int),
        pompiste_id=request.args.get("pompiste_id", type=int),
        nozzle_id=request.args.get("nozzle_id", type=int),
        status=request.args.get("status"),
        date_from=_date_arg("date_from"),
        date_to=_date_arg("date_to"),
    )
    return jsonify({"shifts": [s.to_dict() for s in shifts], "count": len(shifts)})


@shifts_bp.get("/open")
@require_actor
def list_open_shifts_route():
    shifts = shift_service.list_open_shifts(request.args.get("station_id", type=int))
    return jsonify({"shifts": [s.to_dict() for s in shifts], "count": len(shifts)})


@shifts_bp.get("/<int:shift_id>")
@require_actor
def get_shift_route(shift_id: int):
    return jsonify({"shift": shift_service.get_shift(shift_id).to_dict()})


@shifts_bp.get("/<int:shift_id>/statistics")
@require_actor
def shift_statistics_route(shift_id: int):
    return jsonify({"statistics": shift_service.get_shift_statistics(shift_id)})


@shifts_bp.get("/<int:shift_id>/summary")
@require_actor
def shift_summary_route(shift_id: int):
    """Per fuel type and per payment method totals derived from the shift's sales."""
    summary = aggregation_service.summarize_shift(shift_id)
    return jsonify({"summary": summary.to_dict()})
