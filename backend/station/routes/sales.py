# Overview: Flask API routes for fuel sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_actor
from ..services import sale_service
from ..validation import require_fields, to_id


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/shifts/<int:shift_id>/sales")
@require_actor
def record_sale_route(shift_id: int):
    """
    Record a sale on an open shift.

    Request body:
    {
        "fuel_type_id": 1,
        "quantity": "20.000",
        "client_id": 4,   (optional)
        "payments": [
            {"payment_method_id": 1, "amount_cents": 15000},
            {"payment_method_id": 2, "amount_cents": 10000, "reference": "AUTH-1234"}
        ]
    }
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, "fuel_type_id", "quantity", "payments")

    client_id = data.get("client_id")
    sale = sale_service.record_sale(
        shift_id=shift_id,
        fuel_type_id=to_id(data["fuel_type_id"], "fuel_type_id"),
        quantity=data["quantity"],
        payments=data["payments"],
        client_id=to_id(client_id, "client_id") if client_id is not None else None,
    )
    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("/shifts/<int:shift_id>/sales")
@require_actor
def list_shift_sales_route(shift_id: int):
    sales = sale_service.list_shift_sales(shift_id)
    return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/sales/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    return jsonify({"sale": sale_service.get_sale(sale_id).to_dict()})
