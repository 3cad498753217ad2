# Overview: Flask API routes for shift operations; parses input and returns JSON responses.

# backend/cashdrawer/routes/shifts.py
"""
Shift API Routes

WHY: Expose the shift lifecycle to the terminal UI and to the sale/return
event source. Each mutating endpoint maps 1:1 to a ShiftManager operation
and returns the updated shift or a structured error (kind + message).

DESIGN:
- Amounts are integer cents in JSON (e.g. 10000 = 100.00)
- Acting user comes from X-Actor-Id / X-Actor-Name (see require_actor)
- Shift lifecycle: open -> payments/movements -> close (immutable once closed)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import (
    InvalidAmount,
    InvalidRequest,
    LockTimeout,
    MissingActor,
    PersistenceFailure,
    PostingConflict,
    ShiftAlreadyOpen,
    ShiftError,
    ShiftNotActive,
    ShiftNotFound,
)
from ..extensions import get_shift_manager
from ..money import Money
from ..services.shift_state import TRANSACTION_SALE


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _status_for(error: ShiftError) -> int:
    if isinstance(error, MissingActor):
        return 401
    if isinstance(error, ShiftNotFound):
        return 404
    if isinstance(error, (ShiftNotActive, ShiftAlreadyOpen, PostingConflict)):
        return 409
    if isinstance(error, (PersistenceFailure, LockTimeout)):
        return 503
    return 400


def _error_response(error: ShiftError):
    return jsonify(error.to_dict()), _status_for(error)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def _cents(data: dict, key: str, *, required: bool = True, default: int | None = None) -> Money:
    value = data.get(key, default)
    if value is None:
        if required:
            raise InvalidAmount(f"{key} required")
        value = 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{key} must be an integer number of cents")
    return Money.from_cents(value)


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

@shifts_bp.post("/open")
@require_actor
def open_shift_route():
    """
    Open a new shift.

    Request body:
    {
        "starting_cash_cents": 10000,  // Opening float (e.g., $100.00)
        "context": "register-1"        (optional)
    }

    Returns 409 if the context already has an open shift.
    """
    try:
        data = _json_body()
        starting_cash = _cents(data, "starting_cash_cents", required=False, default=0)
        context = data.get("context") or current_app.config["DEFAULT_SHIFT_CONTEXT"]

        shift = get_shift_manager().open(
            user_id=g.actor.user_id,
            user_name=g.actor.user_name,
            starting_cash=starting_cash,
            context=context,
        )

        return jsonify({"shift": shift.to_dict()}), 201

    except ShiftError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<shift_id>/payments")
@require_actor
def post_payment_route(shift_id: str):
    """
    Post one payment leg of a completed sale or return.

    Request body:
    {
        "payment_method": "cash",       // cash, card, digital
        "amount_cents": 2000,
        "transaction_type": "sale",     (optional: sale, return)
        "idempotency_key": "trx-42:0"   (optional, makes redelivery safe)
    }
    """
    try:
        data = _json_body()
        amount = _cents(data, "amount_cents")

        shift = get_shift_manager().post_sale_payment(
            shift_id,
            data.get("payment_method"),
            amount,
            g.actor,
            transaction_type=data.get("transaction_type") or TRANSACTION_SALE,
            idempotency_key=data.get("idempotency_key"),
        )

        return jsonify({"shift": shift.to_dict()}), 200

    except ShiftError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post payment")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<shift_id>/movements")
@require_actor
def add_movement_route(shift_id: str):
    """
    Record a pay-in or pay-out.

    Request body:
    {
        "type": "IN",              // IN or OUT
        "amount_cents": 5000,
        "reason": "Added change"
    }
    """
    try:
        data = _json_body()
        amount = _cents(data, "amount_cents")

        shift = get_shift_manager().add_cash_movement(
            shift_id,
            data.get("type"),
            amount,
            data.get("reason"),
            g.actor,
        )

        return jsonify({
            "shift": shift.to_dict(),
            "movement": shift.cash_movements[-1].to_dict(),
        }), 201

    except ShiftError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<shift_id>/close")
@require_actor
def close_shift_route(shift_id: str):
    """
    Close a shift and calculate cash variance.

    Request body:
    {
        "counted_cash_cents": 18500  // Actual cash counted
    }

    Calculates difference: counted_cash - expected_cash
    Shift becomes immutable after closing.
    """
    try:
        data = _json_body()
        counted_cash = _cents(data, "counted_cash_cents")

        shift = get_shift_manager().close(shift_id, counted_cash, g.actor)

        return jsonify({"shift": shift.to_dict()}), 200

    except ShiftError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# READS
# =============================================================================

@shifts_bp.get("/")
@shifts_bp.get("")
def list_shifts_route():
    """
    List shifts, newest first.

    Query params:
    - context: Filter by register/session context
    - status: Filter by status (OPEN or CLOSED)
    - limit: Max number of shifts to return (default: 50)
    """
    context = request.args.get("context")
    status = request.args.get("status")
    limit = request.args.get("limit", 50, type=int)

    shifts = get_shift_manager().list_shifts(context=context, status=status, limit=limit)

    return jsonify({
        "shifts": [s.to_dict() for s in shifts]
    }), 200


@shifts_bp.get("/active")
def get_active_shift_route():
    """Currently open shift of a context; shift is null when none is open."""
    context = request.args.get("context") or current_app.config["DEFAULT_SHIFT_CONTEXT"]
    shift = get_shift_manager().get_active_shift(context)
    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@shifts_bp.get("/<shift_id>")
def get_shift_route(shift_id: str):
    try:
        shift = get_shift_manager().get_shift(shift_id)
        return jsonify({"shift": shift.to_dict()}), 200
    except ShiftError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/movements")
def list_movements_route(shift_id: str):
    """Cash movements of a shift in insertion order."""
    try:
        shift = get_shift_manager().get_shift(shift_id)
        ledger = shift.ledger
        return jsonify({
            "movements": [m.to_dict() for m in ledger],
            "total_in_cents": ledger.total_in().cents,
            "total_out_cents": ledger.total_out().cents,
        }), 200
    except ShiftError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/summary")
def get_summary_route(shift_id: str):
    """
    Wallet summary: expected cash, pay-in/out totals and sales per method.
    """
    try:
        summary = get_shift_manager().get_summary(shift_id)
        return jsonify({"summary": summary.to_dict()}), 200
    except ShiftError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/report")
def get_report_route(shift_id: str):
    """
    End-of-shift report.

    Query params:
    - format: "json" (default) or "text" for printable lines
    """
    try:
        report = get_shift_manager().get_report(shift_id)
        if request.args.get("format") == "text":
            lines = report.format_lines(current_app.config["CURRENCY_SYMBOL"])
            return "\n".join(lines) + "\n", 200, {"Content-Type": "text/plain; charset=utf-8"}
        return jsonify({"report": report.to_dict()}), 200
    except ShiftError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/audit")
def get_audit_route(shift_id: str):
    """Who performed each operation on the shift, and when."""
    try:
        entries = get_shift_manager().get_audit_log(shift_id)
        return jsonify({"events": [e.to_dict() for e in entries]}), 200
    except ShiftError as e:
        return _error_response(e)
