# --- storefront/utils/api.py ---
from flask import jsonify, request

from .clock import utcnow


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": utcnow().strftime("%Y-%m-%d %H:%M:%S"),
        },
    }


def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": utcnow().strftime("%Y-%m-%d %H:%M:%S"),
        },
    }


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def settlement_err(e):
    """Render a SettlementError with its own status and payload."""
    return err(e.message, e.http_status, e.as_api())


def json_body():
    """Request JSON as a dict; anything else (missing, malformed, a list) reads as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def paginate_args(args, default_per_page=20):
    try:
        page = max(int(args.get("page", 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        per = min(max(int(args.get("per_page", default_per_page)), 1), 100)
    except (TypeError, ValueError):
        per = default_per_page
    return page, per
