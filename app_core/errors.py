import logging
from functools import wraps
from typing import Any, Dict, Optional, Tuple

from flask import request, current_app
from werkzeug.exceptions import (
    HTTPException, BadRequest, BadGateway, UnsupportedMediaType, Unauthorized, Forbidden
)

from .session_utils import current_user

logger = logging.getLogger(__name__)


class Unauthenticated(Unauthorized):
    """A mutation was attempted without a signed-in user."""
    description = "Please sign in to continue"


class UpstreamUnavailable(BadGateway):
    """The record store or the media catalog could not be reached."""
    description = "An upstream service is unavailable, please retry later"


def error_body(status: int, code: str, message: str):
    return {"error": {"status": status, "code": code, "message": message}}, status


def install_json_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http(e: HTTPException):
        if e.code and e.code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.path, e.code, e.description)
        return error_body(e.code, e.name.replace(" ", "_").upper(), e.description)

    @app.errorhandler(Exception)
    def handle_generic(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        # no details leak to clients
        return error_body(500, "INTERNAL_SERVER_ERROR", "Internal Server Error")


# ---- request bodies ----

def expect_json():
    if request.method in ("POST", "PUT", "PATCH") and not request.is_json:
        raise UnsupportedMediaType("Use Content-Type: application/json")

def read_json() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        raise BadRequest("Invalid or missing JSON body")
    if not isinstance(body, dict):
        raise BadRequest("JSON body must be an object")
    return body


# ---- field validators ----

MAX_USERNAME = 64
MAX_COMMENT = 2000

def _bounded_int(v: Any, field: str, low: int, high: int) -> int:
    if isinstance(v, bool):
        raise BadRequest(f"{field} must be an integer {low}–{high}")
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise BadRequest(f"{field} must be an integer {low}–{high}")
    if n < low or n > high:
        raise BadRequest(f"{field} must be between {low} and {high}")
    return n

def validate_username(v: Any) -> str:
    name = v.strip().lower() if isinstance(v, str) else ""
    if not name:
        raise BadRequest("username is required")
    if len(name) > MAX_USERNAME:
        raise BadRequest(f"username must be ≤ {MAX_USERNAME} chars")
    return name

def parse_rating(v: Any) -> Optional[int]:
    """Personal rating 0..10; empty clears it."""
    if v in (None, ""):
        return None
    return _bounded_int(v, "personal_rating", 0, 10)

def parse_review_rating(v: Any) -> int:
    if v in (None, ""):
        raise BadRequest("rating is required (1–5)")
    return _bounded_int(v, "rating", 1, 5)

def validate_comment(v: Any) -> str:
    if v is None:
        return ""
    if not isinstance(v, str):
        raise BadRequest("comment must be a string")
    comment = v.strip()
    if len(comment) > MAX_COMMENT:
        raise BadRequest(f"comment must be ≤ {MAX_COMMENT} chars")
    return comment


# ---- query string ----

ALLOWED_ORDERS = ("-created_at", "title", "rating", "-rating")
MAX_PAGE_SIZE = 100

def validate_pagination() -> Tuple[int, int]:
    page = request.args.get("page", 1)
    size = request.args.get("page_size", 10)
    try:
        page, size = int(page), int(size)
    except (TypeError, ValueError):
        raise BadRequest("page and page_size must be integers")
    return max(page, 1), min(max(size, 1), MAX_PAGE_SIZE)

def validate_order_param() -> str:
    order = request.args.get("order") or "-created_at"
    if order not in ALLOWED_ORDERS:
        raise BadRequest(f"order must be one of {list(ALLOWED_ORDERS)}")
    return order


# ---- auth ----

def _check_api_token():
    expected = current_app.config.get("API_TOKEN")
    if not expected:
        return
    scheme, _, supplied = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not supplied:
        raise Unauthorized("Missing or invalid Authorization header")
    if supplied != expected:
        raise Forbidden("Invalid token")

def require_auth(fn):
    """Gate a mutating route: API token first (when configured), then a signed-in user."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _check_api_token()
        if current_user() is None:
            raise Unauthenticated()
        return fn(*args, **kwargs)
    return wrapper
