"""
Authentication Middleware
Role-based authorization decorators
"""
from functools import wraps

from flask import jsonify, request

from bawasa.auth.jwt_utils import verify_token
from bawasa.database.models import AccountRole


def get_token_from_header():
    """Reads the bearer token from the Authorization header"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None


def _current_user_from_payload(payload: dict) -> dict:
    return {
        "account_id": int(payload.get("sub")),
        "email": payload.get("email"),
        "role": payload.get("role"),
    }


def require_auth(f):
    """Token validation decorator"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token_from_header()
        payload = verify_token(token) if token else None
        if not payload:
            return jsonify({"error": "Authentication required"}), 401

        request.current_user = _current_user_from_payload(payload)
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles: AccountRole):
    """Role-based authorization decorator"""
    allowed_values = {r.value for r in allowed_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            token = get_token_from_header()
            payload = verify_token(token) if token else None
            if not payload:
                return jsonify({"error": "Authentication required"}), 401

            if payload.get("role") not in allowed_values:
                return jsonify({
                    "error": f"Access denied. Required roles: {sorted(allowed_values)}"
                }), 403

            request.current_user = _current_user_from_payload(payload)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_admin(f):
    return require_role(AccountRole.ADMIN)(f)


def require_cashier(f):
    """Cashier portal; admins may use it as well"""
    return require_role(AccountRole.CASHIER, AccountRole.ADMIN)(f)


def require_meter_reader(f):
    return require_role(AccountRole.METER_READER, AccountRole.ADMIN)(f)


def require_staff(f):
    """Any back-office role"""
    return require_role(AccountRole.ADMIN, AccountRole.CASHIER, AccountRole.METER_READER)(f)


def get_current_user() -> dict | None:
    return getattr(request, "current_user", None)
