"""
Authentication Routes
E-mail / password authentication endpoints
"""
from flask import Blueprint, jsonify, request

from bawasa.auth.middleware import get_current_user, require_auth
from bawasa.config import DEBUG
from bawasa.services.account_service import account_service
from bawasa.utils import error_response, result_response

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _credentials():
    data = request.get_json(silent=True) or {}
    return data.get("email"), data.get("password")


@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Admin / cashier portal login
    Request body: { "email": "...", "password": "..." }
    """
    try:
        email, password = _credentials()
        if not email or not password:
            return error_response("Email and password are required", 400)

        result = account_service.login(email, password)
        return result_response(result)

    except Exception as e:
        return error_response("Login failed", 500, {"details": str(e) if DEBUG else None})


@auth_bp.route("/verify", methods=["POST"])
def verify():
    """
    Mobile app credential check for consumers and meter readers
    Request body: { "email": "...", "password": "..." }
    """
    try:
        email, password = _credentials()
        if not email or not password:
            return error_response("Email and password are required", 400)

        result = account_service.verify_mobile_credentials(email, password)
        return result_response(result)

    except Exception as e:
        return error_response("Authentication failed", 500, {"details": str(e) if DEBUG else None})


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """
    Request body: { "email": "...", "newPassword": "..." }
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        new_password = data.get("newPassword") or data.get("new_password")

        if not email or not new_password:
            return error_response("Email and new password are required", 400)

        result = account_service.reset_password(email, new_password)
        return result_response(result)

    except Exception as e:
        return error_response("Password reset failed", 500, {"details": str(e) if DEBUG else None})


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """Profile of the signed-in account"""
    try:
        profile = account_service.get_profile(get_current_user()["account_id"])
        if not profile:
            return error_response("Account not found", 404)
        return jsonify(profile), 200

    except Exception as e:
        return error_response("Failed to get user info", 500, {"details": str(e) if DEBUG else None})


@auth_bp.route("/update-profile", methods=["PUT"])
@require_auth
def update_profile():
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)

        result = account_service.update_profile(get_current_user()["account_id"], data)
        return result_response(result)

    except Exception as e:
        return error_response("Profile update failed", 500, {"details": str(e) if DEBUG else None})


@auth_bp.route("/change-password", methods=["POST"])
@require_auth
def change_password():
    """
    Request body: { "current_password": "...", "new_password": "..." }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = account_service.change_password(
            get_current_user()["account_id"],
            data.get("current_password"),
            data.get("new_password"),
        )
        return result_response(result)

    except Exception as e:
        return error_response("Password change failed", 500, {"details": str(e) if DEBUG else None})
