from __future__ import annotations

import structlog
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from app.core.errors import error_response
from app.core.models import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

log = structlog.get_logger(__name__)


@auth_bp.post("/login")
def login_post():
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        log.info("login_failed", email=email)
        return error_response("unauthorized", "Invalid credentials", 401)
    login_user(user)
    log.info("login_succeeded", user_id=user.id)
    return jsonify({"success": True, "data": {"id": user.id, "email": user.email, "fullName": user.full_name}})


@auth_bp.post("/logout")
@login_required
def logout():
    log.info("logout", user_id=current_user.id)
    logout_user()
    return jsonify({"success": True, "data": None})
