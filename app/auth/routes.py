from flask import current_app, jsonify
from flask_login import current_user, login_required, logout_user

from app.auth import auth_bp
from app.extensions import db
from app.services.common import json_payload
from app.services.errors import ServiceError
from app.services.security import identity_provider


@auth_bp.errorhandler(ServiceError)
def handle_service_error(exc: ServiceError):
    db.session.rollback()
    return jsonify(exc.payload()), exc.status_code


@auth_bp.route("/session", methods=["POST"])
def create_session():
    payload = json_payload()
    assertion = payload.get("assertion")
    if not isinstance(assertion, str) or not assertion.strip():
        return jsonify({"error": "assertion is required"}), 400

    provider = identity_provider()
    claims = provider.verify_assertion(assertion.strip())
    if claims is None:
        current_app.logger.warning("Rejected identity assertion")
        return jsonify({"error": "invalid or expired assertion"}), 401

    user, created = provider.sign_in(claims)
    if not user.is_active:
        return jsonify({"error": "account disabled"}), 403
    return jsonify({"user": user.as_dict(), "created": created})


@auth_bp.route("/session", methods=["GET"])
def read_session():
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False})
    return jsonify({"authenticated": True, "user": current_user.as_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "signed_out"})
