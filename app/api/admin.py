from __future__ import annotations

import math

from flask import current_app, jsonify, request
from sqlalchemy import func, or_

from app.api import api_bp
from app.extensions import db
from app.models import Bookmark, User
from app.services.common import json_payload
from app.services.errors import NotFound, ValidationError
from app.services.query import LIKE_ESCAPE, escape_like
from app.services.security import (
    admin_auth_required,
    check_admin_credentials,
    issue_admin_token,
)
from app.services.settings import (
    get_default_storage_limit,
    parse_storage_limit,
    set_default_storage_limit,
)


ADMIN_PAGE_LIMIT_MAX = 100


@api_bp.route("/admin/auth", methods=["POST"])
def admin_auth():
    payload = json_payload()
    email = payload.get("email")
    if not check_admin_credentials(email, payload.get("password")):
        current_app.logger.warning("Admin login refused for %r", email)
        return jsonify({"error": "Invalid credentials"}), 401
    return jsonify({"token": issue_admin_token(email)})


@api_bp.route("/admin/settings", methods=["GET"])
@admin_auth_required
def admin_settings_get():
    return jsonify({"default_storage_limit": get_default_storage_limit()})


@api_bp.route("/admin/settings", methods=["PUT", "POST"])
@admin_auth_required
def admin_settings_update():
    payload = json_payload()
    if "default_storage_limit" not in payload:
        raise ValidationError("default_storage_limit is required")
    limit = set_default_storage_limit(payload["default_storage_limit"])
    current_app.logger.info("Default storage limit set to %s", limit)
    return jsonify({"default_storage_limit": limit})


@api_bp.route("/admin/users", methods=["GET"])
@admin_auth_required
def admin_list_users():
    page = max(request.args.get("page", default=1, type=int) or 1, 1)
    limit = request.args.get("limit", default=10, type=int) or 10
    limit = max(1, min(limit, ADMIN_PAGE_LIMIT_MAX))
    search = (request.args.get("search") or "").strip()

    query = User.query
    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.filter(
            or_(
                User.display_name.ilike(pattern, escape=LIKE_ESCAPE),
                User.email.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    counts = dict(
        db.session.query(Bookmark.user_id, func.count(Bookmark.id))
        .filter(Bookmark.user_id.in_([user.id for user in users]))
        .group_by(Bookmark.user_id)
        .all()
    )
    return jsonify(
        {
            "items": [
                {**user.as_dict(), "bookmark_count": counts.get(user.id, 0)}
                for user in users
            ],
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit),
            },
        }
    )


@api_bp.route("/admin/users/<int:user_id>", methods=["PATCH"])
@admin_auth_required
def admin_update_user(user_id: int):
    payload = json_payload()
    if "storage_limit" not in payload:
        raise ValidationError("storage_limit is required")
    limit = parse_storage_limit(payload["storage_limit"], allow_zero=True)

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    user.storage_limit = limit
    db.session.commit()
    current_app.logger.info("Storage limit for user %s set to %s", user.id, limit)
    return jsonify(user.as_dict())
