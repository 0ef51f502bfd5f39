from __future__ import annotations

from flask import current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.api import api_bp
from app.extensions import db
from app.models import ApiToken
from app.services import bookmarks as bookmark_store
from app.services import labels as label_store
from app.services.common import json_payload
from app.services.errors import ServiceError, ValidationError
from app.services.links import extract_post_url
from app.services.query import ListingQuery
from app.services.security import api_auth_required


def _user_id_for_log():
    user = g.get("api_user")
    return user.id if user is not None else None


@api_bp.errorhandler(ServiceError)
def handle_service_error(exc: ServiceError):
    db.session.rollback()
    return jsonify(exc.payload()), exc.status_code


@api_bp.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return jsonify({"error": exc.description}), exc.code
    db.session.rollback()
    current_app.logger.exception(
        "Unhandled error for user %s during %s %s: %s",
        _user_id_for_log(),
        request.method,
        request.endpoint,
        exc,
    )
    return jsonify({"error": "Internal server error"}), 500


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "ThreadClip"})


@api_bp.route("/me", methods=["GET"])
@api_auth_required
def me():
    user = g.api_user
    return jsonify({**user.as_dict(), "usage": bookmark_store.storage_usage(user)})


@api_bp.route("/tokens", methods=["POST"])
@api_auth_required
def tokens_create():
    user = g.api_user
    payload = json_payload()
    token_name = payload.get("name")
    if token_name is not None and not isinstance(token_name, str):
        raise ValidationError("name must be a string")
    token_name = (token_name or "").strip() or "ThreadClip API Token"

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name[:120], token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": row.name, "id": row.id}), 201


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    page = bookmark_store.list_bookmarks(user, ListingQuery.from_args(request.args))
    return jsonify({**page.as_dict(), "storage_limit": user.storage_limit})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    user = g.api_user
    payload = json_payload()
    url = payload.get("url")
    if not url and isinstance(payload.get("text"), str):
        url = extract_post_url(payload["text"])
    view = bookmark_store.create_bookmark(
        user,
        url,
        memo=payload.get("memo"),
        label_ids=payload.get("label_ids"),
    )
    return jsonify(view.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    view = bookmark_store.get_bookmark(g.api_user, bookmark_id)
    return jsonify(view.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required
def bookmarks_update_api(bookmark_id: int):
    payload = json_payload()
    if "memo" not in payload:
        raise ValidationError("memo is required")
    view = bookmark_store.update_memo(g.api_user, bookmark_id, payload.get("memo"))
    return jsonify(view.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>/labels", methods=["PUT"])
@api_auth_required
def bookmarks_labels_api(bookmark_id: int):
    payload = json_payload()
    view = bookmark_store.set_bookmark_labels(
        g.api_user, bookmark_id, payload.get("label_ids") or []
    )
    return jsonify(view.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>/preview", methods=["POST"])
@api_auth_required
def bookmarks_refresh_preview_api(bookmark_id: int):
    view = bookmark_store.refresh_preview(g.api_user, bookmark_id)
    return jsonify(view.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    bookmark_store.delete_bookmark(g.api_user, bookmark_id)
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/labels", methods=["GET"])
@api_auth_required
def labels_list_api():
    user = g.api_user
    counts = label_store.label_counts(user)
    return jsonify(
        {
            "items": [
                {**label.as_dict(), "bookmark_count": counts.get(label.id, 0)}
                for label in label_store.list_labels(user)
            ]
        }
    )


@api_bp.route("/labels", methods=["POST"])
@api_auth_required
def labels_create_api():
    payload = json_payload()
    label = label_store.create_label(
        g.api_user, payload.get("name"), payload.get("color")
    )
    return jsonify(label.as_dict()), 201


@api_bp.route("/labels/<int:label_id>", methods=["PATCH"])
@api_auth_required
def labels_update_api(label_id: int):
    payload = json_payload()
    label = label_store.update_label(
        g.api_user, label_id, name=payload.get("name"), color=payload.get("color")
    )
    return jsonify(label.as_dict())


@api_bp.route("/labels/<int:label_id>", methods=["DELETE"])
@api_auth_required
def labels_delete_api(label_id: int):
    label_store.delete_label(g.api_user, label_id)
    return jsonify({"status": "deleted", "id": label_id})
