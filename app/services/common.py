from __future__ import annotations

from flask import request

from app.extensions import db
from app.services.errors import Forbidden, NotFound, ValidationError


def get_owned_or_raise(model, user, object_id, noun: str):
    """Load ``model`` by id, distinguishing a missing row from someone else's."""
    row = db.session.get(model, object_id)
    if row is None:
        raise NotFound(f"{noun} not found")
    if row.user_id != user.id:
        raise Forbidden(f"{noun} belongs to another user")
    return row


def normalize_memo(value, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("memo must be a string")
    if len(value) > max_length:
        raise ValidationError(f"Memo exceeds {max_length} characters limit")
    text = value.strip()
    return text or None


def parse_id_list(raw) -> list[int]:
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("label_ids must be a list")
    ids: list[int] = []
    seen: set[int] = set()
    for item in raw:
        if isinstance(item, bool):
            raise ValidationError("label_ids must contain integers")
        try:
            value = int(item)
        except (TypeError, ValueError):
            raise ValidationError("label_ids must contain integers") from None
        if value not in seen:
            seen.add(value)
            ids.append(value)
    return ids


def json_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload
