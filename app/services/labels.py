from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models import (
    DEFAULT_LABEL_COLOR,
    LABEL_NAME_MAX_LENGTH,
    Label,
    User,
    bookmark_labels,
)
from app.services import notices
from app.services.common import get_owned_or_raise
from app.services.errors import Duplicate, InvalidReference, ValidationError


_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def _clean_name(raw) -> str:
    if raw is not None and not isinstance(raw, str):
        raise ValidationError("Label name must be a string")
    name = (raw or "").strip()
    if not name:
        raise ValidationError("Label name required")
    if len(name) > LABEL_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Label name exceeds {LABEL_NAME_MAX_LENGTH} characters limit"
        )
    return name


def _clean_color(raw) -> str | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str) or not _COLOR_RE.match(raw.strip()):
        raise ValidationError("Label color must be a hex value such as #8B5CF6")
    return raw.strip()


def _find_by_key(user: User, name_key: str, exclude_id: int | None = None):
    query = Label.query.filter_by(user_id=user.id, name_key=name_key)
    if exclude_id is not None:
        query = query.filter(Label.id != exclude_id)
    return query.first()


def _commit_or_duplicate(user: User, name_key: str, exclude_id: int | None = None):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _find_by_key(user, name_key, exclude_id=exclude_id)
        raise Duplicate(
            "Label already exists", existing.id if existing else None
        ) from None


def create_label(user: User, name, color=None) -> Label:
    name = _clean_name(name)
    color = _clean_color(color) or DEFAULT_LABEL_COLOR
    name_key = name.lower()

    existing = _find_by_key(user, name_key)
    if existing:
        raise Duplicate("Label already exists", existing.id)

    label = Label(user_id=user.id, name=name, name_key=name_key, color=color)
    db.session.add(label)
    _commit_or_duplicate(user, name_key)
    notices.publish(
        notices.NOTICE_LABEL_CREATED, f"Label '{name}' created", label_id=label.id
    )
    return label


def list_labels(user: User) -> list[Label]:
    return (
        Label.query.filter_by(user_id=user.id)
        .order_by(Label.name_key.asc(), Label.id.asc())
        .all()
    )


def update_label(user: User, label_id: int, name=None, color=None) -> Label:
    if name is None and color is None:
        raise ValidationError("Nothing to update")
    new_name = _clean_name(name) if name is not None else None
    new_color = _clean_color(color)

    label = get_owned_or_raise(Label, user, label_id, "Label")
    if new_name is not None:
        name_key = new_name.lower()
        existing = _find_by_key(user, name_key, exclude_id=label.id)
        if existing:
            raise Duplicate("Label already exists", existing.id)
        label.name = new_name
        label.name_key = name_key
    if new_color is not None:
        label.color = new_color
    _commit_or_duplicate(user, label.name_key, exclude_id=label.id)
    notices.publish(
        notices.NOTICE_LABEL_UPDATED, f"Label '{label.name}' updated", label_id=label.id
    )
    return label


def rename_label(user: User, label_id: int, new_name) -> Label:
    return update_label(user, label_id, name=new_name)


def delete_label(user: User, label_id: int) -> None:
    label = get_owned_or_raise(Label, user, label_id, "Label")
    # Join rows go with the label; the bookmarks themselves stay.
    db.session.delete(label)
    db.session.commit()
    current_app.logger.info("User %s deleted label %s", user.id, label_id)
    notices.publish(notices.NOTICE_LABEL_DELETED, "Label deleted", label_id=label_id)


def resolve_owned_labels(user: User, label_ids: list[int]) -> list[Label]:
    if not label_ids:
        return []
    labels = Label.query.filter(
        Label.user_id == user.id, Label.id.in_(label_ids)
    ).all()
    if len(labels) != len(set(label_ids)):
        raise InvalidReference("Invalid label IDs")
    return labels


def label_counts(user: User) -> dict[int, int]:
    rows = (
        db.session.query(bookmark_labels.c.label_id, func.count())
        .select_from(bookmark_labels)
        .join(Label, Label.id == bookmark_labels.c.label_id)
        .filter(Label.user_id == user.id)
        .group_by(bookmark_labels.c.label_id)
        .all()
    )
    return {label_id: count for label_id, count in rows}
