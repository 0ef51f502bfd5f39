from __future__ import annotations

from flask import current_app

from app.extensions import db
from app.models import SystemSetting, User
from app.services.errors import ValidationError


SETTING_DEFAULT_STORAGE_LIMIT = "DEFAULT_STORAGE_LIMIT"


def get_default_storage_limit() -> int:
    setting = db.session.get(SystemSetting, SETTING_DEFAULT_STORAGE_LIMIT)
    fallback = current_app.config["DEFAULT_STORAGE_LIMIT"]
    if setting is None:
        return fallback
    try:
        return int(setting.value)
    except ValueError:
        current_app.logger.warning(
            "Ignoring malformed %s setting: %r",
            SETTING_DEFAULT_STORAGE_LIMIT,
            setting.value,
        )
        return fallback


def parse_storage_limit(value, allow_zero: bool = False) -> int:
    if isinstance(value, bool):
        raise ValidationError("storage limit must be an integer")
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError("storage limit must be an integer") from None
    if limit < 0 or (limit == 0 and not allow_zero):
        raise ValidationError("storage limit is out of range")
    return limit


def set_default_storage_limit(value) -> int:
    limit = parse_storage_limit(value)
    setting = db.session.get(SystemSetting, SETTING_DEFAULT_STORAGE_LIMIT)
    if setting is None:
        setting = SystemSetting(
            key=SETTING_DEFAULT_STORAGE_LIMIT,
            description="Default storage limit for new users",
            value=str(limit),
        )
        db.session.add(setting)
    else:
        setting.value = str(limit)
    db.session.commit()
    return limit


def apply_signup_defaults(user: User) -> None:
    user.storage_limit = get_default_storage_limit()
