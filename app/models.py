import hashlib
import secrets
from datetime import datetime, timezone

from flask_login import UserMixin

from app.extensions import db, login_manager


DEFAULT_LABEL_COLOR = "#8B5CF6"
MEMO_MAX_LENGTH = 1000
LABEL_NAME_MAX_LENGTH = 64
AUTHOR_MAX_LENGTH = 255


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


bookmark_labels = db.Table(
    "bookmark_labels",
    db.Column(
        "bookmark_id",
        db.Integer,
        db.ForeignKey("bookmarks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "label_id",
        db.Integer,
        db.ForeignKey("labels.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), unique=True, nullable=True, index=True)
    display_name = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.Text, nullable=True)
    auth_provider = db.Column(db.String(64), nullable=False)
    auth_subject = db.Column(db.String(255), nullable=False)
    storage_limit = db.Column(db.Integer, nullable=False, default=1000)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    bookmarks = db.relationship("Bookmark", backref="user", lazy=True)
    labels = db.relationship("Label", backref="user", lazy=True)

    __table_args__ = (
        db.UniqueConstraint(
            "auth_provider", "auth_subject", name="uq_user_provider_subject"
        ),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "storage_limit": self.storage_limit,
            "created_at": self.created_at.isoformat(),
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Bookmark(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    original_url = db.Column(db.Text, nullable=False)
    content_snippet = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.Text, nullable=True)
    author_name = db.Column(db.String(AUTHOR_MAX_LENGTH), nullable=True)
    author_username = db.Column(db.String(AUTHOR_MAX_LENGTH), nullable=True)
    memo = db.Column(db.String(MEMO_MAX_LENGTH), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    labels = db.relationship(
        "Label",
        secondary=bookmark_labels,
        backref="bookmarks",
        order_by="Label.name_key",
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "original_url", name="uq_bookmark_user_url"),
        db.Index("ix_bookmark_user_created", "user_id", "created_at", "id"),
    )


class Label(db.Model):
    __tablename__ = "labels"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(LABEL_NAME_MAX_LENGTH), nullable=False)
    name_key = db.Column(db.String(LABEL_NAME_MAX_LENGTH), nullable=False)
    color = db.Column(db.String(16), nullable=False, default=DEFAULT_LABEL_COLOR)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "name_key", name="uq_label_user_name_key"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "color": self.color,
            "created_at": self.created_at.isoformat(),
        }


class SystemSetting(db.Model):
    __tablename__ = "system_settings"

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class ApiToken(db.Model):
    __tablename__ = "api_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_tokens")

    @staticmethod
    def issue_token(prefix="tc"):
        token = f"{prefix}_{secrets.token_urlsafe(32)}"
        return token, hash_token(token)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
