from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from secrets import compare_digest

from flask import current_app, g, jsonify, request
from flask_login import current_user, login_user
from itsdangerous import BadData, URLSafeTimedSerializer

from app.extensions import db
from app.models import ApiToken, User, hash_token, utcnow
from app.services.errors import ValidationError
from app.services.settings import apply_signup_defaults


ASSERTION_SALT = "identity-assertion"
ADMIN_SALT = "admin-session"


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret_key=current_app.config["SECRET_KEY"], salt=salt
    )


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.removeprefix("Bearer ").strip() or None


@dataclass(frozen=True)
class IdentityClaims:
    provider: str
    subject: str
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None


class IdentityProvider:
    """What the rest of the app may ask of the login layer."""

    def current_user(self) -> User | None:
        raise NotImplementedError

    def on_signup(self, user: User) -> None:
        raise NotImplementedError


class SessionIdentityProvider(IdentityProvider):
    """Flask-Login session cookies, with API bearer tokens for other clients.

    The OAuth dance happens in front of this service. The gateway that runs it
    hands over a signed assertion of the provider identity, which
    :meth:`sign_in` turns into a local user and a session.
    """

    def current_user(self) -> User | None:
        if current_user.is_authenticated:
            return current_user._get_current_object()
        return self._user_from_bearer_token()

    def on_signup(self, user: User) -> None:
        apply_signup_defaults(user)

    def _user_from_bearer_token(self) -> User | None:
        token = _bearer_token()
        if not token:
            return None
        token_row = ApiToken.query.filter_by(token_hash=hash_token(token)).first()
        if not token_row or token_row.revoked_at is not None:
            return None
        if not token_row.user.is_active:
            return None
        token_row.last_used_at = utcnow()
        db.session.commit()
        return token_row.user

    def issue_assertion(self, claims: IdentityClaims) -> str:
        return _serializer(ASSERTION_SALT).dumps(
            {
                "provider": claims.provider,
                "subject": claims.subject,
                "email": claims.email,
                "name": claims.name,
                "avatar_url": claims.avatar_url,
            }
        )

    def verify_assertion(self, assertion: str) -> IdentityClaims | None:
        try:
            payload = _serializer(ASSERTION_SALT).loads(
                assertion, max_age=current_app.config["IDENTITY_ASSERTION_MAX_AGE"]
            )
        except BadData:
            return None
        if not isinstance(payload, dict):
            return None
        provider = str(payload.get("provider") or "").strip()
        subject = str(payload.get("subject") or "").strip()
        if not provider or not subject:
            return None
        return IdentityClaims(
            provider=provider,
            subject=subject,
            email=payload.get("email") or None,
            name=payload.get("name") or None,
            avatar_url=payload.get("avatar_url") or None,
        )

    def sign_in(self, claims: IdentityClaims) -> tuple[User, bool]:
        user = User.query.filter_by(
            auth_provider=claims.provider, auth_subject=claims.subject
        ).first()
        created = user is None
        if created:
            if claims.email and User.query.filter_by(email=claims.email).first():
                raise ValidationError("email is already linked to another account")
            user = User(
                auth_provider=claims.provider,
                auth_subject=claims.subject,
                email=claims.email,
                display_name=claims.name
                or (claims.email.split("@")[0] if claims.email else None),
                avatar_url=claims.avatar_url,
            )
            self.on_signup(user)
            db.session.add(user)
        else:
            if claims.name:
                user.display_name = claims.name
            if claims.avatar_url:
                user.avatar_url = claims.avatar_url
        db.session.commit()
        if not user.is_active:
            return user, created
        login_user(user, remember=True)
        current_app.logger.info(
            "User %s signed in via %s (new=%s)", user.id, claims.provider, created
        )
        return user, created


def identity_provider() -> IdentityProvider:
    return current_app.extensions["identity"]


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        user = identity_provider().current_user()
        if not user:
            return jsonify({"error": "Unauthorized"}), 401
        g.api_user = user
        return func(*args, **kwargs)

    return wrapped


def issue_admin_token(email: str) -> str:
    return _serializer(ADMIN_SALT).dumps({"admin": email})


def check_admin_credentials(email, password) -> bool:
    expected_email = current_app.config.get("ADMIN_EMAIL") or ""
    expected_password = current_app.config.get("ADMIN_PASSWORD") or ""
    if not expected_email or not expected_password:
        return False
    email_ok = compare_digest(str(email or "").encode(), expected_email.encode())
    password_ok = compare_digest(
        str(password or "").encode(), expected_password.encode()
    )
    return email_ok and password_ok


def admin_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        token = _bearer_token()
        payload = None
        if token:
            try:
                payload = _serializer(ADMIN_SALT).loads(
                    token, max_age=current_app.config["ADMIN_TOKEN_MAX_AGE"]
                )
            except BadData:
                payload = None
        admin_email = current_app.config.get("ADMIN_EMAIL")
        if (
            not admin_email
            or not isinstance(payload, dict)
            or payload.get("admin") != admin_email
        ):
            return jsonify({"error": "admin access required"}), 401
        g.admin_email = payload["admin"]
        return func(*args, **kwargs)

    return wrapped
