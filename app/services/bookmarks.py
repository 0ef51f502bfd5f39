from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models import MEMO_MAX_LENGTH, Bookmark, User, utcnow
from app.services import notices
from app.services.common import get_owned_or_raise, normalize_memo, parse_id_list
from app.services.errors import Duplicate, QuotaExceeded, ValidationError
from app.services.labels import resolve_owned_labels
from app.services.links import canonicalize_post_url, is_valid_post_url
from app.services.preview import fetch_preview, require_preview
from app.services.query import BookmarkPage, BookmarkView, ListingQuery, run_listing


def _find_existing(user: User, canonical_url: str) -> Bookmark | None:
    return Bookmark.query.filter_by(user_id=user.id, original_url=canonical_url).first()


def _lock_user(user: User) -> User:
    # Serializes concurrent saves for one user where the backend supports it.
    return (
        db.session.query(User)
        .filter_by(id=user.id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def _check_quota(user: User, limit: int) -> None:
    count = Bookmark.query.filter_by(user_id=user.id).count()
    if count >= limit:
        current_app.logger.info(
            "User %s hit storage limit (%s/%s)", user.id, count, limit
        )
        raise QuotaExceeded(limit)


def _check_duplicate(user: User, canonical_url: str) -> None:
    existing = _find_existing(user, canonical_url)
    if existing:
        raise Duplicate("Post already saved", existing.id)


def create_bookmark(user: User, url, memo=None, label_ids=None) -> BookmarkView:
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url is required")
    if not is_valid_post_url(url):
        raise ValidationError("Invalid post URL")
    memo = normalize_memo(memo, MEMO_MAX_LENGTH)
    label_ids = parse_id_list(label_ids)

    config = current_app.config
    canonical_url = canonicalize_post_url(url, config["CANONICAL_POST_HOST"])

    _check_quota(user, user.storage_limit)
    _check_duplicate(user, canonical_url)
    resolve_owned_labels(user, label_ids)

    # Checks repeat under the lock once the preview is in.
    db.session.commit()
    preview = require_preview(
        canonical_url,
        endpoint=config["PREVIEW_ENDPOINT"],
        user_agent=config["PREVIEW_USER_AGENT"],
        timeout=config["PREVIEW_TIMEOUT"],
    )

    locked = _lock_user(user)
    _check_quota(user, locked.storage_limit)
    _check_duplicate(user, canonical_url)
    labels = resolve_owned_labels(user, label_ids)

    bookmark = Bookmark(
        user_id=user.id,
        original_url=canonical_url,
        content_snippet=preview.content_snippet,
        image_url=preview.image_url,
        author_name=preview.author_name,
        author_username=preview.author_username,
        memo=memo,
    )
    bookmark.labels = labels
    db.session.add(bookmark)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _find_existing(user, canonical_url)
        raise Duplicate("Post already saved", existing.id if existing else None) from None

    current_app.logger.info("User %s saved bookmark %s", user.id, bookmark.id)
    notices.publish(
        notices.NOTICE_BOOKMARK_SAVED, "Post saved", bookmark_id=bookmark.id
    )
    return BookmarkView.from_model(bookmark)


def list_bookmarks(user: User, query: ListingQuery | None = None) -> BookmarkPage:
    return run_listing(user, query or ListingQuery())


def get_bookmark(user: User, bookmark_id: int) -> BookmarkView:
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    return BookmarkView.from_model(bookmark)


def update_memo(user: User, bookmark_id: int, memo) -> BookmarkView:
    memo = normalize_memo(memo, MEMO_MAX_LENGTH)
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    bookmark.memo = memo
    bookmark.updated_at = utcnow()
    db.session.commit()
    notices.publish(
        notices.NOTICE_MEMO_UPDATED, "Memo updated", bookmark_id=bookmark.id
    )
    return BookmarkView.from_model(bookmark)


def set_bookmark_labels(user: User, bookmark_id: int, label_ids) -> BookmarkView:
    label_ids = parse_id_list(label_ids)
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    bookmark.labels = resolve_owned_labels(user, label_ids)
    bookmark.updated_at = utcnow()
    db.session.commit()
    notices.publish(
        notices.NOTICE_BOOKMARK_LABELS_UPDATED,
        "Labels updated",
        bookmark_id=bookmark.id,
    )
    return BookmarkView.from_model(bookmark)


def refresh_preview(user: User, bookmark_id: int) -> BookmarkView:
    """Re-read author, snippet and image from the embed endpoint.

    An unreachable endpoint leaves the stored preview as it was.
    """
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    url = bookmark.original_url
    db.session.commit()

    config = current_app.config
    preview = fetch_preview(
        url,
        endpoint=config["PREVIEW_ENDPOINT"],
        user_agent=config["PREVIEW_USER_AGENT"],
        timeout=config["PREVIEW_TIMEOUT"],
    )
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    if preview is None:
        return BookmarkView.from_model(bookmark)

    bookmark.author_name = preview.author_name
    bookmark.author_username = preview.author_username
    bookmark.content_snippet = preview.content_snippet
    bookmark.image_url = preview.image_url
    bookmark.updated_at = utcnow()
    db.session.commit()
    notices.publish(
        notices.NOTICE_PREVIEW_REFRESHED, "Preview refreshed", bookmark_id=bookmark.id
    )
    return BookmarkView.from_model(bookmark)


def delete_bookmark(user: User, bookmark_id: int) -> None:
    bookmark = get_owned_or_raise(Bookmark, user, bookmark_id, "Bookmark")
    db.session.delete(bookmark)
    db.session.commit()
    current_app.logger.info("User %s deleted bookmark %s", user.id, bookmark_id)
    notices.publish(
        notices.NOTICE_BOOKMARK_DELETED, "Post deleted", bookmark_id=bookmark_id
    )


def storage_usage(user: User) -> dict:
    return {
        "count": Bookmark.query.filter_by(user_id=user.id).count(),
        "limit": user.storage_limit,
    }
