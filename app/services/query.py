from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from app.models import Bookmark, Label, User


SORT_NEWEST = "newest"
SORT_OLDEST = "oldest"
SORT_ORDERS = {SORT_NEWEST, SORT_OLDEST}

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
LIKE_ESCAPE = "\\"


def _to_int(value, default: int | None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_LIMIT
    return max(1, min(limit, MAX_PAGE_LIMIT))


def clamp_offset(offset: int | None) -> int:
    return max(0, offset or 0)


@dataclass(frozen=True)
class ListingQuery:
    search: str = ""
    label_id: int | None = None
    sort: str = SORT_NEWEST
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0

    def __post_init__(self):
        # Frozen, so normalize through object.__setattr__.
        object.__setattr__(self, "search", self.search or "")
        if self.sort not in SORT_ORDERS:
            object.__setattr__(self, "sort", SORT_NEWEST)
        object.__setattr__(self, "limit", clamp_limit(self.limit))
        object.__setattr__(self, "offset", clamp_offset(self.offset))

    @classmethod
    def from_args(cls, args) -> "ListingQuery":
        sort = (args.get("sort") or args.get("sortOrder") or SORT_NEWEST).strip()
        label_raw = args.get("label_id") or args.get("tagId")
        return cls(
            search=args.get("search") or "",
            label_id=_to_int(label_raw, None),
            sort=sort.lower(),
            limit=_to_int(args.get("limit"), DEFAULT_PAGE_LIMIT),
            offset=_to_int(args.get("offset"), 0),
        )


@dataclass(frozen=True)
class LabelView:
    id: int
    name: str
    color: str

    @classmethod
    def from_model(cls, label: Label) -> "LabelView":
        return cls(id=label.id, name=label.name, color=label.color)

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass(frozen=True)
class BookmarkView:
    id: int
    user_id: int
    original_url: str
    content_snippet: str | None
    image_url: str | None
    author_name: str | None
    author_username: str | None
    memo: str | None
    created_at: datetime
    updated_at: datetime
    labels: tuple[LabelView, ...]

    @classmethod
    def from_model(cls, bookmark: Bookmark) -> "BookmarkView":
        return cls(
            id=bookmark.id,
            user_id=bookmark.user_id,
            original_url=bookmark.original_url,
            content_snippet=bookmark.content_snippet,
            image_url=bookmark.image_url,
            author_name=bookmark.author_name,
            author_username=bookmark.author_username,
            memo=bookmark.memo,
            created_at=bookmark.created_at,
            updated_at=bookmark.updated_at,
            labels=tuple(LabelView.from_model(label) for label in bookmark.labels),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "original_url": self.original_url,
            "content_snippet": self.content_snippet,
            "image_url": self.image_url,
            "author_name": self.author_name,
            "author_username": self.author_username,
            "memo": self.memo,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "labels": [label.as_dict() for label in self.labels],
        }


@dataclass(frozen=True)
class BookmarkPage:
    items: tuple[BookmarkView, ...]
    total: int
    has_more: bool
    limit: int
    offset: int

    def as_dict(self) -> dict:
        return {
            "items": [item.as_dict() for item in self.items],
            "total": self.total,
            "has_more": self.has_more,
            "limit": self.limit,
            "offset": self.offset,
        }


def escape_like(text: str) -> str:
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def search_clause(search: str):
    """Case-insensitive literal substring match across the searchable fields."""
    pattern = f"%{escape_like(search)}%"
    return or_(
        Bookmark.memo.ilike(pattern, escape=LIKE_ESCAPE),
        Bookmark.author_name.ilike(pattern, escape=LIKE_ESCAPE),
        Bookmark.author_username.ilike(pattern, escape=LIKE_ESCAPE),
        Bookmark.labels.any(Label.name.ilike(pattern, escape=LIKE_ESCAPE)),
    )


def build_listing(user: User, query: ListingQuery):
    statement = Bookmark.query.filter(Bookmark.user_id == user.id)
    if query.search.strip():
        statement = statement.filter(search_clause(query.search))
    if query.label_id is not None:
        statement = statement.filter(Bookmark.labels.any(Label.id == query.label_id))
    return statement


def ordered(statement, sort: str):
    if sort == SORT_OLDEST:
        return statement.order_by(Bookmark.created_at.asc(), Bookmark.id.asc())
    return statement.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())


def run_listing(user: User, query: ListingQuery) -> BookmarkPage:
    statement = build_listing(user, query)
    total = statement.order_by(None).count()
    rows = (
        ordered(statement, query.sort)
        .options(selectinload(Bookmark.labels))
        .offset(query.offset)
        .limit(query.limit)
        .all()
    )
    items = tuple(BookmarkView.from_model(row) for row in rows)
    return BookmarkPage(
        items=items,
        total=total,
        has_more=query.offset + len(items) < total,
        limit=query.limit,
        offset=query.offset,
    )
