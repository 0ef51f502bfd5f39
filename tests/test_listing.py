from datetime import datetime, timedelta, timezone

from conftest import api_headers, create_user
from werkzeug.datastructures import MultiDict

from app.extensions import db
from app.models import Bookmark
from app.services import bookmarks as bookmark_store
from app.services import labels as label_store
from app.services.query import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    SORT_NEWEST,
    SORT_OLDEST,
    ListingQuery,
    escape_like,
)


BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def add_bookmark(user, slug, minutes=0, memo=None, author="Alice", labels=()):
    bookmark = Bookmark(
        user_id=user.id,
        original_url=f"https://www.threads.net/@{author.lower()}/post/{slug}",
        author_name=author,
        author_username=author.lower(),
        memo=memo,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        updated_at=BASE_TIME + timedelta(minutes=minutes),
    )
    bookmark.labels = list(labels)
    db.session.add(bookmark)
    db.session.commit()
    return bookmark


def ids(page):
    return [item.id for item in page.items]


def test_default_listing_is_newest_first(app):
    with app.app_context():
        user = create_user("u1")
        old = add_bookmark(user, "a", minutes=0)
        mid = add_bookmark(user, "b", minutes=5)
        new = add_bookmark(user, "c", minutes=10)

        page = bookmark_store.list_bookmarks(user)
        assert ids(page) == [new.id, mid.id, old.id]

        page = bookmark_store.list_bookmarks(user, ListingQuery(sort=SORT_OLDEST))
        assert ids(page) == [old.id, mid.id, new.id]


def test_equal_timestamps_have_stable_order(app):
    with app.app_context():
        user = create_user("u1")
        first = add_bookmark(user, "a", minutes=1)
        second = add_bookmark(user, "b", minutes=1)
        third = add_bookmark(user, "c", minutes=1)

        newest = ids(bookmark_store.list_bookmarks(user))
        oldest = ids(
            bookmark_store.list_bookmarks(user, ListingQuery(sort=SORT_OLDEST))
        )

        assert newest == [third.id, second.id, first.id]
        assert oldest == [first.id, second.id, third.id]

        paged = [
            ids(bookmark_store.list_bookmarks(user, ListingQuery(limit=1, offset=n)))[0]
            for n in range(3)
        ]
        assert paged == newest


def test_listing_is_scoped_to_owner(app):
    with app.app_context():
        alice = create_user("alice")
        bob = create_user("bob")
        add_bookmark(alice, "a", memo="shared words")
        add_bookmark(bob, "b", memo="shared words")

        page = bookmark_store.list_bookmarks(alice, ListingQuery(search="shared"))
        assert page.total == 1
        assert page.items[0].user_id == alice.id


def test_search_matches_memo_author_and_label_names(app):
    with app.app_context():
        user = create_user("u1")
        design = label_store.create_label(user, "Design")
        by_memo = add_bookmark(user, "a", minutes=0, memo="Read this LATER")
        by_author = add_bookmark(user, "b", minutes=1, author="Laterman")
        by_label = add_bookmark(user, "c", minutes=2, author="Zed", labels=[design])
        add_bookmark(user, "d", minutes=3, author="Nobody", memo="unrelated")

        later = bookmark_store.list_bookmarks(user, ListingQuery(search="later"))
        assert set(ids(later)) == {by_memo.id, by_author.id}

        sign = bookmark_store.list_bookmarks(user, ListingQuery(search="SIGN"))
        assert ids(sign) == [by_label.id]


def test_search_treats_wildcards_literally(app):
    with app.app_context():
        user = create_user("u1")
        percent = add_bookmark(user, "a", memo="100% worth it")
        add_bookmark(user, "b", memo="1000 words")
        underscore = add_bookmark(user, "c", memo="snake_case")
        add_bookmark(user, "d", memo="snakeXcase")

        page = bookmark_store.list_bookmarks(user, ListingQuery(search="0%"))
        assert ids(page) == [percent.id]

        page = bookmark_store.list_bookmarks(user, ListingQuery(search="e_c"))
        assert ids(page) == [underscore.id]


def test_search_keeps_surrounding_spaces(app):
    with app.app_context():
        user = create_user("u1")
        spaced = add_bookmark(user, "a", memo="foo bar")
        add_bookmark(user, "b", memo="foobar")

        page = bookmark_store.list_bookmarks(user, ListingQuery(search="foo "))
        assert ids(page) == [spaced.id]

        blank = bookmark_store.list_bookmarks(user, ListingQuery(search="   "))
        assert blank.total == 2


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_label_filter(app):
    with app.app_context():
        user = create_user("u1")
        tech = label_store.create_label(user, "Tech")
        art = label_store.create_label(user, "Art")
        tagged = add_bookmark(user, "a", labels=[tech, art])
        add_bookmark(user, "b", labels=[art])
        add_bookmark(user, "c")

        page = bookmark_store.list_bookmarks(user, ListingQuery(label_id=tech.id))
        assert ids(page) == [tagged.id]
        assert [label.name for label in page.items[0].labels] == ["Art", "Tech"]


def test_pagination_totals_and_has_more(app):
    with app.app_context():
        user = create_user("u1")
        for n in range(5):
            add_bookmark(user, str(n), minutes=n)

        first = bookmark_store.list_bookmarks(user, ListingQuery(limit=2))
        assert (len(first.items), first.total, first.has_more) == (2, 5, True)

        last = bookmark_store.list_bookmarks(user, ListingQuery(limit=2, offset=4))
        assert (len(last.items), last.total, last.has_more) == (1, 5, False)

        past_end = bookmark_store.list_bookmarks(user, ListingQuery(offset=50))
        assert past_end.items == ()
        assert past_end.has_more is False


def test_listing_query_clamps_and_normalizes():
    query = ListingQuery(search="  hi  ", sort="sideways", limit=0, offset=-3)
    assert query.search == "  hi  "
    assert query.sort == SORT_NEWEST
    assert query.limit == 1
    assert query.offset == 0

    assert ListingQuery(limit=10_000).limit == MAX_PAGE_LIMIT


def test_listing_query_from_args():
    query = ListingQuery.from_args(
        MultiDict({"search": "cats", "sortOrder": "OLDEST", "tagId": "7", "limit": "5"})
    )
    assert query == ListingQuery(
        search="cats", label_id=7, sort=SORT_OLDEST, limit=5, offset=0
    )

    fallback = ListingQuery.from_args(
        MultiDict({"label_id": "abc", "limit": "many", "offset": "x"})
    )
    assert fallback.label_id is None
    assert fallback.limit == DEFAULT_PAGE_LIMIT
    assert fallback.offset == 0


def test_listing_over_http(client, app):
    with app.app_context():
        user = create_user("u1", storage_limit=50)
        auth = api_headers(user)
        for n in range(3):
            add_bookmark(user, str(n), minutes=n, memo=f"note {n}")

    response = client.get(
        "/api/v1/bookmarks?limit=2&sort=oldest&search=NOTE", headers=auth
    )

    assert response.status_code == 200
    body = response.get_json()
    assert [item["memo"] for item in body["items"]] == ["note 0", "note 1"]
    assert body["total"] == 3
    assert body["has_more"] is True
    assert body["storage_limit"] == 50
