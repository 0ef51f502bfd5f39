import pytest
from conftest import api_headers, create_user

from app.extensions import db
from app.models import DEFAULT_LABEL_COLOR, Bookmark, Label
from app.services import bookmarks as bookmark_store
from app.services import labels as label_store
from app.services.errors import Duplicate, Forbidden, NotFound, ValidationError


POST_URL = "https://www.threads.net/@alice/post/1"


def test_create_label_defaults_color_and_trims_name(app):
    with app.app_context():
        user = create_user("u1")
        label = label_store.create_label(user, "  Tech  ")

        assert label.name == "Tech"
        assert label.name_key == "tech"
        assert label.color == DEFAULT_LABEL_COLOR


def test_label_names_are_unique_per_user_ignoring_case(app):
    with app.app_context():
        alice = create_user("alice")
        bob = create_user("bob")
        first = label_store.create_label(alice, "Tech")

        with pytest.raises(Duplicate) as excinfo:
            label_store.create_label(alice, "TECH")
        assert excinfo.value.existing_id == first.id

        label_store.create_label(bob, "Tech")
        assert Label.query.count() == 2


def test_rename_to_own_name_in_other_case_succeeds(app):
    with app.app_context():
        user = create_user("u1")
        label = label_store.create_label(user, "Tech")

        renamed = label_store.rename_label(user, label.id, "tech")

        assert renamed.name == "tech"
        with pytest.raises(Duplicate):
            label_store.create_label(user, "TECH")


def test_rename_onto_another_label_is_duplicate(app):
    with app.app_context():
        user = create_user("u1")
        label_store.create_label(user, "Tech")
        art = label_store.create_label(user, "Art")

        with pytest.raises(Duplicate):
            label_store.rename_label(user, art.id, "tech")
        assert db.session.get(Label, art.id).name == "Art"


def test_label_validation(app):
    with app.app_context():
        user = create_user("u1")
        with pytest.raises(ValidationError):
            label_store.create_label(user, "   ")
        with pytest.raises(ValidationError):
            label_store.create_label(user, "x" * 65)
        with pytest.raises(ValidationError):
            label_store.create_label(user, "Ok", color="purple")
        label = label_store.create_label(user, "Ok", color="#123abc")
        assert label.color == "#123abc"


def test_list_labels_is_ordered_by_name(app):
    with app.app_context():
        user = create_user("u1")
        for name in ["beta", "Alpha", "gamma"]:
            label_store.create_label(user, name)

        assert [label.name for label in label_store.list_labels(user)] == [
            "Alpha",
            "beta",
            "gamma",
        ]


def test_label_ownership_checks(app):
    with app.app_context():
        alice = create_user("alice")
        bob = create_user("bob")
        label = label_store.create_label(alice, "Tech")

        with pytest.raises(Forbidden):
            label_store.rename_label(bob, label.id, "Mine")
        with pytest.raises(Forbidden):
            label_store.delete_label(bob, label.id)
        with pytest.raises(NotFound):
            label_store.delete_label(alice, 9999)


def test_delete_label_keeps_bookmarks(app, embed):
    with app.app_context():
        user = create_user("u1")
        label = label_store.create_label(user, "Tech")
        view = bookmark_store.create_bookmark(user, POST_URL, label_ids=[label.id])

        label_store.delete_label(user, label.id)

        assert Bookmark.query.filter_by(user_id=user.id).count() == 1
        assert bookmark_store.get_bookmark(user, view.id).labels == ()


def test_label_counts(app, embed):
    with app.app_context():
        user = create_user("u1")
        tech = label_store.create_label(user, "Tech")
        art = label_store.create_label(user, "Art")
        bookmark_store.create_bookmark(user, POST_URL, label_ids=[tech.id])
        bookmark_store.create_bookmark(
            user, "https://www.threads.net/@bob/post/2", label_ids=[tech.id, art.id]
        )

        assert label_store.label_counts(user) == {tech.id: 2, art.id: 1}


def test_scenario_rename_case_then_conflict_over_http(client, app):
    with app.app_context():
        auth = api_headers(create_user("u1"))

    response = client.post("/api/v1/labels", headers=auth, json={"name": "Tech"})
    assert response.status_code == 201
    label_id = response.get_json()["id"]
    assert response.get_json()["color"] == DEFAULT_LABEL_COLOR

    response = client.patch(
        f"/api/v1/labels/{label_id}", headers=auth, json={"name": "tech"}
    )
    assert response.status_code == 200
    assert response.get_json()["name"] == "tech"

    response = client.post("/api/v1/labels", headers=auth, json={"name": "TECH"})
    assert response.status_code == 409

    response = client.post("/api/v1/labels", headers=auth, json={"name": ""})
    assert response.status_code == 400


def test_label_listing_over_http(client, app, embed):
    with app.app_context():
        user = create_user("u1")
        auth = api_headers(user)
        label = label_store.create_label(user, "Tech")
        label_store.create_label(user, "Art")
        bookmark_store.create_bookmark(user, POST_URL, label_ids=[label.id])

    response = client.get("/api/v1/labels", headers=auth)

    assert response.status_code == 200
    items = response.get_json()["items"]
    assert [(item["name"], item["bookmark_count"]) for item in items] == [
        ("Art", 0),
        ("Tech", 1),
    ]


def test_delete_label_over_http(client, app):
    with app.app_context():
        alice = create_user("alice")
        alice_auth = api_headers(alice)
        bob_auth = api_headers(create_user("bob"))
        label_id = label_store.create_label(alice, "Tech").id

    assert client.delete(f"/api/v1/labels/{label_id}", headers=bob_auth).status_code == 403
    assert client.delete(f"/api/v1/labels/{label_id}", headers=alice_auth).status_code == 200
    assert client.delete(f"/api/v1/labels/{label_id}", headers=alice_auth).status_code == 404
