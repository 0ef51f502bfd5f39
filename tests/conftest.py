import httpx
import pytest

from app import create_app
from app.config import TestConfig
from app.extensions import db
from app.models import ApiToken, User


DEFAULT_EMBED_BODY = {
    "author_name": "Alice",
    "author_url": "https://www.threads.com/@alice",
    "html": "<blockquote><p>Hello<br/>world &amp; friends</p></blockquote>",
    "thumbnail_url": "https://cdn.example/thumb.jpg",
    "provider_name": "Threads",
}


class FakeEmbedEndpoint:
    def __init__(self):
        self.status_code = 200
        self.body = dict(DEFAULT_EMBED_BODY)
        self.error = None
        self.requests = []

    def handler(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def embed(monkeypatch):
    endpoint = FakeEmbedEndpoint()
    real_client = httpx.Client

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(endpoint.handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr("app.services.preview.httpx.Client", client_factory)
    return endpoint


def create_user(name: str, storage_limit: int = 1000) -> User:
    user = User(
        auth_provider="google",
        auth_subject=f"sub-{name}",
        email=f"{name}@example.com",
        display_name=name.title(),
        storage_limit=storage_limit,
    )
    db.session.add(user)
    db.session.commit()
    return user


def api_headers(user: User) -> dict:
    token, token_hash = ApiToken.issue_token()
    db.session.add(ApiToken(user_id=user.id, name="pytest", token_hash=token_hash))
    db.session.commit()
    return {"Authorization": f"Bearer {token}"}
