"""Integration tests for articles, comments and the notifications they raise."""
from __future__ import annotations

import os
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_outliers.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from outliers.database import Base, SessionLocal, engine  # noqa: E402
from outliers.main import app  # noqa: E402
from outliers.models import Profile  # noqa: E402
from outliers.services import get_current_profile, get_optional_profile  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture
def profile_factory() -> Callable[[str], Profile]:
    def _factory(username: str) -> Profile:
        with SessionLocal() as session:
            profile = Profile(username=username, hashed_password="test-hash")
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return profile
    return _factory


@pytest.fixture
def authed_client() -> Iterator[Callable[[Profile | None], TestClient]]:
    with TestClient(app) as client:
        def _with_profile(profile: Profile | None) -> TestClient:
            if profile is None:
                app.dependency_overrides.clear()
                return client

            def _override() -> Profile:
                return profile
            app.dependency_overrides[get_current_profile] = _override
            app.dependency_overrides[get_optional_profile] = _override
            return client
        yield _with_profile
    app.dependency_overrides.clear()


def _publish(client: TestClient, **fields) -> dict:
    payload = {"title": "Outliers", "content": "Quem foge da curva", **fields}
    response = client.post("/articles", json=payload)
    assert response.status_code == 201
    return response.json()


def test_article_crud_is_author_only(authed_client, profile_factory):
    author = profile_factory("author")
    reader = profile_factory("reader")

    article = _publish(authed_client(author), title="  Primeiro texto ")
    assert article["title"] == "Primeiro texto"
    assert article["author"]["username"] == "author"

    forbidden = authed_client(reader).patch(f"/articles/{article['id']}", json={"title": "Meu agora"})
    assert forbidden.status_code == 403
    assert authed_client(reader).delete(f"/articles/{article['id']}").status_code == 403

    client = authed_client(author)
    updated = client.patch(f"/articles/{article['id']}", json={"content": "Texto revisado"})
    assert updated.status_code == 200
    assert updated.json()["content"] == "Texto revisado"

    unchanged = client.patch(f"/articles/{article['id']}", json={"content": "Texto revisado"})
    assert unchanged.status_code == 400

    assert client.delete(f"/articles/{article['id']}").status_code == 204
    assert client.get(f"/articles/{article['id']}").status_code == 404


def test_drafts_are_visible_to_their_author_only(authed_client, profile_factory):
    author = profile_factory("author")
    reader = profile_factory("reader")
    published = _publish(authed_client(author), title="Publicado")
    draft = _publish(authed_client(author), title="Rascunho", published=False)

    own = authed_client(author).get("/articles", params={"author_id": str(author.id)}).json()["items"]
    assert {item["id"] for item in own} == {published["id"], draft["id"]}

    others = authed_client(reader).get("/articles").json()["items"]
    assert [item["id"] for item in others] == [published["id"]]
    assert authed_client(reader).get(f"/articles/{draft['id']}").status_code == 404

    anonymous = authed_client(None).get("/articles").json()["items"]
    assert [item["id"] for item in anonymous] == [published["id"]]


def test_search_matches_title_and_content(authed_client, profile_factory):
    author = profile_factory("author")
    client = authed_client(author)
    by_title = _publish(client, title="Mercado de capitais", content="Resumo")
    by_content = _publish(client, title="Ensaio", content="Sobre o MERCADO informal")
    _publish(client, title="Outro assunto", content="Nada a ver")

    results = client.get("/articles/search", params={"q": "mercado"}).json()["items"]
    assert {item["id"] for item in results} == {by_title["id"], by_content["id"]}
    assert client.get("/articles/search", params={"q": "   "}).json()["items"] == []


def test_search_treats_wildcards_literally(authed_client, profile_factory):
    author = profile_factory("author")
    client = authed_client(author)
    percent = _publish(client, title="Juros de 100% ao ano", content="Resumo")
    _publish(client, title="Inflação", content="Alta de 10 pontos")

    results = client.get("/articles/search", params={"q": "100%"}).json()["items"]
    assert [item["id"] for item in results] == [percent["id"]]
    wildcard = client.get("/articles/search", params={"q": "%"}).json()["items"]
    assert [item["id"] for item in wildcard] == [percent["id"]]
    assert client.get("/articles/search", params={"q": "_"}).json()["items"] == []


def test_likes_toggle_and_notify_only_other_authors(authed_client, profile_factory):
    author = profile_factory("author")
    fan = profile_factory("fan")
    article = _publish(authed_client(author))

    own_like = authed_client(author).post(f"/articles/{article['id']}/like")
    assert own_like.json() == {"target_id": article["id"], "active": True, "count": 1}
    assert authed_client(author).get("/notifications/summary").json() == {"unread_count": 0}

    fan_like = authed_client(fan).post(f"/articles/{article['id']}/like")
    assert fan_like.json()["count"] == 2
    detail = authed_client(fan).get(f"/articles/{article['id']}").json()
    assert detail["likes_count"] == 2
    assert detail["is_liked"] is True

    unlike = authed_client(fan).post(f"/articles/{article['id']}/like")
    assert unlike.json() == {"target_id": article["id"], "active": False, "count": 1}

    notifications = authed_client(author).get("/notifications").json()["items"]
    assert len(notifications) == 1
    assert notifications[0]["type"] == "like"
    assert notifications[0]["actor"]["username"] == "fan"
    assert notifications[0]["article_id"] == article["id"]


def test_saved_articles_round_trip(authed_client, profile_factory):
    author = profile_factory("author")
    reader = profile_factory("reader")
    article = _publish(authed_client(author))

    client = authed_client(reader)
    saved = client.post(f"/articles/{article['id']}/save")
    assert saved.json()["active"] is True
    listing = client.get("/articles/saved").json()["items"]
    assert [item["id"] for item in listing] == [article["id"]]
    assert listing[0]["is_saved"] is True

    client.post(f"/articles/{article['id']}/save")
    assert client.get("/articles/saved").json()["items"] == []


def test_comments_likes_and_moderation(authed_client, profile_factory):
    author = profile_factory("author")
    commenter = profile_factory("commenter")
    bystander = profile_factory("bystander")
    article = _publish(authed_client(author))

    created = authed_client(commenter).post(f"/articles/{article['id']}/comments", json={"content": " Ótimo! "})
    assert created.status_code == 201
    comment = created.json()
    assert comment["content"] == "Ótimo!"

    liked = authed_client(bystander).post(f"/comments/{comment['id']}/like")
    assert liked.json() == {"target_id": comment["id"], "active": True, "count": 1}

    listing = authed_client(bystander).get(f"/articles/{article['id']}/comments").json()
    assert listing[0]["likes_count"] == 1
    assert listing[0]["is_liked"] is True
    assert authed_client(bystander).get(f"/articles/{article['id']}").json()["comments_count"] == 1

    assert authed_client(bystander).delete(f"/comments/{comment['id']}").status_code == 403
    assert authed_client(author).delete(f"/comments/{comment['id']}").status_code == 204
    assert authed_client(author).get(f"/articles/{article['id']}/comments").json() == []

    summary = authed_client(author).get("/notifications/summary").json()
    assert summary == {"unread_count": 1}


def test_notifications_can_be_marked_read(authed_client, profile_factory):
    author = profile_factory("author")
    fans = [profile_factory(f"fan{index}") for index in range(3)]
    article = _publish(authed_client(author))
    for fan in fans:
        authed_client(fan).post(f"/articles/{article['id']}/like")

    client = authed_client(author)
    items = client.get("/notifications").json()["items"]
    assert len(items) == 3

    marked = client.post(f"/notifications/{items[0]['id']}/read")
    assert marked.status_code == 200
    assert marked.json()["read"] is True
    assert client.get("/notifications/summary").json() == {"unread_count": 2}

    assert authed_client(fans[0]).post(f"/notifications/{items[1]['id']}/read").status_code == 404

    assert authed_client(author).post("/notifications/mark-read").status_code == 204
    assert authed_client(author).get("/notifications/summary").json() == {"unread_count": 0}
