"""Integration tests for registration, profile editing, follows and profile images."""
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
from outliers.routers import profiles as profiles_router  # noqa: E402
from outliers.services import StorageUploadResult, get_current_profile, get_optional_profile  # noqa: E402


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
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


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
def authed_client(client) -> Callable[[Profile], TestClient]:
    def _with_profile(profile: Profile) -> TestClient:
        def _override() -> Profile:
            return profile
        app.dependency_overrides[get_current_profile] = _override
        app.dependency_overrides[get_optional_profile] = _override
        return client
    return _with_profile


def test_register_login_and_me(client):
    registered = client.post(
        "/auth/register",
        json={"username": "marina", "password": "segredo-forte", "bio": "Economista"},
    )
    assert registered.status_code == 201
    body = registered.json()
    assert body["username"] == "marina"
    assert body["token_type"] == "bearer"

    duplicate = client.post("/auth/register", json={"username": "marina", "password": "outra-senha"})
    assert duplicate.status_code == 409

    assert client.post("/auth/login", json={"username": "marina", "password": "errada!!"}).status_code == 401

    login = client.post("/auth/login", json={"username": "marina", "password": "segredo-forte"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["bio"] == "Economista"
    assert me.json()["id"] == body["profile_id"]

    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_register_validates_input(client):
    assert client.post("/auth/register", json={"username": "ab", "password": "segredo-forte"}).status_code == 422
    assert client.post("/auth/register", json={"username": "com espaço", "password": "segredo-forte"}).status_code == 422
    assert client.post("/auth/register", json={"username": "marina", "password": "curta"}).status_code == 422


def test_owner_updates_profile(authed_client, profile_factory):
    marina = profile_factory("marina")
    client = authed_client(marina)

    updated = client.patch(
        "/profiles/me",
        json={"bio": "  Analista  ", "sector": "Finanças", "social_links": {"site": "https://marina.dev"}},
    )
    assert updated.status_code == 200
    payload = updated.json()
    assert payload["bio"] == "Analista"
    assert payload["sector"] == "Finanças"
    assert payload["social_links"] == {"site": "https://marina.dev"}

    assert client.patch("/profiles/me", json={}).status_code == 400
    assert client.get(f"/profiles/{marina.id}").json()["bio"] == "Analista"


def test_lookup_and_search(authed_client, profile_factory):
    marina = profile_factory("marina")
    profile_factory("mariano")
    profile_factory("joao")
    client = authed_client(marina)

    by_name = client.get("/profiles/by-username/mariano")
    assert by_name.status_code == 200
    assert by_name.json()["username"] == "mariano"
    assert client.get("/profiles/by-username/ninguem").status_code == 404

    found = client.get("/profiles/search", params={"q": "MARI"}).json()
    assert [item["username"] for item in found] == ["mariano", "marina"]
    assert client.get("/profiles/search", params={"q": ""}).json() == []


def test_search_treats_wildcards_literally(authed_client, profile_factory):
    marina = profile_factory("marina")
    profile_factory("ana_b")
    profile_factory("joao")
    client = authed_client(marina)

    assert client.get("/profiles/search", params={"q": "%"}).json() == []
    found = client.get("/profiles/search", params={"q": "a_"}).json()
    assert [item["username"] for item in found] == ["ana_b"]


def test_follow_toggle_counts_and_notifies(authed_client, profile_factory):
    marina = profile_factory("marina")
    joao = profile_factory("joao")

    assert authed_client(joao).post(f"/profiles/{joao.id}/follow").status_code == 400

    followed = authed_client(joao).post(f"/profiles/{marina.id}/follow")
    assert followed.json() == {"target_id": str(marina.id), "active": True, "count": 1}

    viewed = authed_client(joao).get(f"/profiles/{marina.id}").json()
    assert viewed["followers_count"] == 1
    assert viewed["is_following"] is True
    assert authed_client(joao).get(f"/profiles/{joao.id}").json()["following_count"] == 1

    followers = authed_client(joao).get(f"/profiles/{marina.id}/followers").json()
    assert [item["username"] for item in followers] == ["joao"]
    following = authed_client(joao).get(f"/profiles/{joao.id}/following").json()
    assert [item["username"] for item in following] == ["marina"]

    notifications = authed_client(marina).get("/notifications").json()["items"]
    assert [item["type"] for item in notifications] == ["follow"]

    unfollowed = authed_client(joao).post(f"/profiles/{marina.id}/follow")
    assert unfollowed.json() == {"target_id": str(marina.id), "active": False, "count": 0}


def test_avatar_upload_updates_profile(authed_client, profile_factory, monkeypatch):
    marina = profile_factory("marina")
    calls: list[tuple[str, str]] = []

    async def _fake_upload(file, *, bucket, folder, client=None):
        calls.append((bucket, folder))
        path = f"{folder}/avatar.jpg"
        return StorageUploadResult(
            bucket=bucket,
            path=path,
            url=f"https://cdn.example.test/{bucket}/{path}",
            content_type=file.content_type,
        )

    monkeypatch.setattr(profiles_router, "upload_file", _fake_upload)
    client = authed_client(marina)
    files = {"file": ("eu.jpg", b"\xff\xd8\xff", "image/jpeg")}

    avatar = client.post("/profiles/me/avatar", files=files)
    assert avatar.status_code == 200
    assert avatar.json()["avatar_url"] == f"https://cdn.example.test/avatars/{marina.id}/avatar.jpg"

    banner = client.post("/profiles/me/banner", files=files)
    assert banner.json()["banner_url"].startswith("https://cdn.example.test/banners/")

    assert client.post("/profiles/me/wallpaper", files=files).status_code == 404
    assert calls == [("avatars", str(marina.id)), ("banners", str(marina.id))]
