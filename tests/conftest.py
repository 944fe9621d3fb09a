import itertools
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import taskboard.models  # noqa: F401
from taskboard import users
from taskboard.db import Base, build_engine, get_db
from taskboard.main import app

TEST_DATABASE_URL = "sqlite://"
engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class Api:
    """TestClient wrapper that sends requests as a given profile."""

    def __init__(self, client: TestClient) -> None:
        self.client = client

    def request(self, method: str, url: str, user: Optional[str] = None, **kwargs):
        headers = kwargs.pop("headers", {})
        if user is not None:
            headers["Authorization"] = f"Bearer {user}"
        return self.client.request(method, url, headers=headers, **kwargs)

    def get(self, url, user=None, **kwargs):
        return self.request("GET", url, user, **kwargs)

    def post(self, url, user=None, **kwargs):
        return self.request("POST", url, user, **kwargs)

    def put(self, url, user=None, **kwargs):
        return self.request("PUT", url, user, **kwargs)

    def delete(self, url, user=None, **kwargs):
        return self.request("DELETE", url, user, **kwargs)

    def create_board(self, user: str, name: str = "Test Board", **fields) -> dict:
        res = self.post("/api/boards", user, json={"name": name, **fields})
        assert res.status_code == 201, res.text
        return res.json()["data"]

    def add_member(self, user: str, board_id: str, member_id: str, role: str = "editor") -> dict:
        res = self.post(f"/api/boards/{board_id}/members", user, json={"user_id": member_id, "role": role})
        assert res.status_code == 201, res.text
        return res.json()["data"]

    def create_list(self, user: str, board_id: str, name: str) -> dict:
        res = self.post(f"/api/boards/{board_id}/lists", user, json={"name": name})
        assert res.status_code == 201, res.text
        return res.json()["data"]

    def create_task(self, user: str, board_id: str, list_id: str, title: str = "Test Task", **fields) -> dict:
        res = self.post(f"/api/boards/{board_id}/tasks", user, json={"title": title, "list_id": list_id, **fields})
        assert res.status_code == 201, res.text
        return res.json()["data"]


@pytest.fixture
def api() -> Api:
    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield Api(TestClient(app))
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session):
    counter = itertools.count(1)

    def _make(first_name: str = "Test", last_name: str = "User", email: Optional[str] = None) -> str:
        n = next(counter)
        profile = users.create_profile(
            db_session,
            email=email or f"user{n}@test.com",
            first_name=first_name,
            last_name=last_name,
        )
        return profile.id

    return _make


@pytest.fixture
def owner(make_user) -> str:
    return make_user("Owner", "One")


@pytest.fixture
def board(api: Api, owner: str) -> dict:
    return api.create_board(owner, "Test Board")


@pytest.fixture
def roles(api: Api, board: dict, owner: str, make_user) -> dict:
    """A profile for each board role plus an outsider, keyed by role name."""
    people = {"owner": owner}
    for role in ("admin", "editor", "viewer"):
        people[role] = make_user(role.capitalize(), "Member")
        api.add_member(owner, board["id"], people[role], role)
    people["stranger"] = make_user("Stranger", "Outside")
    return people
