import os
import tempfile
from dataclasses import dataclass

import pytest

# Point the app at a throwaway database before anything imports config
_TMP_DIR = tempfile.mkdtemp(prefix="teamboard-tests-")
os.environ["TEAMBOARD_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["TEAMBOARD_LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["TEAMBOARD_BCRYPT_ROUNDS"] = "4"

from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
import models  # noqa: E402
from database import engine  # noqa: E402

PASSWORD = "correct-horse-battery"


@dataclass
class Account:
    id: int
    name: str
    email: str
    role: str
    token: str

    @property
    def headers(self):
        return {"X-Session-Token": self.token}


class Api:
    """Thin helpers over the TestClient for setting up users and resources."""

    def __init__(self, client: TestClient):
        self.client = client

    def signup(self, name, role=None, by=None, manager_email=None):
        email = f"{name.lower().replace(' ', '.')}@teamboard.io"
        body = {"name": name, "email": email, "password": PASSWORD}
        if role is not None:
            body["role"] = role
        headers = by.headers if by else {}
        return self.client.post("/users", json=body, headers=headers)

    def login(self, email, password=PASSWORD):
        r = self.client.post("/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return r.json()["sessionToken"]

    def account(self, name, role=None, by=None) -> Account:
        r = self.signup(name, role=role, by=by)
        assert r.status_code == 201, r.text
        user = r.json()
        return Account(
            id=user["id"],
            name=user["name"],
            email=user["email"],
            role=user["role"],
            token=self.login(user["email"]),
        )

    def project(self, by, name="Apollo", **extra):
        body = {"name": name, "startDate": "2024-03-01", **extra}
        r = self.client.post("/projects", json=body, headers=by.headers)
        assert r.status_code == 201, r.text
        return r.json()

    def team(self, by, leader, project_ids, name="Core", members=()):
        body = {"name": name, "projectIds": project_ids, "leaderId": leader.id}
        r = self.client.post("/teams", json=body, headers=by.headers)
        assert r.status_code == 201, r.text
        team = r.json()
        for member in members:
            r = self.client.post(
                f"/teams/{team['id']}/members", json={"userId": member.id}, headers=by.headers
            )
            assert r.status_code == 201, r.text
        return team

    def task(self, by, title="Write docs", **extra):
        r = self.client.post("/tasks", json={"title": title, **extra}, headers=by.headers)
        assert r.status_code == 201, r.text
        return r.json()

    def issue(self, by, title="Blocked", description="Waiting on review", **extra):
        body = {"title": title, "description": description, **extra}
        r = self.client.post("/issues", json=body, headers=by.headers)
        assert r.status_code == 201, r.text
        return r.json()


@pytest.fixture
def client():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def api(client):
    return Api(client)


@pytest.fixture
def head(api):
    # The first account in an empty system is always HEAD
    return api.account("Hana Head")


@pytest.fixture
def manager(api, head):
    return api.account("Mo Manager", role="MANAGER", by=head)


@pytest.fixture
def employee(api, manager):
    # Created by the manager, so it reports to them
    return api.account("Eve Employee", role="EMPLOYEE", by=manager)


@pytest.fixture
def outsider(api, head):
    return api.account("Oscar Outsider", role="EMPLOYEE", by=head)
