from typing import Any, Dict, List

import pytest
import requests
from langchain_core.messages import AIMessage
from starlette.testclient import TestClient

from pricescan.common.tools.ReAct_agent import get_agent
from pricescan.db import CRUD
from pricescan.db.database import SessionLocal
from pricescan.main import app


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self) -> Any:
        return self._payload


class FakeHttp:
    """
    Stands in for requests.get / requests.post. Routes are matched by URL
    substring; anything unrouted fails like an unreachable host.
    """

    def __init__(self):
        self.routes: Dict[str, FakeResponse] = {}
        self.calls: List[str] = []

    def route(self, fragment: str, payload: Any, status_code: int = 200) -> None:
        self.routes[fragment] = FakeResponse(payload, status_code)

    def __call__(self, url: str, *args, **kwargs) -> FakeResponse:
        self.calls.append(url)
        for fragment, response in self.routes.items():
            if fragment in url:
                return response
        raise requests.ConnectionError(f"no route to {url}")


class FakeAgent:
    def __init__(self, reply: str = "Coca-Cola is cheapest at Amazon for $1.89."):
        self.reply = reply
        self.calls: List[Dict[str, Any]] = []

    def invoke(self, inputs: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"inputs": inputs, "config": config})
        return {"messages": [AIMessage(content=self.reply)]}


@pytest.fixture(autouse=True)
def fresh_db():
    CRUD.drop_db()
    CRUD.create_db()
    yield


@pytest.fixture(autouse=True)
def fake_http(monkeypatch) -> FakeHttp:
    http = FakeHttp()
    monkeypatch.setattr(requests, "get", http)
    monkeypatch.setattr(requests, "post", http)
    return http


@pytest.fixture
def seeded() -> None:
    with SessionLocal() as db:
        CRUD.seed_sample_data(db)


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fake_agent():
    agent = FakeAgent()
    app.dependency_overrides[get_agent] = lambda: agent
    yield agent
    app.dependency_overrides.pop(get_agent, None)


@pytest.fixture
def login(client: TestClient):
    def _login(user_id: str = "u1") -> Dict[str, Any]:
        resp = client.post(
            "/api/auth/login",
            json={"id": user_id, "email": f"{user_id}@example.com", "firstName": "Test"},
        )
        assert resp.status_code == 200
        return resp.json()

    return _login
