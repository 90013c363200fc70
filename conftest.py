# conftest.py
import json
import random
import string

import pytest
from fastapi.testclient import TestClient

from cafeapp.config import Settings
from cafeapp.main import create_app
from cafeapp.services.notify import NotificationRelay


class RecordingRelay(NotificationRelay):
    """Keeps every published message in memory; ``fail`` makes publish raise."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[tuple[str, dict]] = []

    def publish(self, channel: str, message: str) -> None:
        if self.fail:
            raise ConnectionError("relay down")
        self.messages.append((channel, json.loads(message)))

    def events(self, name: str) -> list[tuple[str, dict]]:
        return [(ch, m["data"]) for ch, m in self.messages if m["event"] == name]


@pytest.fixture
def settings():
    return Settings(APP_ENV="dev", APP_SECRET="test-secret", DB_URL="sqlite://", LOG_LEVEL="WARNING")

@pytest.fixture
def relay():
    return RecordingRelay()

@pytest.fixture
def app(settings, relay):
    # fresh in-memory database per test
    return create_app(settings, relay=relay)

@pytest.fixture
def base_url():
    return "http://testserver"

@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c

@pytest.fixture
def db(app):
    s = app.state.sessionmaker()
    try:
        yield s
    finally:
        s.close()

@pytest.fixture
def boot(client, base_url):
    r = client.post(f"{base_url}/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"
    return r.json()["data"]

@pytest.fixture
def auth_headers(client, base_url, boot):
    r = client.post(f"{base_url}/auth/login", json={"email": "admin@samplecafe.com", "password": "admin123"})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}

@pytest.fixture
def rng_suffix():
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
