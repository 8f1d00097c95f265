import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, os.fspath(ROOT))

from config import load_settings  # noqa: E402
from models import NotifyChannel  # noqa: E402
from services.classifier import DistrictClassifier  # noqa: E402
from services.errors import NotificationSendFailure  # noqa: E402
from services.notifier import MailtoRelay  # noqa: E402
from services.store import InMemoryRecordStore  # noqa: E402
from utils.data_loader import load_gazetteer, load_collection  # noqa: E402

DATA_DIR = ROOT / "database"


class RecordingRelay:
    """Stands in for the e-mail relay and remembers every send."""

    channel = NotifyChannel.RELAY

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[tuple] = []

    def send(self, to_address: str, subject: str, body: str):
        self.calls.append((to_address, subject, body))
        if self.fail:
            raise NotificationSendFailure("relay unavailable")
        return None


@pytest.fixture(scope="session")
def gazetteer():
    return load_gazetteer(str(DATA_DIR / "districts.json"))


@pytest.fixture(scope="session")
def classifier(gazetteer):
    return DistrictClassifier(gazetteer)


@pytest.fixture
def seed_documents() -> Dict[str, List[Dict[str, Any]]]:
    return {
        name: load_collection(str(DATA_DIR / f"{name}.json"), name)
        for name in ("incidents", "aid_requests", "detention_camps", "volunteers")
    }


@pytest.fixture
def store(seed_documents):
    return InMemoryRecordStore(seed_documents)


@pytest.fixture
def relay():
    return RecordingRelay()


@pytest.fixture
def settings():
    return dataclasses.replace(
        load_settings(),
        data_dir=DATA_DIR,
        admin_username="admin",
        admin_password="admin123",
        notify_channel="relay",
        utc_offset_minutes=330,
    )


@pytest.fixture
def app(settings, store, relay):
    from main import create_app

    return create_app(settings, store=store, relays={NotifyChannel.RELAY: relay, NotifyChannel.MAILTO: MailtoRelay()})


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    r = client.post("/login", data={"username": "admin", "password": "admin123"})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}
