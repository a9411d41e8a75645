import os
import re
import sys
from datetime import timedelta
from pathlib import Path

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from identity.codec import TokenCodec  # noqa: E402
from identity.credentials import CredentialVerifier  # noqa: E402
from identity.errors import NotificationFailed  # noqa: E402
from identity.notifications import ACTIVATION_SUBJECT, NotificationDispatcher  # noqa: E402
from identity.session_manager import SessionManager  # noqa: E402
from identity.settings import AuthSettings  # noqa: E402
from models.db_storage import DBStorage  # noqa: E402


LINK_RE = re.compile(r"https?://\S+")


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every rendered message instead of sending it; can be told to fail."""

    def __init__(self, base_url="http://testserver"):
        super().__init__(base_url)
        self.sent = []
        self.fail = False

    def deliver(self, to_address, subject, body):
        if self.fail:
            raise NotificationFailed()
        link = LINK_RE.search(body).group(0)
        self.sent.append({
            "kind": "activation" if subject == ACTIVATION_SUBJECT else "reset",
            "email": to_address,
            "subject": subject,
            "body": body,
            "link": link,
            "token": link.rsplit("/", 1)[1],
        })

    def last_token(self, kind):
        for message in reversed(self.sent):
            if message["kind"] == kind:
                return message["token"]
        raise AssertionError(f"no {kind} message was sent")


@pytest.fixture
def settings():
    """Test settings with a cheap argon2 work factor."""
    return AuthSettings(
        signing_secret="Test-Secret-Key_for-Automation-Only-987654321!",
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=1),
        activation_ttl=timedelta(hours=1),
        reset_ttl=timedelta(hours=1),
        base_url="http://testserver",
        argon2_time_cost=1,
        argon2_memory_cost=1024,
        argon2_parallelism=1,
    )


@pytest.fixture
def storage(tmp_path):
    """File-backed SQLite so separate threads get separate connections."""
    db = DBStorage(f"sqlite:///{tmp_path / 'identity.db'}")
    db.reload()
    yield db
    db.dispose()


@pytest.fixture
def codec(settings):
    return TokenCodec(settings)


@pytest.fixture
def credentials(settings):
    return CredentialVerifier.from_settings(settings)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def manager(settings, storage, dispatcher, codec, credentials):
    return SessionManager(settings, storage, dispatcher, codec=codec, credentials=credentials)


@pytest.fixture
def registered(manager, dispatcher):
    """alice, registered but not yet activated."""
    user = manager.register("alice", "alice@x.com", "Secret1!")
    return {"user": user, "activation_token": dispatcher.last_token("activation")}


@pytest.fixture
def active_user(manager, registered):
    """alice, activated."""
    manager.activate(registered["activation_token"])
    return registered["user"]


@pytest.fixture
def app(tmp_path, dispatcher):
    from api import create_app
    from models import storage as app_storage

    app = create_app(
        "test",
        overrides={"DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}"},
        dispatcher=dispatcher,
    )
    yield app
    app_storage.dispose()


@pytest.fixture
def client(app):
    return app.test_client()
