import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.account import Account, Role  # noqa: E402
from security.password import hash_password  # noqa: E402
from security.session import issue  # noqa: E402

GOOD_PASSWORD = "Correct-Horse-42!"
SIGNING_KEY = "test-signing-key-for-automation-only-0123456789"


class Outbox:
    """Credential dispatcher double that records deliveries."""

    def __init__(self):
        self.deliveries = []
        self.succeed = True

    def __call__(self, delivery):
        self.deliveries.append(delivery)
        if self.succeed:
            return True, None
        return False, "SMTP relay refused connection"


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def app(tmp_path, outbox):
    class IsolatedConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "auth.db")
        SQLALCHEMY_ENGINE_OPTIONS = {"pool_timeout": 5}
        SESSION_SIGNING_KEY = SIGNING_KEY
        BCRYPT_ROUNDS = 4
        LOGIN_RATE_MAX_REQUESTS = 1000
        LOG_LEVEL = "WARNING"
        LOG_JSON = False

    app = create_app(IsolatedConfig)
    app.extensions["credential_dispatcher"] = outbox

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_account(app):
    """Factory for accounts; pass password=None for an unprovisioned one."""

    def _make(role=Role.STUDENT, email=None, index_number=None, name="Test User",
              password=GOOD_PASSWORD, avatar_ref=None):
        account = Account(
            role=Role(role).value,
            email=email,
            index_number=index_number,
            name=name,
            avatar_ref=avatar_ref,
            password_hash=hash_password(password) if password else None,
        )
        db.session.add(account)
        db.session.commit()
        return account

    return _make


@pytest.fixture
def student(make_account):
    return make_account(
        role=Role.STUDENT,
        index_number="CS/ITC/21/0001",
        email="ama.mensah@students.example.edu",
        name="Ama Mensah",
    )


@pytest.fixture
def lecturer(make_account):
    return make_account(role=Role.LECTURER, email="k.owusu@example.edu", name="Kwame Owusu")


@pytest.fixture
def admin(make_account):
    return make_account(role=Role.ADMIN, email="registrar@example.edu", name="Registrar")


def bearer(account):
    return {"Authorization": f"Bearer {issue(account).token}"}


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)
