# tests/conftest.py
import os
import tempfile
from datetime import datetime, timedelta

import pytest

# config raises at import without these, and logger_config writes to LOG_DIR
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="tracking-logs-"))

from config import Config  # noqa: E402
from tracking_pkg import create_app  # noqa: E402
from tracking_pkg.auth import generate_token  # noqa: E402
from tracking_pkg.models import db, Customer, Order, OrderStatusHistory  # noqa: E402


class TestingConfig(Config):
    ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    AUTO_CREATE_TABLES = False
    TIMELINE_DEDUPE_SECONDS = 30


@pytest.fixture(scope="session")
def app():
    return create_app(TestingConfig)


@pytest.fixture(autouse=True)
def database(app):
    with app.app_context():
        db.create_all()
        yield db
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(email, role="customer", password="secret-pass"):
    user = Customer(username=email.split("@")[0], email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    return user


@pytest.fixture
def users(database):
    alice = _make_user("alice@example.com")
    bob = _make_user("bob@example.com")
    admin = _make_user("admin@example.com", role="admin")
    db.session.commit()
    return {"alice": alice.id, "bob": bob.id, "admin": admin.id}


@pytest.fixture
def tokens(users):
    return {
        "alice": generate_token(users["alice"], "customer", "alice@example.com"),
        "bob": generate_token(users["bob"], "customer", "bob@example.com"),
        "admin": generate_token(users["admin"], "admin", "admin@example.com"),
    }


@pytest.fixture
def auth_header(tokens):
    def _header(who):
        return {"Authorization": f"Bearer {tokens[who]}"}
    return _header


@pytest.fixture
def orders(users):
    created = datetime.utcnow() - timedelta(days=2)

    own = Order(
        code="ORD-1001",
        customer_id=users["alice"],
        customer_email="Alice@Example.com",
        customer_first_name="Alice",
        status="in_progress",
        stage="packaging",
        created_at=created,
    )
    own.status_history.append(OrderStatusHistory(
        code="created", note="Order has been created.", changed_by_type="system",
        created_at=created,
    ))
    own.status_history.append(OrderStatusHistory(
        code="packaging", note="Order is in Packaging.", changed_by_type="admin",
        changed_by_id=users["admin"], created_at=created + timedelta(hours=3),
    ))

    guest = Order(
        code="ORD-1002",
        customer_id=None,
        customer_email="guest@example.com",
        status="pending",
        stage="created",
        created_at=created + timedelta(hours=1),
    )

    db.session.add_all([own, guest])
    db.session.commit()
    return {"own": own.id, "guest": guest.id}


class FakeTimer:
    """Stands in for threading.Timer; tests fire it by hand"""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.function()


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]


@pytest.fixture
def timers():
    return TimerFactory()
