import hashlib
import hmac
import uuid
from datetime import date
from decimal import Decimal

import pytest

from livenzo import create_app
from livenzo.database import create_all, drop_all, get_session
from livenzo.models import Relationship, RelationshipStatus, RentStatus, RentState, UserProfile, UserRole
from livenzo.services import notification_service, razorpay_client, storage_service
from livenzo.utils.formatters import current_billing_month


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh schema and an app context shared by the test and its requests."""
    with app.app_context():
        create_all()
        app.extensions['kv_store'].data.clear()
        yield
        get_session().rollback()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session for testing."""
    return get_session()


@pytest.fixture
def kv_store(app):
    return app.extensions['kv_store']


def _make_user(session, role, name, **extra):
    suffix = str(uuid.uuid4())[:8]
    user = UserProfile(
        email=f'{role.value}-{suffix}@test.com',
        full_name=name,
        role=role.value,
        active=True,
        **extra
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def owner(session):
    """Create a test owner."""
    return _make_user(session, UserRole.OWNER, 'Owner One')


@pytest.fixture(scope='function')
def other_owner(session):
    return _make_user(session, UserRole.OWNER, 'Owner Two')


@pytest.fixture(scope='function')
def renter(session):
    """Create a test renter."""
    return _make_user(session, UserRole.RENTER, 'Renter One', room_number='101')


@pytest.fixture(scope='function')
def relationship(session, owner, renter):
    """Accepted relationship between owner and renter."""
    rel = Relationship(
        owner_id=owner.id,
        renter_id=renter.id,
        status=RelationshipStatus.ACCEPTED.value,
        archived=False
    )
    session.add(rel)
    session.commit()
    return rel


@pytest.fixture(scope='function')
def billing_month():
    return current_billing_month()


@pytest.fixture(scope='function')
def rent(session, relationship, billing_month):
    """Pending rent of 12000 for the current month."""
    status = RentStatus(
        relationship_id=relationship.id,
        billing_month=billing_month,
        status=RentState.PENDING.value,
        current_amount=Decimal('12000'),
        due_date=date.today().replace(day=1)
    )
    session.add(status)
    session.commit()
    return status


@pytest.fixture
def login(client):
    """Log a user into the test client session."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
        return client
    return _login


class RecordingNotifier:
    """Notifier double that records every call."""

    def __init__(self, result=True, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, notification_type, recipient_id, payload=None, session=None):
        self.calls.append((notification_type, recipient_id, payload or {}))
        if self.error is not None:
            raise self.error
        return self.result

    def types(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def notifier(monkeypatch):
    """Replace the default notifier with a recorder."""
    recorder = RecordingNotifier()
    monkeypatch.setattr(notification_service, 'send_notification', recorder)
    return recorder


class FakeStorage:
    """In-memory stand-in for the object storage service."""

    def __init__(self, error=None):
        self.uploads = []
        self.error = error

    @staticmethod
    def file_size(file):
        data = file.read()
        file.seek(0)
        return len(data)

    def upload_file(self, file, object_name, content_type=None, metadata=None):
        if self.error is not None:
            raise self.error
        self.uploads.append(object_name)
        return f'http://storage.test/{object_name}'


@pytest.fixture
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(storage_service, 'get_storage_service', lambda: storage)
    return storage


@pytest.fixture
def fake_orders(monkeypatch):
    """Stub Razorpay order creation; returns the list of created orders."""
    created = []

    def create_order(self, amount, receipt, currency='INR', notes=None):
        order = {
            'id': f'order_test_{len(created) + 1}',
            'amount': razorpay_client.to_paise(amount),
            'currency': currency,
            'receipt': receipt,
            'status': 'created',
        }
        created.append(order)
        return order

    monkeypatch.setattr(razorpay_client.RazorpayClient, 'create_order', create_order)
    return created


@pytest.fixture
def sign():
    """HMAC-SHA256 hex signature, as Razorpay computes it."""
    def _sign(secret, message):
        if isinstance(message, str):
            message = message.encode('utf-8')
        return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()
    return _sign
