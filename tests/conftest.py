import pytest
from datetime import date
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict
from models.user import User
from models.user_subscription import UserSubscription, SubscriptionStatusEnum
from services.reach_aggregator import ReachAggregator
from services.snapshot_store import InMemorySnapshotStore

# Every reach series in the tests ends on this day.
FIXED_TODAY = date(2024, 1, 10)
TEST_PASSWORD = 'password123'

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False # Disable CSRF for form testing convenience
    SECRET_KEY = 'test-secret-key-for-forms' # WTForms/Flask-Login require a SECRET_KEY for session context
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_dummy'
    PLAN_LIMITS = {'price_bronze_monthly': 500, 'price_gold_monthly': 2500}
    DEFAULT_MONTHLY_LIMIT = 500
    TRIAL_ANALYSIS_LIMIT = 3
    REACH_MAX_WORKERS = 2
    REACH_MAX_URLS_PER_REQUEST = 5
    LOG_LEVEL = 'DEBUG'

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance

@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Pushes an app context before each test that needs it and pops it afterwards.
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def db(app_context):
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    """
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()

@pytest.fixture(scope='function')
def client(app):
    """
    Test client fixture. Function-scoped so that a login in one test
    does not leak its session cookie into the next.
    """
    return app.test_client()

@pytest.fixture(scope='function')
def reach_store(app):
    """
    Swaps the app's reach aggregator for one backed by an in-memory snapshot store
    whose "today" is FIXED_TODAY. Tests add rows with reach_store.add(...).
    """
    store = InMemorySnapshotStore()
    original = app.extensions['reach_aggregator']
    app.extensions['reach_aggregator'] = ReachAggregator(
        store, today=lambda: FIXED_TODAY, logger=app.logger, max_workers=2
    )
    yield store
    app.extensions['reach_aggregator'] = original

@pytest.fixture(scope='function')
def user(db):
    """A registered user with TEST_PASSWORD."""
    new_user = User(email='analyst@example.com', name='Ana Lyst')
    new_user.set_password(TEST_PASSWORD)
    db.session.add(new_user)
    db.session.commit()
    return new_user

@pytest.fixture(scope='function')
def make_subscription(db):
    """Returns a helper that adds and commits a UserSubscription for a user."""
    def _make(a_user, status=SubscriptionStatusEnum.ACTIVE, **fields):
        subscription = UserSubscription(user_id=a_user.id, status=status, **fields)
        db.session.add(subscription)
        db.session.commit()
        return subscription
    return _make

@pytest.fixture(scope='function')
def login(client):
    """Returns a helper that logs `a_user` in on the test client."""
    def _login(a_user, password=TEST_PASSWORD):
        response = client.post('/auth/login', json={'email': a_user.email, 'password': password})
        assert response.status_code == 200
        return response
    return _login
