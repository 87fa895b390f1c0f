import os
import tempfile
import threading
from decimal import Decimal
from types import SimpleNamespace

import pytest

# Tests run against a throwaway SQLite file; must be set before config is imported
_TEST_DB_DIR = tempfile.mkdtemp(prefix='cakeshop-tests-')
os.environ['DATABASE_URL'] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'cakeshop.db')}"
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret'
os.environ['SENTRY_DSN'] = ''

from cakeshop import create_app
from cakeshop.database import Base, create_all, drop_all, get_session
from cakeshop.models import Customer, CustomerRole, ItemSize, MenuItem
from cakeshop.services import inventory_service
from cakeshop.services.auth_service import CallerIdentity, issue_token


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    create_all()
    yield app
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for the test thread."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(autouse=True)
def _clean_tables(app):
    """Services commit, so every table is emptied after each test."""
    yield
    session = get_session()
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


def _create_account(session, email, role, full_name=None, phone=None):
    customer = Customer(email=email, full_name=full_name, phone=phone, role=role, active=True)
    session.add(customer)
    session.commit()
    return CallerIdentity(customer.id, customer.role, customer.email)


@pytest.fixture(scope='function')
def customer(session):
    """A regular customer, as the caller identity services receive."""
    return _create_account(session, 'maria@example.com', CustomerRole.CUSTOMER.value,
                           full_name='Maria Santos', phone='09171234567')


@pytest.fixture(scope='function')
def other_customer(session):
    return _create_account(session, 'jose@example.com', CustomerRole.CUSTOMER.value, full_name='Jose Cruz')


@pytest.fixture(scope='function')
def staff(session):
    return _create_account(session, 'baker@example.com', CustomerRole.STAFF.value, full_name='Head Baker')


@pytest.fixture(scope='function')
def catalog(session):
    """
    Menu used across tests.

    Chocolate Cake comes in 6 inch (250.00, 5 left) and 8 inch (400.00, 3 left).
    Red Velvet Cupcake is unsized (75.50, 10 left). Retired Tart is inactive.
    """
    cake = MenuItem(name='Chocolate Cake', category='cake', base_price=Decimal('250.00'),
                    stock=0, has_sizes=True, active=True)
    cake.sizes = [
        ItemSize(size_name='6 inch', price=Decimal('250.00'), stock=5, active=True),
        ItemSize(size_name='8 inch', price=Decimal('400.00'), stock=3, active=True),
    ]
    cupcake = MenuItem(name='Red Velvet Cupcake', category='cupcake', base_price=Decimal('75.50'),
                       stock=10, active=True)
    retired = MenuItem(name='Retired Tart', category='pastry', base_price=Decimal('60.00'),
                       stock=4, active=False)
    session.add_all([cake, cupcake, retired])
    session.commit()

    small, large = sorted(cake.sizes, key=lambda s: s.price)
    return SimpleNamespace(
        cake_id=cake.id,
        small_id=small.id,
        large_id=large.id,
        cupcake_id=cupcake.id,
        retired_id=retired.id,
    )


@pytest.fixture(scope='function')
def stock_of(session):
    """Read a stock counter straight from the database."""
    def _stock_of(menu_id, size_id=None):
        session.rollback()
        return inventory_service.get_stock(session, menu_id, size_id)
    return _stock_of


def make_auth_headers(app, identity):
    account = SimpleNamespace(id=identity.customer_id, role=identity.role, email=identity.email)
    token = issue_token(account, app.config['JWT_SECRET_KEY'], app.config['JWT_ALGORITHM'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer_headers(app, customer):
    return make_auth_headers(app, customer)


@pytest.fixture(scope='function')
def other_customer_headers(app, other_customer):
    return make_auth_headers(app, other_customer)


@pytest.fixture(scope='function')
def staff_headers(app, staff):
    return make_auth_headers(app, staff)


@pytest.fixture(scope='function')
def run_concurrently():
    """
    Run ``fn`` in ``count`` threads released at the same moment.

    Each thread gets its own session. Returns the results, with raised
    exceptions in place of return values.
    """
    def _run(fn, count):
        barrier = threading.Barrier(count)
        results = [None] * count

        def worker(index):
            thread_session = get_session()
            try:
                barrier.wait()
                results[index] = fn(thread_session)
            except Exception as e:
                results[index] = e
            finally:
                thread_session.remove()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)
        return results

    return _run
