import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

# SQLite file database for the whole run, unless one is provided (e.g. by Docker)
_db_dir = tempfile.mkdtemp(prefix='cotizador-tests-')
os.environ.setdefault('TEST_DATABASE_URL', f"sqlite:///{os.path.join(_db_dir, 'test.db')}")

from cotizador import create_app
from cotizador import database
from cotizador.database import Base, db_session
from cotizador.models import AppUser, Client, Product, Quote, QuoteItem


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    with app.app_context():
        database.create_all()
    yield app
    Base.metadata.drop_all(bind=database.engine)


@pytest.fixture(autouse=True)
def clean_tables(app):
    """Every test starts from empty tables."""
    yield
    db_session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        db_session.execute(table.delete())
    db_session.commit()
    db_session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session used by services and requests."""
    with app.app_context():
        yield db_session
        db_session.rollback()


def _make_user(session, email, name, is_admin=False, permissions=None):
    user = AppUser(email=email, name=name, is_admin=is_admin, active=True)
    if permissions is not None:
        user.permissions = permissions
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(session):
    """Administrator."""
    return _make_user(session, 'admin@cva.test', 'Ana Admin', is_admin=True)


@pytest.fixture(scope='function')
def regular_user(session):
    """Non-admin user with the default permission matrix."""
    return _make_user(session, 'user@cva.test', 'Uriel Usuario')


@pytest.fixture(scope='function')
def restricted_user(session):
    """Non-admin user that cannot delete clients or quotes."""
    return _make_user(session, 'restricted@cva.test', 'Rita Restringida', permissions={
        'cotizaciones': {'crear': True, 'editar': True, 'borrar': False},
        'clientes': {'crear': True, 'editar': True, 'borrar': False},
        'usuarios': {'crear': False, 'editar': False, 'borrar': False},
    })


def login(test_client, user):
    with test_client.session_transaction() as flask_session:
        flask_session['user_id'] = user.id
    return test_client


@pytest.fixture(scope='function')
def admin_client(client, admin_user):
    return login(client, admin_user)


@pytest.fixture(scope='function')
def user_client(client, regular_user):
    return login(client, regular_user)


@pytest.fixture(scope='function')
def customer(session):
    """A client (cliente) with every optional field filled."""
    record = Client(
        name='Plaza Comercial Norte',
        legal_name='Inmobiliaria Norte SA de CV',
        rfc='INO010203AB1',
        email='compras@plazanorte.mx',
        phone='81 5555 0101',
        tax_regime='601',
    )
    session.add(record)
    session.commit()
    return record


@pytest.fixture(scope='function')
def products(session):
    """Small CCTV catalog: two active products and one inactive."""
    items = [
        Product(code='DS-2CD1043', name='Cámara IP Domo 4MP', description='Hikvision, lente 2.8mm',
                price=Decimal('1000.00'), category='Cámaras', active=True),
        Product(code='NVR-8CH', name='NVR 8 canales', description='Grabador de red PoE',
                price=Decimal('250.50'), category='DVR/NVR', active=True),
        Product(code='OLD-BNC', name='Conector BNC', description='Descontinuado',
                price=Decimal('12.00'), category='Accesorios', active=False),
    ]
    session.add_all(items)
    session.commit()
    return items


@pytest.fixture(scope='function')
def quote(session, customer, admin_user):
    """Quote #1 with two items: 1000.00 x 2 and 250.50 x 1."""
    record = Quote(
        number=1,
        title='CCTV Plaza Norte',
        client_id=customer.id,
        created_by=admin_user.id,
        prepared_by='Ana Admin',
        issue_date=date.today(),
        status='DRAFT',
        scope='Instalación de 8 cámaras',
        payment_terms='50% anticipo',
        subtotal=Decimal('2250.50'),
        tax=Decimal('360.08'),
        total=Decimal('2610.58'),
        version=1,
    )
    session.add(record)
    session.flush()
    session.add_all([
        QuoteItem(quote_id=record.id, position=1, concept='Cámara IP Domo 4MP',
                  description='Hikvision, lente 2.8mm', unit_price=Decimal('1000.00'), quantity=2),
        QuoteItem(quote_id=record.id, position=2, concept='NVR 8 canales',
                  description='Grabador de red PoE', unit_price=Decimal('250.50'), quantity=1),
    ])
    session.commit()
    return record


@pytest.fixture(scope='function')
def login_as(client):
    """Sign the test client in as the given user."""
    return lambda user: login(client, user)
