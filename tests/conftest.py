import pytest
from datetime import date, timedelta
from decimal import Decimal
import uuid

from pharmacy import create_app
from pharmacy.database import Base, db_session, get_engine, get_session
from pharmacy.models import (
    AppUser, UserRole, Medicine, Customer, Prescription, PrescriptionItem, PrescriptionStatus
)
from pharmacy.services.sales_service import SaleTransactionProcessor
from pharmacy.stores import SqlAlchemyStores


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing.

    The app context stays pushed for the whole run so requests made by the
    test client reuse it and do not tear down the test's session.
    """
    app = create_app('config.TestingConfig')
    with app.app_context():
        yield app


@pytest.fixture(autouse=True)
def fresh_schema(app):
    """Drop and recreate every table around each test."""
    db_session.remove()
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    db_session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session shared with the app (same thread, same scoped session)."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture
def stores(session):
    return SqlAlchemyStores(session)


@pytest.fixture
def processor(stores):
    return SaleTransactionProcessor(stores)


def _create_user(session, role, name):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(
        email=f'{role.value.lower()}-{suffix}@pharmacy.test',
        name=name,
        role=role,
        active=True
    )
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def cashier(session):
    return _create_user(session, UserRole.CASHIER, 'Carla Cashier')


@pytest.fixture
def pharmacist(session):
    return _create_user(session, UserRole.PHARMACIST, 'Pedro Pharmacist')


@pytest.fixture
def admin(session):
    return _create_user(session, UserRole.ADMIN, 'Ana Admin')


@pytest.fixture
def make_medicine(session):
    """Factory for medicines; defaults to 10 units, minimum 5, price 1000.00."""
    def _make(**overrides):
        fields = {
            'name': 'Amoxicillin 500mg',
            'generic_name': 'Amoxicillin',
            'manufacturer': 'Acme Pharma',
            'category': 'Antibiotics',
            'price': Decimal('1000.00'),
            'quantity': 10,
            'min_stock_level': 5,
            'expiry_date': date.today() + timedelta(days=365),
            'batch_number': f'B-{uuid.uuid4().hex[:6]}',
        }
        fields.update(overrides)
        medicine = Medicine(**fields)
        session.add(medicine)
        session.commit()
        return medicine
    return _make


@pytest.fixture
def medicine(make_medicine):
    return make_medicine()


@pytest.fixture
def customer(session):
    customer = Customer(
        name='John Patient',
        email='john@example.com',
        phone='555-0100',
        allergies=['penicillin']
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture
def prescription(session, customer, medicine):
    """PENDING prescription for 2 units of the default medicine."""
    prescription = Prescription(
        customer_id=customer.id,
        doctor_name='Dr. House',
        prescription_number=f'RX-{uuid.uuid4().hex[:8]}',
        issue_date=date.today(),
        status=PrescriptionStatus.PENDING,
        items=[PrescriptionItem(
            medicine_id=medicine.id,
            quantity=2,
            dosage='500mg',
            frequency='Every 8 hours',
            duration='7 days'
        )]
    )
    session.add(prescription)
    session.commit()
    return prescription


def _login(client, user):
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
    return client


@pytest.fixture
def authenticated_client(client, cashier):
    """Test client logged in as a cashier."""
    return _login(client, cashier)


@pytest.fixture
def pharmacist_client(app, pharmacist):
    return _login(app.test_client(), pharmacist)


@pytest.fixture
def admin_client(app, admin):
    return _login(app.test_client(), admin)
