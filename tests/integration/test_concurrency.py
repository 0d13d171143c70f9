"""
Concurrency tests: independent sessions racing on the same stock and prescription.

Each side gets its own connection to a file-backed SQLite database, so one
side's commit is only visible to the other through the database.
"""

import threading
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pharmacy.database import Base
from pharmacy.exceptions import InsufficientStockError, InvalidStateError, TransactionFailure
from pharmacy.models import (
    AppUser, UserRole, Customer, Medicine, Prescription, PrescriptionItem, PrescriptionStatus, Sale
)
from pharmacy.services.sales_service import SaleTransactionProcessor
from pharmacy.stores import SqlAlchemyStores


@pytest.fixture
def file_engine(app, tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pos.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False)


@pytest.fixture
def seeded(session_factory):
    """Cashier, customer, one medicine with 3 units and a pending prescription for 2."""
    with session_factory() as session:
        cashier = AppUser(email='race@pharmacy.test', name='Race Cashier', role=UserRole.CASHIER, active=True)
        cashier.set_password('password123')
        customer = Customer(name='Rita Race', allergies=[])
        medicine = Medicine(
            name='Ibuprofen 400mg', manufacturer='Acme Pharma', category='Analgesics',
            price=Decimal('500.00'), quantity=3, min_stock_level=1,
            expiry_date=date.today() + timedelta(days=365), batch_number='IBU-1'
        )
        session.add_all([cashier, customer, medicine])
        session.flush()

        prescription = Prescription(
            customer_id=customer.id, doctor_name='Dr. Race', prescription_number='RX-RACE-1',
            issue_date=date.today(), status=PrescriptionStatus.PENDING,
            items=[PrescriptionItem(medicine_id=medicine.id, quantity=2, dosage='1 tab',
                                    frequency='daily', duration='2 days')]
        )
        session.add(prescription)
        session.commit()
        return {'cashier_id': cashier.id, 'medicine_id': medicine.id, 'prescription_id': prescription.id}


def _cart(medicine_id, quantity):
    return {
        'items': [{'medicine_id': medicine_id, 'quantity': quantity, 'unit_price': '500.00'}],
        'payment_method': 'CASH',
    }


def _run_after_stock_read(stores, operation, monkeypatch):
    """Let the other side run to completion right after this side has read stock."""
    original_lock_many = stores.medicines.lock_many

    def lock_then_yield(medicine_ids):
        medicines = original_lock_many(medicine_ids)
        operation()
        return medicines

    monkeypatch.setattr(stores.medicines, 'lock_many', lock_then_yield)


def _state(session_factory, ids):
    with session_factory() as session:
        medicine = session.get(Medicine, ids['medicine_id'])
        prescription = session.get(Prescription, ids['prescription_id'])
        return medicine.quantity, prescription.status, session.query(Sale).count()


class TestInterleavedSessions:
    """Both sides read the same stock before either one writes."""

    def test_two_overdrawing_sales_one_wins(self, session_factory, seeded, monkeypatch):
        first_session, second_session = session_factory(), session_factory()
        first = SaleTransactionProcessor(SqlAlchemyStores(first_session))
        second = SaleTransactionProcessor(SqlAlchemyStores(second_session))
        winner = []

        _run_after_stock_read(
            first.stores,
            lambda: winner.append(second.create_sale(_cart(seeded['medicine_id'], 2), seeded['cashier_id'])),
            monkeypatch
        )

        with pytest.raises(TransactionFailure):
            first.create_sale(_cart(seeded['medicine_id'], 2), seeded['cashier_id'])

        first_session.close()
        second_session.close()

        quantity, _, sales = _state(session_factory, seeded)
        assert len(winner) == 1
        assert quantity == 1
        assert sales == 1

    def test_two_fills_of_one_prescription_one_wins(self, session_factory, seeded, monkeypatch):
        with session_factory() as session:
            session.get(Medicine, seeded['medicine_id']).quantity = 10
            session.commit()

        first_session, second_session = session_factory(), session_factory()
        first = SaleTransactionProcessor(SqlAlchemyStores(first_session))
        second = SaleTransactionProcessor(SqlAlchemyStores(second_session))
        winner = []

        _run_after_stock_read(
            first.stores,
            lambda: winner.append(second.fill_prescription(seeded['prescription_id'], seeded['cashier_id'])),
            monkeypatch
        )

        with pytest.raises(InvalidStateError) as exc_info:
            first.fill_prescription(seeded['prescription_id'], seeded['cashier_id'])

        first_session.close()
        second_session.close()

        quantity, status, sales = _state(session_factory, seeded)
        assert exc_info.value.to_dict()['current_status'] == 'FILLED'
        assert len(winner) == 1
        assert status == PrescriptionStatus.FILLED
        with session_factory() as session:
            assert session.query(Sale).one().prescription_id == seeded['prescription_id']
        assert quantity == 8
        assert sales == 1


class TestConcurrentThreads:

    def test_stock_never_goes_negative(self, session_factory, seeded):
        with session_factory() as session:
            session.get(Medicine, seeded['medicine_id']).quantity = 5
            session.commit()

        start = threading.Barrier(6)
        outcomes = []

        def sell():
            session = session_factory()
            try:
                processor = SaleTransactionProcessor(SqlAlchemyStores(session))
                start.wait()
                processor.create_sale(_cart(seeded['medicine_id'], 2), seeded['cashier_id'])
                outcomes.append('sold')
            except (InsufficientStockError, TransactionFailure):
                outcomes.append('rejected')
            finally:
                session.close()

        threads = [threading.Thread(target=sell) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        quantity, _, sales = _state(session_factory, seeded)
        assert len(outcomes) == 6
        assert quantity >= 0
        assert outcomes.count('sold') == sales
        assert quantity == 5 - 2 * sales
        assert sales <= 2
