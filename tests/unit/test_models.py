"""
Unit tests for SQLAlchemy models.
"""

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from pharmacy.models import (
    AppUser, Alert, AlertType, AlertSeverity, PaymentMethod, PrescriptionStatus,
    ALLOWED_STATUS_UPDATES, normalize_payment_method
)


class TestAppUserModel:
    """Tests for AppUser model."""

    def test_password_hashing(self, session):
        user = AppUser(email='staff@pharmacy.test', name='Staff', active=True)
        user.set_password('securepassword')
        session.add(user)
        session.commit()

        assert user.password_hash != 'securepassword'
        assert user.check_password('securepassword') is True
        assert user.check_password('wrong') is False

    def test_user_without_password_cannot_log_in(self):
        assert AppUser(email='x@pharmacy.test', name='X').check_password('') is False

    def test_email_unique(self, session, cashier):
        session.add(AppUser(email=cashier.email, name='Duplicate'))
        with pytest.raises(IntegrityError):
            session.commit()


class TestMedicineModel:
    """Tests for Medicine model."""

    def test_low_stock_flag(self, make_medicine):
        assert make_medicine(quantity=5, min_stock_level=5).is_low_stock is True
        assert make_medicine(quantity=6, min_stock_level=5).is_low_stock is False

    def test_negative_quantity_violates_check_constraint(self, session, medicine):
        medicine.quantity = -1
        with pytest.raises(IntegrityError):
            session.commit()

    def test_price_round_trips_as_decimal(self, make_medicine, session):
        medicine = make_medicine(price=Decimal('12.34'))
        session.expire_all()
        assert medicine.price == Decimal('12.34')


class TestAlertModel:
    """Tests for Alert model."""

    def test_one_unread_alert_per_type_and_medicine(self, session, medicine):
        for _ in range(2):
            session.add(Alert(
                type=AlertType.STOCK, severity=AlertSeverity.HIGH,
                title='Low Stock Alert', message='low', medicine_id=medicine.id
            ))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_read_alert_does_not_block_a_new_one(self, session, medicine):
        session.add(Alert(
            type=AlertType.STOCK, severity=AlertSeverity.HIGH, title='Low Stock Alert',
            message='old', medicine_id=medicine.id, is_read=True
        ))
        session.add(Alert(
            type=AlertType.STOCK, severity=AlertSeverity.HIGH, title='Low Stock Alert',
            message='new', medicine_id=medicine.id
        ))
        session.commit()

        assert session.query(Alert).count() == 2

    def test_is_read_defaults_to_false(self, session):
        alert = Alert(type=AlertType.SYSTEM, severity=AlertSeverity.LOW, title='t', message='m')
        session.add(alert)
        session.commit()
        assert alert.is_read is False


class TestEnums:
    """Tests for enum helpers."""

    def test_normalize_payment_method(self):
        assert normalize_payment_method('insurance') == PaymentMethod.INSURANCE
        assert normalize_payment_method(PaymentMethod.CARD) == PaymentMethod.CARD
        assert normalize_payment_method('cheque') is None
        assert normalize_payment_method(None) is None

    def test_terminal_statuses_allow_no_updates(self):
        assert ALLOWED_STATUS_UPDATES[PrescriptionStatus.FILLED] == set()
        assert ALLOWED_STATUS_UPDATES[PrescriptionStatus.CANCELLED] == set()

    def test_filled_is_never_a_manual_target(self):
        for targets in ALLOWED_STATUS_UPDATES.values():
            assert PrescriptionStatus.FILLED not in targets

    def test_issue_date_type(self, prescription):
        assert isinstance(prescription.issue_date, date)
