"""
Integration tests for prescription fulfillment and the prescription state machine.
"""

import pytest
from datetime import date
from decimal import Decimal

from pharmacy.exceptions import (
    InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
)
from pharmacy.models import (
    Alert, Medicine, PaymentMethod, Prescription, PrescriptionItem, PrescriptionStatus, Sale
)
from pharmacy.services import prescription_service


def _reload(session, model, pk):
    session.expire_all()
    return session.get(model, pk)


class TestFillPrescription:
    """Fulfillment through SaleTransactionProcessor.fill_prescription."""

    def test_fill_creates_linked_sale_and_marks_filled(self, session, processor, cashier, prescription, medicine):
        sale = processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert sale.prescription_id == prescription.id
        assert sale.customer_id == prescription.customer_id
        assert sale.cashier_id == cashier.id
        assert sale.payment_method == PaymentMethod.CASH
        assert sale.subtotal == Decimal('2000.00')
        assert sale.tax == Decimal('200.00')
        assert sale.total == Decimal('2200.00')
        assert [(i.medicine_id, i.quantity, i.unit_price) for i in sale.items] == [
            (medicine.id, 2, Decimal('1000.00'))
        ]
        assert _reload(session, Prescription, prescription.id).status == PrescriptionStatus.FILLED
        assert _reload(session, Medicine, medicine.id).quantity == 8

    def test_fill_uses_current_medicine_price(self, session, processor, cashier, prescription, medicine):
        medicine.price = Decimal('12.50')
        session.commit()

        sale = processor.fill_prescription(prescription.id, cashier_id=cashier.id, payment_method='card',
                                           discount='0.50')

        assert sale.items[0].unit_price == Decimal('12.50')
        assert sale.subtotal == Decimal('25.00')
        assert sale.tax == Decimal('2.50')
        assert sale.discount == Decimal('0.50')
        assert sale.total == Decimal('27.00')
        assert sale.payment_method == PaymentMethod.CARD

    def test_second_fill_is_rejected_without_mutation(self, session, processor, cashier, prescription, medicine):
        processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        with pytest.raises(InvalidStateError) as exc_info:
            processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert exc_info.value.current_status == 'FILLED'
        assert session.query(Sale).count() == 1
        assert _reload(session, Medicine, medicine.id).quantity == 8

    def test_fill_with_insufficient_stock_keeps_prescription_pending(self, session, processor, cashier,
                                                                     prescription, medicine):
        medicine.quantity = 1
        session.commit()

        with pytest.raises(InsufficientStockError):
            processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert _reload(session, Prescription, prescription.id).status == PrescriptionStatus.PENDING
        assert _reload(session, Medicine, medicine.id).quantity == 1
        assert session.query(Sale).count() == 0

    def test_fill_raises_low_stock_alert(self, session, processor, cashier, prescription, medicine):
        medicine.quantity = 6
        session.commit()

        processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        alert = session.query(Alert).one()
        assert alert.medicine_id == medicine.id

    def test_missing_prescription(self, processor, cashier):
        with pytest.raises(NotFoundError):
            processor.fill_prescription(12345, cashier_id=cashier.id)

    @pytest.mark.parametrize('status', [PrescriptionStatus.CANCELLED, PrescriptionStatus.PARTIAL])
    def test_non_pending_prescription_cannot_be_filled(self, session, processor, cashier, prescription,
                                                       medicine, status):
        prescription.status = status
        session.commit()

        with pytest.raises(InvalidStateError):
            processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert _reload(session, Medicine, medicine.id).quantity == 10
        assert session.query(Sale).count() == 0

    def test_lost_status_race_rolls_back_the_sale(self, session, processor, stores, cashier, prescription,
                                                  medicine, monkeypatch):
        """Another fill committed between our check and our status update."""
        monkeypatch.setattr(stores.prescriptions, 'update_status', lambda *args, **kwargs: False)

        with pytest.raises(InvalidStateError):
            processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert session.query(Sale).count() == 0
        assert _reload(session, Medicine, medicine.id).quantity == 10

    def test_prescription_with_several_items(self, session, processor, cashier, customer, make_medicine):
        a = make_medicine(name='A', price=Decimal('3.00'), quantity=20)
        b = make_medicine(name='B', price=Decimal('4.00'), quantity=20)
        prescription = Prescription(
            customer_id=customer.id, doctor_name='Dr. Who', prescription_number='RX-MULTI',
            issue_date=date.today(), status=PrescriptionStatus.PENDING,
            items=[
                PrescriptionItem(medicine_id=a.id, quantity=3, dosage='1', frequency='daily', duration='3d'),
                PrescriptionItem(medicine_id=b.id, quantity=1, dosage='1', frequency='daily', duration='1d'),
            ]
        )
        session.add(prescription)
        session.commit()

        sale = processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        assert sale.subtotal == Decimal('13.00')
        assert sale.total == Decimal('14.30')
        assert _reload(session, Medicine, a.id).quantity == 17
        assert _reload(session, Medicine, b.id).quantity == 19


class TestPrescriptionService:
    """Creation and manual status transitions."""

    def _payload(self, customer, medicine, **overrides):
        data = {
            'customer_id': customer.id,
            'doctor_name': 'Dr. Strange',
            'prescription_number': 'RX-0001',
            'issue_date': '2026-01-15',
            'items': [{
                'medicine_id': medicine.id, 'quantity': 3, 'dosage': '250mg',
                'frequency': 'Twice a day', 'duration': '5 days', 'instructions': ' with food '
            }],
        }
        data.update(overrides)
        return data

    def test_create_prescription(self, session, customer, medicine):
        prescription = prescription_service.create_prescription(session, self._payload(customer, medicine))

        assert prescription.status == PrescriptionStatus.PENDING
        assert prescription.issue_date == date(2026, 1, 15)
        assert len(prescription.items) == 1
        assert prescription.items[0].instructions == 'with food'

    def test_duplicate_number_is_rejected(self, session, customer, medicine):
        prescription_service.create_prescription(session, self._payload(customer, medicine))
        with pytest.raises(ValidationError):
            prescription_service.create_prescription(session, self._payload(customer, medicine))

    def test_unknown_medicine_is_rejected(self, session, customer, medicine):
        payload = self._payload(customer, medicine)
        payload['items'][0]['medicine_id'] = 999
        with pytest.raises(NotFoundError):
            prescription_service.create_prescription(session, payload)

    def test_unknown_customer_is_rejected(self, session, customer, medicine):
        with pytest.raises(NotFoundError):
            prescription_service.create_prescription(session, self._payload(customer, medicine, customer_id=999))

    def test_missing_doctor_is_rejected(self, session, customer, medicine):
        with pytest.raises(ValidationError):
            prescription_service.create_prescription(session, self._payload(customer, medicine, doctor_name=' '))

    def test_pending_to_partial_and_back(self, session, prescription):
        prescription_service.update_prescription(session, prescription.id, {'status': 'partial'})
        assert _reload(session, Prescription, prescription.id).status == PrescriptionStatus.PARTIAL

        prescription_service.update_prescription(session, prescription.id, {'status': 'PENDING'})
        assert _reload(session, Prescription, prescription.id).status == PrescriptionStatus.PENDING

    def test_manual_filled_is_rejected(self, session, prescription):
        with pytest.raises(InvalidStateError):
            prescription_service.update_prescription(session, prescription.id, {'status': 'FILLED'})
        assert _reload(session, Prescription, prescription.id).status == PrescriptionStatus.PENDING

    def test_cancelled_is_terminal(self, session, prescription):
        prescription_service.cancel_prescription(session, prescription.id)

        with pytest.raises(InvalidStateError) as exc_info:
            prescription_service.update_prescription(session, prescription.id, {'status': 'PENDING'})
        assert exc_info.value.current_status == 'CANCELLED'

    def test_filled_cannot_be_cancelled(self, session, processor, cashier, prescription):
        processor.fill_prescription(prescription.id, cashier_id=cashier.id)

        with pytest.raises(InvalidStateError):
            prescription_service.cancel_prescription(session, prescription.id)

    def test_notes_update_keeps_status(self, session, prescription):
        updated = prescription_service.update_prescription(session, prescription.id, {'notes': ' call back '})
        assert updated.notes == 'call back'
        assert updated.status == PrescriptionStatus.PENDING

    def test_unknown_status_is_rejected(self, session, prescription):
        with pytest.raises(ValidationError):
            prescription_service.update_prescription(session, prescription.id, {'status': 'LOST'})

    def test_search_by_customer_name(self, session, prescription):
        results = prescription_service.build_prescription_query(session, search='john').all()
        assert [p.id for p in results] == [prescription.id]
