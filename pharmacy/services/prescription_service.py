"""Prescription service: creation, listing and status transitions.

Fulfillment (PENDING -> FILLED) lives in the sales service because it creates
a sale; this module only handles the transitions that do not touch stock.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from pharmacy.exceptions import ValidationError, NotFoundError, InvalidStateError
from pharmacy.models import (
    Customer, Medicine, Prescription, PrescriptionItem, PrescriptionStatus, ALLOWED_STATUS_UPDATES
)
from pharmacy.utils.number_format import parse_int, parse_date

logger = logging.getLogger(__name__)


def _required_text(data: Dict[str, Any], key: str, label: str) -> str:
    value = data.get(key)
    value = value.strip() if isinstance(value, str) else ''
    if not value:
        raise ValidationError(f'{label} is required')
    return value


def _parse_items(session, raw_items) -> List[PrescriptionItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError('At least one item is required')

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f'items[{index}] must be an object')
        medicine_id = parse_int(raw.get('medicine_id'), f'items[{index}].medicine_id', minimum=1)
        if not session.get(Medicine, medicine_id):
            raise NotFoundError.for_resource('Medicine', medicine_id)

        instructions = raw.get('instructions')
        items.append(PrescriptionItem(
            medicine_id=medicine_id,
            quantity=parse_int(raw.get('quantity'), f'items[{index}].quantity', minimum=1),
            dosage=_required_text(raw, 'dosage', f'items[{index}].dosage'),
            frequency=_required_text(raw, 'frequency', f'items[{index}].frequency'),
            duration=_required_text(raw, 'duration', f'items[{index}].duration'),
            instructions=(instructions.strip() or None) if isinstance(instructions, str) else None,
        ))
    return items


def parse_status(value) -> PrescriptionStatus:
    try:
        return PrescriptionStatus(str(value).strip().upper())
    except ValueError:
        allowed = ', '.join(s.value for s in PrescriptionStatus)
        raise ValidationError(f'status must be one of: {allowed}')


def build_prescription_query(session, status=None, search=None):
    """Prescriptions filtered by status and number/doctor/customer search, newest first."""
    query = session.query(Prescription).options(
        selectinload(Prescription.items).selectinload(PrescriptionItem.medicine),
        selectinload(Prescription.customer),
    )
    if status:
        query = query.filter(Prescription.status == parse_status(status))
    if search:
        pattern = f'%{search.lower()}%'
        query = query.join(Customer, Customer.id == Prescription.customer_id).filter(or_(
            func.lower(Prescription.prescription_number).like(pattern),
            func.lower(Prescription.doctor_name).like(pattern),
            func.lower(Customer.name).like(pattern)
        ))
    return query.order_by(Prescription.created_at.desc(), Prescription.id.desc())


def get_prescription(session, prescription_id: int) -> Prescription:
    prescription = session.get(Prescription, prescription_id)
    if not prescription:
        raise NotFoundError.for_resource('Prescription', prescription_id)
    return prescription


def create_prescription(session, data: Dict[str, Any]) -> Prescription:
    """Create a PENDING prescription with its items."""
    customer_id = parse_int(data.get('customer_id'), 'customer_id', minimum=1)
    if not session.get(Customer, customer_id):
        raise NotFoundError.for_resource('Customer', customer_id)

    notes = data.get('notes')
    prescription = Prescription(
        customer_id=customer_id,
        doctor_name=_required_text(data, 'doctor_name', 'Doctor name'),
        prescription_number=_required_text(data, 'prescription_number', 'Prescription number'),
        issue_date=parse_date(data.get('issue_date'), 'issue_date'),
        status=PrescriptionStatus.PENDING,
        notes=(notes.strip() or None) if isinstance(notes, str) else None,
        items=_parse_items(session, data.get('items')),
    )
    session.add(prescription)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationError(
            f"Prescription number {data.get('prescription_number')} already exists"
        )

    logger.info(f"Prescription {prescription.id} ({prescription.prescription_number}) created")
    return prescription


def update_prescription(session, prescription_id: int, data: Dict[str, Any]) -> Prescription:
    """
    Update notes and/or status.

    FILLED can only be reached by filling the prescription, and FILLED and
    CANCELLED are terminal.
    """
    new_status = None
    if data.get('status') is not None:
        new_status = parse_status(data['status'])

    prescription = session.query(Prescription).filter(
        Prescription.id == prescription_id
    ).with_for_update().populate_existing().first()
    if not prescription:
        raise NotFoundError.for_resource('Prescription', prescription_id)

    if new_status is not None and new_status != prescription.status:
        current = prescription.status.value
        if new_status == PrescriptionStatus.FILLED:
            session.rollback()
            raise InvalidStateError(
                'Prescriptions can only be marked FILLED by filling them',
                current_status=current
            )
        if new_status not in ALLOWED_STATUS_UPDATES[prescription.status]:
            session.rollback()
            raise InvalidStateError(
                f'Cannot change prescription status from {current} to {new_status.value}',
                current_status=current
            )
        logger.info(f"Prescription {prescription_id} status {current} -> {new_status.value}")
        prescription.status = new_status

    if 'notes' in data:
        notes = data.get('notes')
        prescription.notes = (notes.strip() or None) if isinstance(notes, str) else None

    session.commit()
    return prescription


def cancel_prescription(session, prescription_id: int) -> Prescription:
    return update_prescription(session, prescription_id, {'status': PrescriptionStatus.CANCELLED.value})
