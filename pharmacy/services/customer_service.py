"""Customer service."""
import logging
from typing import Any, Dict

from sqlalchemy import or_, func

from pharmacy.exceptions import ValidationError, NotFoundError
from pharmacy.models import Customer, Prescription, Sale
from pharmacy.utils.number_format import parse_date

logger = logging.getLogger(__name__)


def _get_customer_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Extract and sanitize customer data from a JSON payload."""
    fields = {}

    if 'name' in data or not partial:
        name = data.get('name')
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValidationError('Name is required')
        fields['name'] = name

    for key in ('email', 'phone', 'address'):
        if key in data:
            value = data.get(key)
            fields[key] = (value.strip() or None) if isinstance(value, str) else None

    if fields.get('email') and '@' not in fields['email']:
        raise ValidationError('email is invalid')

    if data.get('date_of_birth'):
        fields['date_of_birth'] = parse_date(data['date_of_birth'], 'date_of_birth')

    if 'allergies' in data:
        allergies = data.get('allergies') or []
        if not isinstance(allergies, list) or not all(isinstance(a, str) for a in allergies):
            raise ValidationError('allergies must be a list of strings')
        fields['allergies'] = [a.strip() for a in allergies if a.strip()]

    return fields


def build_customer_query(session, search=None):
    """Customers matching name/email/phone, ordered by name."""
    query = session.query(Customer)
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Customer.name).like(pattern),
            func.lower(Customer.email).like(pattern),
            func.lower(Customer.phone).like(pattern)
        ))
    return query.order_by(Customer.name, Customer.id)


def get_customer(session, customer_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError.for_resource('Customer', customer_id)
    return customer


def create_customer(session, data: Dict[str, Any]) -> Customer:
    fields = _get_customer_data(data)
    fields.setdefault('allergies', [])
    customer = Customer(**fields)
    session.add(customer)
    session.commit()
    return customer


def update_customer(session, customer_id: int, data: Dict[str, Any]) -> Customer:
    customer = get_customer(session, customer_id)
    for key, value in _get_customer_data(data, partial=True).items():
        setattr(customer, key, value)
    session.commit()
    return customer


def delete_customer(session, customer_id: int) -> None:
    """Delete a customer with no sales or prescriptions on record."""
    customer = get_customer(session, customer_id)

    referenced = (
        session.query(Sale.id).filter(Sale.customer_id == customer_id).first()
        or session.query(Prescription.id).filter(Prescription.customer_id == customer_id).first()
    )
    if referenced:
        raise ValidationError(
            f'Customer "{customer.name}" has sales or prescriptions on record and cannot be deleted'
        )

    session.delete(customer)
    session.commit()
    logger.info(f"Customer {customer_id} deleted")
