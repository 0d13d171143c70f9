"""JSON serialization of models for the API.

Money is rendered as a string with two decimals so no precision is lost on the
way to the client.
"""
from decimal import Decimal
from typing import Any, Dict, Optional


def _money(value) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal('0.01')))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _enum(value) -> Optional[str]:
    return value.value if value is not None else None


def serialize_user(user) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'role': _enum(user.role),
    }


def serialize_medicine_summary(medicine) -> Optional[Dict[str, Any]]:
    if medicine is None:
        return None
    return {
        'id': medicine.id,
        'name': medicine.name,
        'generic_name': medicine.generic_name,
        'price': _money(medicine.price),
    }


def serialize_medicine(medicine) -> Dict[str, Any]:
    return {
        'id': medicine.id,
        'name': medicine.name,
        'generic_name': medicine.generic_name,
        'manufacturer': medicine.manufacturer,
        'category': medicine.category,
        'description': medicine.description,
        'price': _money(medicine.price),
        'quantity': medicine.quantity,
        'min_stock_level': medicine.min_stock_level,
        'is_low_stock': medicine.is_low_stock,
        'expiry_date': _iso(medicine.expiry_date),
        'batch_number': medicine.batch_number,
        'location': medicine.location,
        'created_at': _iso(medicine.created_at),
        'updated_at': _iso(medicine.updated_at),
    }


def serialize_customer_summary(customer) -> Optional[Dict[str, Any]]:
    if customer is None:
        return None
    return {
        'id': customer.id,
        'name': customer.name,
        'email': customer.email,
        'phone': customer.phone,
    }


def serialize_customer(customer) -> Dict[str, Any]:
    data = serialize_customer_summary(customer)
    data.update({
        'address': customer.address,
        'date_of_birth': _iso(customer.date_of_birth),
        'allergies': list(customer.allergies or []),
        'created_at': _iso(customer.created_at),
        'updated_at': _iso(customer.updated_at),
    })
    return data


def serialize_prescription_item(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'medicine_id': item.medicine_id,
        'medicine': serialize_medicine_summary(item.medicine),
        'quantity': item.quantity,
        'dosage': item.dosage,
        'frequency': item.frequency,
        'duration': item.duration,
        'instructions': item.instructions,
    }


def serialize_prescription_summary(prescription) -> Optional[Dict[str, Any]]:
    if prescription is None:
        return None
    return {
        'id': prescription.id,
        'prescription_number': prescription.prescription_number,
        'status': _enum(prescription.status),
    }


def serialize_prescription(prescription) -> Dict[str, Any]:
    data = serialize_prescription_summary(prescription)
    data.update({
        'customer_id': prescription.customer_id,
        'customer': serialize_customer_summary(prescription.customer),
        'doctor_name': prescription.doctor_name,
        'issue_date': _iso(prescription.issue_date),
        'notes': prescription.notes,
        'items': [serialize_prescription_item(item) for item in prescription.items],
        'created_at': _iso(prescription.created_at),
        'updated_at': _iso(prescription.updated_at),
    })
    return data


def serialize_sale_item(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'medicine_id': item.medicine_id,
        'medicine': serialize_medicine_summary(item.medicine),
        'quantity': item.quantity,
        'unit_price': _money(item.unit_price),
        'discount': _money(item.discount),
        'subtotal': _money(item.subtotal),
    }


def serialize_sale(sale) -> Dict[str, Any]:
    return {
        'id': sale.id,
        'customer_id': sale.customer_id,
        'customer': serialize_customer_summary(sale.customer),
        'prescription_id': sale.prescription_id,
        'prescription': serialize_prescription_summary(sale.prescription),
        'cashier_id': sale.cashier_id,
        'cashier': serialize_user(sale.cashier),
        'subtotal': _money(sale.subtotal),
        'tax': _money(sale.tax),
        'discount': _money(sale.discount),
        'total': _money(sale.total),
        'payment_method': _enum(sale.payment_method),
        'notes': sale.notes,
        'sale_date': _iso(sale.sale_date),
        'items': [serialize_sale_item(item) for item in sale.items],
    }


def serialize_alert(alert) -> Dict[str, Any]:
    return {
        'id': alert.id,
        'type': _enum(alert.type),
        'severity': _enum(alert.severity),
        'title': alert.title,
        'message': alert.message,
        'is_read': alert.is_read,
        'medicine_id': alert.medicine_id,
        'created_at': _iso(alert.created_at),
    }
