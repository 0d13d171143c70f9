from typing import Tuple

from flask import Blueprint, jsonify, request, Response

from pharmacy.database import get_session
from pharmacy.middleware import require_login, require_role
from pharmacy.models import Prescription, Sale
from pharmacy.services import customer_service
from pharmacy.utils.pagination import parse_pagination, paginate
from pharmacy.utils.request_data import get_json_body
from pharmacy.utils.serializers import (
    serialize_customer, serialize_prescription_summary, serialize_sale
)

customers_bp = Blueprint('customers', __name__, url_prefix='/api/customers')

RECENT_HISTORY_LIMIT = 5


@customers_bp.route('', methods=['GET'])
@require_login
def list_customers() -> Response:
    query = customer_service.build_customer_query(
        get_session(), search=request.args.get('search', '').strip() or None
    )
    page, limit = parse_pagination(request.args)
    customers, pagination = paginate(query, page, limit)

    return jsonify({
        'customers': [serialize_customer(c) for c in customers],
        'pagination': pagination,
    })


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_login
def get_customer(customer_id: int) -> Response:
    """Customer details with their most recent prescriptions and sales."""
    db_session = get_session()
    customer = customer_service.get_customer(db_session, customer_id)

    prescriptions = db_session.query(Prescription).filter(
        Prescription.customer_id == customer.id
    ).order_by(Prescription.created_at.desc(), Prescription.id.desc()).limit(RECENT_HISTORY_LIMIT).all()

    sales = db_session.query(Sale).filter(
        Sale.customer_id == customer.id
    ).order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(RECENT_HISTORY_LIMIT).all()

    data = serialize_customer(customer)
    data['prescriptions'] = [serialize_prescription_summary(p) for p in prescriptions]
    data['sales'] = [serialize_sale(s) for s in sales]
    return jsonify(data)


@customers_bp.route('', methods=['POST'])
@require_login
def create_customer() -> Tuple[Response, int]:
    customer = customer_service.create_customer(get_session(), get_json_body())
    return jsonify(serialize_customer(customer)), 201


@customers_bp.route('/<int:customer_id>', methods=['PUT'])
@require_login
def update_customer(customer_id: int) -> Response:
    customer = customer_service.update_customer(get_session(), customer_id, get_json_body())
    return jsonify(serialize_customer(customer))


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_login
@require_role('PHARMACIST')
def delete_customer(customer_id: int) -> Tuple[str, int]:
    customer_service.delete_customer(get_session(), customer_id)
    return '', 204
