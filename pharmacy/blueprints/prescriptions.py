"""Prescriptions blueprint: registration, status changes and fulfillment."""
from typing import Tuple

from flask import Blueprint, jsonify, request, g, current_app, Response

from pharmacy.database import get_session
from pharmacy.exceptions import PharmacyError
from pharmacy.middleware import require_login, require_role
from pharmacy.services import prescription_service
from pharmacy.services.sales_service import SaleTransactionProcessor
from pharmacy.stores import SqlAlchemyStores
from pharmacy.blueprints.metrics import record_sale, record_rejection
from pharmacy.utils.pagination import parse_pagination, paginate
from pharmacy.utils.request_data import get_json_body
from pharmacy.utils.serializers import serialize_prescription, serialize_sale

prescriptions_bp = Blueprint('prescriptions', __name__, url_prefix='/api/prescriptions')


@prescriptions_bp.route('', methods=['GET'])
@require_login
def list_prescriptions() -> Response:
    query = prescription_service.build_prescription_query(
        get_session(),
        status=request.args.get('status') or None,
        search=request.args.get('search', '').strip() or None,
    )
    page, limit = parse_pagination(request.args)
    prescriptions, pagination = paginate(query, page, limit)

    return jsonify({
        'prescriptions': [serialize_prescription(p) for p in prescriptions],
        'pagination': pagination,
    })


@prescriptions_bp.route('/<int:prescription_id>', methods=['GET'])
@require_login
def get_prescription(prescription_id: int) -> Response:
    prescription = prescription_service.get_prescription(get_session(), prescription_id)
    return jsonify(serialize_prescription(prescription))


@prescriptions_bp.route('', methods=['POST'])
@require_login
@require_role('PHARMACIST', 'TECHNICIAN')
def create_prescription() -> Tuple[Response, int]:
    prescription = prescription_service.create_prescription(get_session(), get_json_body())
    return jsonify(serialize_prescription(prescription)), 201


@prescriptions_bp.route('/<int:prescription_id>', methods=['PUT'])
@require_login
@require_role('PHARMACIST', 'TECHNICIAN')
def update_prescription(prescription_id: int) -> Response:
    """Update notes and/or status (PENDING, PARTIAL, CANCELLED)."""
    prescription = prescription_service.update_prescription(
        get_session(), prescription_id, get_json_body()
    )
    return jsonify(serialize_prescription(prescription))


@prescriptions_bp.route('/<int:prescription_id>/cancel', methods=['POST'])
@require_login
@require_role('PHARMACIST')
def cancel_prescription(prescription_id: int) -> Response:
    prescription = prescription_service.cancel_prescription(get_session(), prescription_id)
    current_app.logger.info(f"Prescription {prescription_id} cancelled by user {g.user.id}")
    return jsonify(serialize_prescription(prescription))


@prescriptions_bp.route('/<int:prescription_id>/fill', methods=['POST'])
@require_login
def fill_prescription(prescription_id: int) -> Tuple[Response, int]:
    """
    Fill a PENDING prescription as a sale by the authenticated cashier.

    Body (optional): {payment_method, discount}
    """
    data = get_json_body()
    processor = SaleTransactionProcessor(SqlAlchemyStores(get_session()))

    try:
        sale = processor.fill_prescription(
            prescription_id,
            cashier_id=g.user.id,
            payment_method=data.get('payment_method'),
            discount=data.get('discount'),
        )
    except PharmacyError as e:
        record_rejection('prescription', e)
        raise

    record_sale('prescription', sale)
    return jsonify(serialize_sale(sale)), 200
