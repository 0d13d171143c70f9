"""Medicines blueprint: inventory catalogue and stock adjustments."""
from typing import Tuple

from flask import Blueprint, jsonify, request, current_app, Response

from pharmacy.database import get_session
from pharmacy.middleware import require_login, require_role
from pharmacy.services import medicine_service
from pharmacy.stores import SqlAlchemyStores
from pharmacy.utils.pagination import parse_pagination, paginate
from pharmacy.utils.request_data import get_json_body, parse_bool_arg
from pharmacy.utils.serializers import serialize_medicine

medicines_bp = Blueprint('medicines', __name__, url_prefix='/api/medicines')


@medicines_bp.route('', methods=['GET'])
@require_login
def list_medicines() -> Response:
    """
    Inventory list with stats.

    Query args: search, category, low_stock, expiring_soon, page, limit
    """
    db_session = get_session()
    warning_days = current_app.config.get('EXPIRY_WARNING_DAYS', 30)

    query = medicine_service.build_medicine_query(
        db_session,
        search=request.args.get('search', '').strip() or None,
        category=request.args.get('category', '').strip() or None,
        low_stock=bool(parse_bool_arg('low_stock')),
        expiring_soon=bool(parse_bool_arg('expiring_soon')),
        warning_days=warning_days,
    )
    page, limit = parse_pagination(request.args)
    medicines, pagination = paginate(query, page, limit)

    return jsonify({
        'medicines': [serialize_medicine(m) for m in medicines],
        'pagination': pagination,
        'stats': medicine_service.get_inventory_stats(db_session, warning_days=warning_days),
    })


@medicines_bp.route('/meta/categories', methods=['GET'])
@require_login
def list_categories() -> Response:
    return jsonify(medicine_service.list_categories(get_session()))


@medicines_bp.route('/<int:medicine_id>', methods=['GET'])
@require_login
def get_medicine(medicine_id: int) -> Response:
    return jsonify(serialize_medicine(medicine_service.get_medicine(get_session(), medicine_id)))


@medicines_bp.route('', methods=['POST'])
@require_login
@require_role('PHARMACIST')
def create_medicine() -> Tuple[Response, int]:
    medicine = medicine_service.create_medicine(SqlAlchemyStores(get_session()), get_json_body())
    return jsonify(serialize_medicine(medicine)), 201


@medicines_bp.route('/<int:medicine_id>', methods=['PUT'])
@require_login
@require_role('PHARMACIST')
def update_medicine(medicine_id: int) -> Response:
    medicine = medicine_service.update_medicine(
        SqlAlchemyStores(get_session()), medicine_id, get_json_body()
    )
    return jsonify(serialize_medicine(medicine))


@medicines_bp.route('/<int:medicine_id>/adjust-stock', methods=['POST'])
@require_login
@require_role('PHARMACIST', 'TECHNICIAN')
def adjust_stock(medicine_id: int) -> Response:
    """
    Receive or write off stock.

    Body: {delta: int (positive to add, negative to remove), reason?: str}
    """
    data = get_json_body()
    medicine = medicine_service.adjust_stock(
        SqlAlchemyStores(get_session()), medicine_id, data.get('delta'), data.get('reason')
    )
    return jsonify(serialize_medicine(medicine))


@medicines_bp.route('/<int:medicine_id>', methods=['DELETE'])
@require_login
@require_role('ADMIN')
def delete_medicine(medicine_id: int) -> Tuple[str, int]:
    medicine_service.delete_medicine(get_session(), medicine_id)
    return '', 204
