"""Sales blueprint: point-of-sale checkout and sales history."""
from typing import Tuple

from flask import Blueprint, jsonify, request, g, current_app, Response

from pharmacy.database import get_session
from pharmacy.exceptions import PharmacyError
from pharmacy.middleware import require_login
from pharmacy.services import sales_service
from pharmacy.services.sales_service import SaleTransactionProcessor
from pharmacy.stores import SqlAlchemyStores
from pharmacy.blueprints.metrics import record_sale, record_rejection
from pharmacy.utils.pagination import parse_pagination, paginate
from pharmacy.utils.request_data import get_json_body, parse_date_range
from pharmacy.utils.serializers import serialize_sale

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


@sales_bp.route('', methods=['GET'])
@require_login
def list_sales() -> Response:
    """Sales history, filterable by date range, payment method and customer."""
    db_session = get_session()
    start_date, end_date = parse_date_range()

    query = sales_service.build_sales_query(
        db_session,
        start_date=start_date,
        end_date=end_date,
        payment_method=request.args.get('payment_method') or None,
        customer_id=request.args.get('customer_id', type=int),
    )
    page, limit = parse_pagination(request.args)
    sales, pagination = paginate(query, page, limit)

    return jsonify({
        'sales': [serialize_sale(sale) for sale in sales],
        'pagination': pagination,
    })


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_login
def get_sale(sale_id: int) -> Response:
    sale = sales_service.get_sale(get_session(), sale_id)
    return jsonify(serialize_sale(sale))


@sales_bp.route('', methods=['POST'])
@require_login
def create_sale() -> Tuple[Response, int]:
    """
    Record a direct sale for the authenticated cashier.

    Body: {items: [{medicine_id, quantity, unit_price, discount?}],
           payment_method, customer_id?, discount?, notes?}
    """
    data = get_json_body()
    processor = SaleTransactionProcessor(SqlAlchemyStores(get_session()))

    try:
        sale = processor.create_sale(data, cashier_id=g.user.id)
    except PharmacyError as e:
        record_rejection('direct', e)
        raise

    record_sale('direct', sale)
    current_app.logger.info(f"Sale #{sale.id} recorded, total {sale.total}")
    return jsonify(serialize_sale(sale)), 201


@sales_bp.route('/stats/summary', methods=['GET'])
@require_login
def sales_summary() -> Response:
    """Totals, averages, payment-method split and top medicines."""
    start_date, end_date = parse_date_range()
    summary = sales_service.get_sales_summary(
        get_session(), start_date, end_date, ttl=current_app.config.get('CACHE_STATS_TTL')
    )
    return jsonify(summary)
