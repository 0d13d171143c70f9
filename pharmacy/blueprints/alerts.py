"""Alerts blueprint: stock and expiry notifications."""
from typing import Tuple

from flask import Blueprint, jsonify, request, current_app, Response

from pharmacy.database import get_session
from pharmacy.middleware import require_login, require_role
from pharmacy.services import alert_service
from pharmacy.stores import SqlAlchemyStores
from pharmacy.blueprints.metrics import record_alerts
from pharmacy.utils.pagination import parse_pagination, paginate
from pharmacy.utils.request_data import get_json_body, parse_bool_arg
from pharmacy.utils.serializers import serialize_alert

alerts_bp = Blueprint('alerts', __name__, url_prefix='/api/alerts')


@alerts_bp.route('', methods=['GET'])
@require_login
def list_alerts() -> Response:
    """Query args: type, severity, is_read, page, limit"""
    query = alert_service.build_alert_query(
        get_session(),
        alert_type=request.args.get('type') or None,
        severity=request.args.get('severity') or None,
        is_read=parse_bool_arg('is_read'),
    )
    page, limit = parse_pagination(request.args)
    alerts, pagination = paginate(query, page, limit)

    return jsonify({
        'alerts': [serialize_alert(a) for a in alerts],
        'pagination': pagination,
    })


@alerts_bp.route('/stats', methods=['GET'])
@require_login
def alert_stats() -> Response:
    return jsonify(alert_service.get_alert_stats(
        get_session(), ttl=current_app.config.get('CACHE_STATS_TTL')
    ))


@alerts_bp.route('', methods=['POST'])
@require_login
@require_role('PHARMACIST')
def create_alert() -> Tuple[Response, int]:
    alert = alert_service.create_alert(get_session(), get_json_body())
    return jsonify(serialize_alert(alert)), 201


@alerts_bp.route('/<int:alert_id>/read', methods=['PUT'])
@require_login
def mark_read(alert_id: int) -> Response:
    return jsonify(serialize_alert(alert_service.mark_read(get_session(), alert_id)))


@alerts_bp.route('/read-all', methods=['PUT'])
@require_login
def mark_all_read() -> Response:
    data = get_json_body()
    updated = alert_service.mark_all_read(
        get_session(),
        alert_type=data.get('type') or request.args.get('type') or None,
        severity=data.get('severity') or request.args.get('severity') or None,
    )
    return jsonify({'updated': updated})


@alerts_bp.route('/<int:alert_id>', methods=['DELETE'])
@require_login
@require_role('PHARMACIST')
def delete_alert(alert_id: int) -> Tuple[str, int]:
    alert_service.delete_alert(get_session(), alert_id)
    return '', 204


@alerts_bp.route('/check-stock', methods=['POST'])
@require_login
def check_stock() -> Response:
    """Raise missing low-stock alerts for every medicine at or below its minimum."""
    alerts = alert_service.check_stock(SqlAlchemyStores(get_session()))
    record_alerts('STOCK', len(alerts))
    return jsonify({'created': len(alerts), 'alerts': [serialize_alert(a) for a in alerts]})


@alerts_bp.route('/check-expiry', methods=['POST'])
@require_login
def check_expiry() -> Response:
    alerts = alert_service.check_expiry(
        SqlAlchemyStores(get_session()),
        warning_days=current_app.config.get('EXPIRY_WARNING_DAYS', 30)
    )
    record_alerts('EXPIRY', len(alerts))
    return jsonify({'created': len(alerts), 'alerts': [serialize_alert(a) for a in alerts]})
