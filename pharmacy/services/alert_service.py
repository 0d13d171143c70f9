"""
Alert service: low-stock and expiry alerts, plus alert listing and stats.

Stock and expiry alerts are deduplicated on (type, medicine_id) among unread
alerts, so repeated triggers for the same medicine never pile up.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from pharmacy.exceptions import NotFoundError, ValidationError
from pharmacy.models import Alert, AlertType, AlertSeverity, Medicine
from pharmacy.services.cache_service import get_cache, invalidate_modules

logger = logging.getLogger(__name__)

CACHE_MODULE = 'alerts'


def build_stock_alert(medicine: Medicine) -> Dict[str, Any]:
    """Alert fields for a medicine at or below its minimum stock level."""
    if medicine.quantity == 0:
        return {
            'type': AlertType.STOCK,
            'severity': AlertSeverity.CRITICAL,
            'title': 'Out of Stock',
            'message': f'{medicine.name} - Out of stock (0 units remaining)',
            'medicine_id': medicine.id,
        }
    return {
        'type': AlertType.STOCK,
        'severity': AlertSeverity.HIGH,
        'title': 'Low Stock Alert',
        'message': f'{medicine.name} - Only {medicine.quantity} units remaining',
        'medicine_id': medicine.id,
    }


def raise_stock_alert_if_needed(stores, medicine: Medicine) -> Optional[Alert]:
    """
    Raise a STOCK alert when the medicine is at or below its minimum level.

    Does nothing if the level is fine or an unread STOCK alert already exists
    for this medicine. Runs inside the caller's transaction.

    Returns:
        The created Alert, or None.
    """
    if medicine.quantity > medicine.min_stock_level:
        return None

    if stores.alerts.find_unread_stock_alert(medicine.id):
        logger.debug(f"Unread stock alert already exists for medicine {medicine.id}")
        return None

    alert = stores.alerts.insert(**build_stock_alert(medicine))
    logger.info(
        f"Stock alert raised for medicine {medicine.id} ({medicine.name}): "
        f"{medicine.quantity} <= {medicine.min_stock_level}, severity {alert.severity.value}"
    )
    return alert


def expiry_severity(days_until_expiry: int) -> AlertSeverity:
    """Severity for a medicine expiring in the given number of days."""
    if days_until_expiry <= 7:
        return AlertSeverity.CRITICAL
    if days_until_expiry <= 14:
        return AlertSeverity.HIGH
    return AlertSeverity.MEDIUM


def build_expiry_alert(medicine: Medicine, today: date) -> Dict[str, Any]:
    days = (medicine.expiry_date - today).days
    if days < 0:
        title = 'Medicine Expired'
        message = f'{medicine.name} (batch {medicine.batch_number}) expired {-days} days ago'
    else:
        title = 'Medicine Expiring Soon'
        message = f'{medicine.name} (batch {medicine.batch_number}) expires in {days} days'
    return {
        'type': AlertType.EXPIRY,
        'severity': expiry_severity(days),
        'title': title,
        'message': message,
        'medicine_id': medicine.id,
    }


def check_stock(stores) -> List[Alert]:
    """Sweep every low-stock medicine and raise missing STOCK alerts."""
    with stores.transaction():
        created = []
        for medicine in stores.medicines.list_low_stock(lock=True):
            alert = raise_stock_alert_if_needed(stores, medicine)
            if alert:
                created.append(alert)

    logger.info(f"Stock check created {len(created)} alerts")
    if created:
        invalidate_modules(CACHE_MODULE)
    return created


def check_expiry(stores, today: Optional[date] = None, warning_days: int = 30) -> List[Alert]:
    """Raise EXPIRY alerts for medicines expiring within warning_days."""
    if today is None:
        today = date.today()
    until = today + timedelta(days=warning_days)

    with stores.transaction():
        created = []
        for medicine in stores.medicines.list_expiring(until, lock=True):
            if stores.alerts.find_unread(AlertType.EXPIRY, medicine.id):
                continue
            created.append(stores.alerts.insert(**build_expiry_alert(medicine, today)))

    logger.info(f"Expiry check created {len(created)} alerts (window {warning_days} days)")
    if created:
        invalidate_modules(CACHE_MODULE)
    return created


# =====================================================
# CRUD / QUERIES
# =====================================================

def _parse_enum(enum_cls, value, field):
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ', '.join(e.value for e in enum_cls)
        raise ValidationError(f'{field} must be one of: {allowed}')


def build_alert_query(session, alert_type=None, severity=None, is_read=None):
    """Alerts filtered by type/severity/read flag, newest first."""
    query = session.query(Alert)
    if alert_type:
        query = query.filter(Alert.type == _parse_enum(AlertType, alert_type, 'type'))
    if severity:
        query = query.filter(Alert.severity == _parse_enum(AlertSeverity, severity, 'severity'))
    if is_read is not None:
        query = query.filter(Alert.is_read.is_(is_read))
    return query.order_by(Alert.created_at.desc(), Alert.id.desc())


def create_alert(session, data: Dict[str, Any]) -> Alert:
    """Create a manual alert (not tied to a medicine)."""
    title, message = data.get('title'), data.get('message')
    title = title.strip() if isinstance(title, str) else ''
    message = message.strip() if isinstance(message, str) else ''
    if not title:
        raise ValidationError('Title is required')
    if not message:
        raise ValidationError('Message is required')

    alert = Alert(
        type=_parse_enum(AlertType, data.get('type'), 'type'),
        severity=_parse_enum(AlertSeverity, data.get('severity'), 'severity'),
        title=title,
        message=message,
        is_read=False
    )
    session.add(alert)
    session.commit()
    invalidate_modules(CACHE_MODULE)
    return alert


def get_alert(session, alert_id: int) -> Alert:
    alert = session.get(Alert, alert_id)
    if not alert:
        raise NotFoundError.for_resource('Alert', alert_id)
    return alert


def mark_read(session, alert_id: int) -> Alert:
    alert = get_alert(session, alert_id)
    alert.is_read = True
    session.commit()
    invalidate_modules(CACHE_MODULE)
    return alert


def mark_all_read(session, alert_type=None, severity=None) -> int:
    """Mark every unread alert (optionally of one type/severity) as read."""
    query = build_alert_query(session, alert_type, severity, is_read=False).order_by(None)
    updated = query.update({Alert.is_read: True}, synchronize_session=False)
    session.commit()
    invalidate_modules(CACHE_MODULE)
    return updated


def delete_alert(session, alert_id: int) -> None:
    alert = get_alert(session, alert_id)
    session.delete(alert)
    session.commit()
    invalidate_modules(CACHE_MODULE)


def _load_alert_stats(session) -> Dict[str, Any]:
    total = session.query(func.count(Alert.id)).scalar() or 0
    unread = session.query(func.count(Alert.id)).filter(Alert.is_read.is_(False)).scalar() or 0

    by_type = session.query(Alert.type, func.count(Alert.id)).filter(
        Alert.is_read.is_(False)
    ).group_by(Alert.type).all()

    by_severity = session.query(Alert.severity, func.count(Alert.id)).filter(
        Alert.is_read.is_(False)
    ).group_by(Alert.severity).all()

    return {
        'total': total,
        'unread': unread,
        'by_type': {alert_type.value: count for alert_type, count in by_type},
        'by_severity': {severity.value: count for severity, count in by_severity},
    }


def get_alert_stats(session, ttl: Optional[int] = None) -> Dict[str, Any]:
    """Alert counters, cached between alert writes."""
    return get_cache().memoize(CACHE_MODULE, 'stats', lambda: _load_alert_stats(session), ttl)
