"""Medicine inventory service: CRUD, stock adjustment and listing."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, func

from pharmacy.exceptions import ValidationError, NotFoundError, InsufficientStockError
from pharmacy.models import Alert, Medicine, PrescriptionItem, SaleItem
from pharmacy.services.alert_service import raise_stock_alert_if_needed, CACHE_MODULE as ALERTS_CACHE
from pharmacy.services.cache_service import invalidate_modules
from pharmacy.utils.number_format import parse_int, parse_money, parse_date

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ('name', 'manufacturer', 'category', 'batch_number')
OPTIONAL_TEXT_FIELDS = ('generic_name', 'description', 'location')


def _clean_text(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _parse_medicine_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate a medicine payload. With partial=True only present keys are checked."""
    fields = {}

    for key in REQUIRED_TEXT_FIELDS:
        if key in data or not partial:
            value = _clean_text(data.get(key))
            if not value:
                raise ValidationError(f'{key} is required')
            fields[key] = value

    for key in OPTIONAL_TEXT_FIELDS:
        if key in data:
            fields[key] = _clean_text(data.get(key))

    if 'price' in data or not partial:
        fields['price'] = parse_money(data.get('price'), 'price', positive=True)
    if 'quantity' in data or not partial:
        fields['quantity'] = parse_int(data.get('quantity'), 'quantity', minimum=0)
    if 'min_stock_level' in data or not partial:
        fields['min_stock_level'] = parse_int(data.get('min_stock_level', 0), 'min_stock_level', minimum=0)
    if 'expiry_date' in data or not partial:
        fields['expiry_date'] = parse_date(data.get('expiry_date'), 'expiry_date')

    return fields


def build_medicine_query(session, search=None, category=None, low_stock=False, expiring_soon=False,
                         warning_days: int = 30, today: Optional[date] = None):
    """Medicines filtered for the inventory list, ordered by name."""
    query = session.query(Medicine)

    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Medicine.name).like(pattern),
            func.lower(Medicine.generic_name).like(pattern),
            func.lower(Medicine.manufacturer).like(pattern)
        ))
    if category:
        query = query.filter(Medicine.category == category)
    if low_stock:
        query = query.filter(Medicine.quantity <= Medicine.min_stock_level)
    if expiring_soon:
        today = today or date.today()
        query = query.filter(Medicine.expiry_date <= today + timedelta(days=warning_days))

    return query.order_by(Medicine.name, Medicine.id)


def get_inventory_stats(session, warning_days: int = 30, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    count, total_quantity = session.query(
        func.count(Medicine.id), func.coalesce(func.sum(Medicine.quantity), 0)
    ).one()
    low_stock = session.query(func.count(Medicine.id)).filter(
        Medicine.quantity <= Medicine.min_stock_level
    ).scalar()
    expiring = session.query(func.count(Medicine.id)).filter(
        Medicine.expiry_date <= today + timedelta(days=warning_days)
    ).scalar()
    return {
        'total_medicines': count,
        'total_quantity': int(total_quantity),
        'low_stock_items': low_stock,
        'expiring_soon': expiring,
    }


def list_categories(session) -> List[str]:
    rows = session.query(Medicine.category).distinct().order_by(Medicine.category).all()
    return [row[0] for row in rows]


def get_medicine(session, medicine_id: int) -> Medicine:
    medicine = session.get(Medicine, medicine_id)
    if not medicine:
        raise NotFoundError.for_resource('Medicine', medicine_id)
    return medicine


def create_medicine(stores, data: Dict[str, Any]) -> Medicine:
    """Create a medicine; raises the low-stock alert if it starts at or below its minimum."""
    fields = _parse_medicine_data(data)

    with stores.transaction():
        medicine = Medicine(**fields)
        stores.session.add(medicine)
        stores.session.flush()
        alert = raise_stock_alert_if_needed(stores, medicine)

    logger.info(f"Medicine {medicine.id} ({medicine.name}) created with quantity {medicine.quantity}")
    if alert:
        invalidate_modules(ALERTS_CACHE)
    return medicine


def update_medicine(stores, medicine_id: int, data: Dict[str, Any]) -> Medicine:
    """Partially update a medicine. A quantity change re-evaluates the stock alert."""
    fields = _parse_medicine_data(data, partial=True)

    with stores.transaction():
        medicine = stores.medicines.lock_many([medicine_id]).get(medicine_id)
        if not medicine:
            raise NotFoundError.for_resource('Medicine', medicine_id)

        for key, value in fields.items():
            setattr(medicine, key, value)
        stores.session.flush()

        alert = None
        if 'quantity' in fields or 'min_stock_level' in fields:
            alert = raise_stock_alert_if_needed(stores, medicine)

    if alert:
        invalidate_modules(ALERTS_CACHE)
    return medicine


def adjust_stock(stores, medicine_id: int, delta, reason: Optional[str] = None) -> Medicine:
    """
    Add (receiving) or remove (write-off) stock atomically.

    Raises:
        ValidationError: if delta is zero or not an integer
        NotFoundError: if the medicine does not exist
        InsufficientStockError: if the adjustment would make stock negative
    """
    delta = parse_int(delta, 'delta', minimum=-(2 ** 62))
    if delta == 0:
        raise ValidationError('delta must not be zero')

    with stores.transaction():
        medicine = stores.medicines.lock_many([medicine_id]).get(medicine_id)
        if not medicine:
            raise NotFoundError.for_resource('Medicine', medicine_id)

        if medicine.quantity + delta < 0:
            raise InsufficientStockError(medicine.name, medicine.quantity, -delta, medicine_id=medicine.id)

        updated = stores.medicines.adjust_quantity(medicine_id, delta)
        if updated is None:
            raise InsufficientStockError(medicine.name, medicine.quantity, -delta, medicine_id=medicine.id)
        alert = raise_stock_alert_if_needed(stores, updated)

    logger.info(
        f"Stock adjusted for medicine {medicine_id}: {delta:+d} -> {updated.quantity} "
        f"(reason: {reason or 'n/a'})"
    )
    if alert:
        invalidate_modules(ALERTS_CACHE)
    return updated


def delete_medicine(session, medicine_id: int) -> None:
    """Delete a medicine that no sale or prescription references."""
    medicine = get_medicine(session, medicine_id)

    referenced = (
        session.query(SaleItem.id).filter(SaleItem.medicine_id == medicine_id).first()
        or session.query(PrescriptionItem.id).filter(PrescriptionItem.medicine_id == medicine_id).first()
    )
    if referenced:
        raise ValidationError(
            f'Medicine "{medicine.name}" is referenced by sales or prescriptions and cannot be deleted'
        )

    session.query(Alert).filter(Alert.medicine_id == medicine_id).update(
        {Alert.medicine_id: None}, synchronize_session=False
    )
    session.delete(medicine)
    session.commit()
    logger.info(f"Medicine {medicine_id} deleted")
