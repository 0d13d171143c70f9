"""
Sales service with transactional logic.
Handles direct sales and prescription fulfillment: stock validation, totals,
atomic stock decrement, sale recording and low-stock alerts.
"""
import logging
from collections import OrderedDict
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from pharmacy.exceptions import (
    PharmacyError, ValidationError, NotFoundError, InsufficientStockError,
    InvalidStateError, TransactionFailure
)
from pharmacy.models import (
    Medicine, Sale, SaleItem, PaymentMethod, PrescriptionStatus, normalize_payment_method
)
from pharmacy.services.alert_service import raise_stock_alert_if_needed
from pharmacy.services.cache_service import get_cache, invalidate_modules
from pharmacy.utils.number_format import parse_int, parse_money, quantize_money

logger = logging.getLogger(__name__)

# Flat sales tax applied to every sale.
TAX_RATE = Decimal('0.10')

CACHE_MODULE = 'sales'


def calculate_totals(lines: List[Dict[str, Any]], overall_discount: Decimal = Decimal('0')) -> Dict[str, Any]:
    """
    Compute line subtotals and sale totals.

    Each line needs quantity, unit_price and discount. Returns the lines with
    their subtotal plus subtotal, tax, discount and total, all rounded to cents.

    Raises:
        ValidationError: if a line or the sale total would be negative.
    """
    priced_lines = []
    subtotal = Decimal('0.00')

    for line in lines:
        gross = line['quantity'] * line['unit_price']
        if line['discount'] > gross:
            raise ValidationError(
                f"Discount {line['discount']} exceeds line amount {quantize_money(gross)} "
                f"for medicine {line['medicine_id']}"
            )
        line_subtotal = quantize_money(gross - line['discount'])
        priced_lines.append(dict(line, subtotal=line_subtotal))
        subtotal += line_subtotal

    subtotal = quantize_money(subtotal)
    tax = quantize_money(subtotal * TAX_RATE)
    overall_discount = quantize_money(overall_discount)

    if overall_discount > subtotal + tax:
        raise ValidationError(f'Discount {overall_discount} exceeds the sale amount {subtotal + tax}')

    return {
        'lines': priced_lines,
        'subtotal': subtotal,
        'tax': tax,
        'discount': overall_discount,
        'total': subtotal + tax - overall_discount,
    }


def parse_cart_items(raw_items) -> List[Dict[str, Any]]:
    """Validate the raw cart from a request body."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError('At least one item is required')

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f'items[{index}] must be an object')
        medicine_id = raw.get('medicine_id')
        if medicine_id is None:
            raise ValidationError(f'items[{index}].medicine_id is required')
        items.append({
            'medicine_id': parse_int(medicine_id, f'items[{index}].medicine_id', minimum=1),
            'quantity': parse_int(raw.get('quantity'), f'items[{index}].quantity', minimum=1),
            'unit_price': parse_money(raw.get('unit_price'), f'items[{index}].unit_price', positive=True),
            'discount': parse_money(raw.get('discount', 0), f'items[{index}].discount'),
        })
    return items


def parse_payment_method(value, default: Optional[PaymentMethod] = None) -> PaymentMethod:
    if value is None and default is not None:
        return default
    method = normalize_payment_method(value)
    if method is None:
        allowed = ', '.join(m.value for m in PaymentMethod)
        raise ValidationError(f'payment_method must be one of: {allowed}')
    return method


def _requested_quantities(lines: List[Dict[str, Any]]) -> "OrderedDict[int, int]":
    """Total requested quantity per medicine, in first-seen order."""
    requested = OrderedDict()
    for line in lines:
        requested[line['medicine_id']] = requested.get(line['medicine_id'], 0) + line['quantity']
    return requested


class SaleTransactionProcessor:
    """
    Turns a cart (direct sale) or a pending prescription (fulfillment) into a
    persisted sale, stock decrements and low-stock alerts, all in one
    transaction.

    The processor only talks to the store bundle it is given; it does not know
    which database backs it.
    """

    def __init__(self, stores):
        self.stores = stores

    def create_sale(self, data: Dict[str, Any], cashier_id: int) -> Sale:
        """
        Create a direct sale.

        Args:
            data: Request payload with items, payment_method and the optional
                customer_id, discount and notes
            cashier_id: Authenticated operator recording the sale

        Returns:
            The persisted Sale with its items
        """
        if not cashier_id:
            raise ValidationError('A sale must have a cashier')

        items = parse_cart_items(data.get('items'))
        payment_method = parse_payment_method(data.get('payment_method'))
        discount = data.get('discount')
        overall_discount = parse_money(discount if discount is not None else 0, 'discount')

        notes = data.get('notes')
        if notes is not None and not isinstance(notes, str):
            raise ValidationError('notes must be a string')
        notes = (notes or '').strip() or None

        customer_id = data.get('customer_id')
        if customer_id is not None:
            customer_id = parse_int(customer_id, 'customer_id', minimum=1)

        with self._atomic('sale'):
            if customer_id is not None and not self.stores.customers.get_by_id(customer_id):
                raise NotFoundError.for_resource('Customer', customer_id)

            self._lock_and_check_stock(items)
            totals = calculate_totals(items, overall_discount)

            sale = self._record_sale(totals, {
                'customer_id': customer_id,
                'prescription_id': None,
                'cashier_id': cashier_id,
                'payment_method': payment_method,
                'notes': notes,
            })

        logger.info(
            f"Sale #{sale.id} created by cashier {cashier_id}: "
            f"{len(items)} items, total {totals['total']} ({payment_method.value})"
        )
        invalidate_modules(CACHE_MODULE)
        return sale

    def fill_prescription(
        self,
        prescription_id: int,
        cashier_id: int,
        payment_method=None,
        discount=0
    ) -> Sale:
        """
        Fulfill a PENDING prescription: sell all of its items at the current
        medicine prices and mark it FILLED.
        """
        if not cashier_id:
            raise ValidationError('A sale must have a cashier')

        method = parse_payment_method(payment_method, default=PaymentMethod.CASH)
        overall_discount = parse_money(discount if discount is not None else 0, 'discount')

        with self._atomic('prescription fill'):
            prescription = self.stores.prescriptions.get_by_id_with_items(prescription_id, lock=True)
            if not prescription:
                raise NotFoundError.for_resource('Prescription', prescription_id)

            if prescription.status != PrescriptionStatus.PENDING:
                raise InvalidStateError(
                    f'Prescription {prescription.prescription_number} is not pending',
                    current_status=prescription.status.value
                )

            if not prescription.items:
                raise ValidationError(f'Prescription {prescription.prescription_number} has no items')

            lines = [
                {'medicine_id': item.medicine_id, 'quantity': item.quantity}
                for item in prescription.items
            ]
            medicines = self._lock_and_check_stock(lines)

            # Priced at the live medicine price; no line discounts on fills
            for line in lines:
                line['unit_price'] = medicines[line['medicine_id']].price
                line['discount'] = Decimal('0.00')
            totals = calculate_totals(lines, overall_discount)

            sale = self._record_sale(totals, {
                'customer_id': prescription.customer_id,
                'prescription_id': prescription.id,
                'cashier_id': cashier_id,
                'payment_method': method,
                'notes': None,
            })

            if not self.stores.prescriptions.update_status(
                prescription.id, PrescriptionStatus.FILLED, expected=PrescriptionStatus.PENDING
            ):
                raise InvalidStateError(
                    f'Prescription {prescription.prescription_number} was filled concurrently',
                    current_status=PrescriptionStatus.FILLED.value
                )

        logger.info(
            f"Prescription {prescription_id} filled as sale #{sale.id} by cashier {cashier_id}, "
            f"total {totals['total']}"
        )
        invalidate_modules(CACHE_MODULE, 'prescriptions')
        return sale

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    @contextmanager
    def _atomic(self, operation: str):
        """Run the block in one store transaction; unexpected errors become TransactionFailure."""
        try:
            with self.stores.transaction():
                yield
        except PharmacyError as e:
            logger.info(f"{operation} rejected: {e.message}")
            raise
        except Exception as e:
            logger.error(f"{operation} rolled back: {type(e).__name__}: {e}", exc_info=True)
            raise TransactionFailure(f'Error processing {operation}', cause=e) from e

    def _lock_and_check_stock(self, lines: List[Dict[str, Any]]) -> Dict[int, Medicine]:
        """Lock the cart's medicines and verify every requested quantity is available."""
        requested = _requested_quantities(lines)
        medicines = self.stores.medicines.lock_many(requested.keys())

        for medicine_id, quantity in requested.items():
            medicine = medicines.get(medicine_id)
            if medicine is None:
                raise NotFoundError.for_resource('Medicine', medicine_id)
            if medicine.quantity < quantity:
                raise InsufficientStockError(
                    medicine.name, medicine.quantity, quantity, medicine_id=medicine.id
                )
        return medicines

    def _record_sale(self, totals: Dict[str, Any], fields: Dict[str, Any]) -> Sale:
        """Insert the sale, decrement stock and raise alerts."""
        sale = self.stores.sales.insert(
            dict(
                fields,
                subtotal=totals['subtotal'],
                tax=totals['tax'],
                discount=totals['discount'],
                total=totals['total'],
                sale_date=datetime.now(),
            ),
            [
                {
                    'medicine_id': line['medicine_id'],
                    'quantity': line['quantity'],
                    'unit_price': line['unit_price'],
                    'discount': line['discount'],
                    'subtotal': line['subtotal'],
                }
                for line in totals['lines']
            ]
        )

        for medicine_id, quantity in _requested_quantities(totals['lines']).items():
            medicine = self.stores.medicines.decrement_quantity(medicine_id, quantity)
            raise_stock_alert_if_needed(self.stores, medicine)

        return sale


# =====================================================
# QUERIES
# =====================================================

def build_sales_query(session, start_date=None, end_date=None, payment_method=None, customer_id=None):
    """Sales filtered by date range, payment method and customer, newest first."""
    query = session.query(Sale).options(
        selectinload(Sale.items).selectinload(SaleItem.medicine),
        selectinload(Sale.customer),
        selectinload(Sale.cashier),
        selectinload(Sale.prescription),
    )
    if start_date and end_date:
        query = query.filter(Sale.sale_date >= start_date, Sale.sale_date <= end_date)
    if payment_method:
        query = query.filter(Sale.payment_method == parse_payment_method(payment_method))
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc())


def get_sale(session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError.for_resource('Sale', sale_id)
    return sale


def _load_sales_summary(session, start_date=None, end_date=None) -> Dict[str, Any]:
    filters = []
    if start_date and end_date:
        filters = [Sale.sale_date >= start_date, Sale.sale_date <= end_date]

    total, tax, discount, count = session.query(
        func.coalesce(func.sum(Sale.total), 0),
        func.coalesce(func.sum(Sale.tax), 0),
        func.coalesce(func.sum(Sale.discount), 0),
        func.count(Sale.id),
    ).filter(*filters).one()

    by_method = session.query(
        Sale.payment_method, func.coalesce(func.sum(Sale.total), 0), func.count(Sale.id)
    ).filter(*filters).group_by(Sale.payment_method).all()

    revenue = func.sum(SaleItem.subtotal)
    top_medicines = session.query(
        Medicine.id, Medicine.name, func.sum(SaleItem.quantity), revenue
    ).join(SaleItem, SaleItem.medicine_id == Medicine.id).join(
        Sale, Sale.id == SaleItem.sale_id
    ).filter(*filters).group_by(Medicine.id, Medicine.name).order_by(revenue.desc()).limit(10).all()

    total = quantize_money(total)
    return {
        'total_sales': str(total),
        'total_transactions': count,
        'average_sale': str(quantize_money(total / count)) if count else '0.00',
        'total_tax': str(quantize_money(tax)),
        'total_discount': str(quantize_money(discount)),
        'sales_by_payment_method': [
            {'payment_method': method.value, 'total': str(quantize_money(amount)), 'count': n}
            for method, amount, n in by_method
        ],
        'top_medicines': [
            {
                'medicine_id': medicine_id,
                'name': name,
                'quantity': int(quantity or 0),
                'revenue': str(quantize_money(amount or 0)),
            }
            for medicine_id, name, quantity, amount in top_medicines
        ],
    }


def get_sales_summary(session, start_date=None, end_date=None, ttl: Optional[int] = None) -> Dict[str, Any]:
    """Sales statistics, cached until the next sale."""
    key = f"summary:{start_date.isoformat() if start_date else '-'}:{end_date.isoformat() if end_date else '-'}"
    return get_cache().memoize(
        CACHE_MODULE, key, lambda: _load_sales_summary(session, start_date, end_date), ttl
    )
