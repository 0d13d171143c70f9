"""
Unit tests for sale arithmetic and request parsing.
"""

import pytest
from decimal import Decimal

from pharmacy.exceptions import ValidationError
from pharmacy.models import PaymentMethod
from pharmacy.services.sales_service import (
    TAX_RATE, calculate_totals, parse_cart_items, parse_payment_method, _requested_quantities
)
from pharmacy.utils.number_format import parse_int, parse_money, quantize_money


def _line(medicine_id=1, quantity=1, unit_price='10.00', discount='0'):
    return {
        'medicine_id': medicine_id,
        'quantity': quantity,
        'unit_price': Decimal(unit_price),
        'discount': Decimal(discount),
    }


class TestCalculateTotals:
    """Tests for calculate_totals."""

    def test_two_units_at_thousand(self):
        totals = calculate_totals([_line(quantity=2, unit_price='1000.00')])

        assert totals['subtotal'] == Decimal('2000.00')
        assert totals['tax'] == Decimal('200.00')
        assert totals['discount'] == Decimal('0.00')
        assert totals['total'] == Decimal('2200.00')
        assert totals['lines'][0]['subtotal'] == Decimal('2000.00')

    def test_line_discount_reduces_line_subtotal(self):
        totals = calculate_totals([
            _line(medicine_id=1, quantity=3, unit_price='5.00', discount='1.50'),
            _line(medicine_id=2, quantity=1, unit_price='2.25'),
        ])

        assert [line['subtotal'] for line in totals['lines']] == [Decimal('13.50'), Decimal('2.25')]
        assert totals['subtotal'] == Decimal('15.75')

    def test_tax_rounds_half_up_to_cents(self):
        # 0.05 * 0.10 = 0.005 -> 0.01
        totals = calculate_totals([_line(unit_price='0.05')])
        assert totals['tax'] == Decimal('0.01')
        assert totals['total'] == Decimal('0.06')

    def test_total_identity_holds(self):
        totals = calculate_totals(
            [_line(quantity=7, unit_price='3.33', discount='0.99'), _line(medicine_id=2, unit_price='19.99')],
            Decimal('4.10')
        )

        assert totals['total'] == totals['subtotal'] + totals['tax'] - totals['discount']
        assert totals['tax'] == quantize_money(totals['subtotal'] * TAX_RATE)

    def test_overall_discount_up_to_gross_total_is_allowed(self):
        totals = calculate_totals([_line(unit_price='10.00')], Decimal('11.00'))
        assert totals['total'] == Decimal('0.00')

    def test_overall_discount_above_total_is_rejected(self):
        with pytest.raises(ValidationError):
            calculate_totals([_line(unit_price='10.00')], Decimal('11.01'))

    def test_line_discount_above_line_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            calculate_totals([_line(quantity=2, unit_price='1.00', discount='2.01')])


class TestParseCartItems:
    """Tests for cart validation."""

    def test_valid_cart(self):
        items = parse_cart_items([
            {'medicine_id': 1, 'quantity': 2, 'unit_price': 1000},
            {'medicine_id': '2', 'quantity': 1.0, 'unit_price': '9.999', 'discount': 1},
        ])

        assert items[0] == {
            'medicine_id': 1, 'quantity': 2, 'unit_price': Decimal('1000.00'), 'discount': Decimal('0.00')
        }
        assert items[1]['medicine_id'] == 2
        assert items[1]['quantity'] == 1
        assert items[1]['unit_price'] == Decimal('10.00')
        assert items[1]['discount'] == Decimal('1.00')

    @pytest.mark.parametrize('raw', [None, [], 'abc', {'medicine_id': 1}])
    def test_empty_or_malformed_cart_is_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_cart_items(raw)

    @pytest.mark.parametrize('item', [
        {'quantity': 1, 'unit_price': 1},
        {'medicine_id': 1, 'quantity': 0, 'unit_price': 1},
        {'medicine_id': 1, 'quantity': -1, 'unit_price': 1},
        {'medicine_id': 1, 'quantity': 1.5, 'unit_price': 1},
        {'medicine_id': 1, 'quantity': True, 'unit_price': 1},
        {'medicine_id': 1, 'quantity': 1, 'unit_price': 0},
        {'medicine_id': 1, 'quantity': 1, 'unit_price': 'free'},
        {'medicine_id': 1, 'quantity': 1, 'unit_price': 1, 'discount': -1},
    ])
    def test_invalid_line_is_rejected(self, item):
        with pytest.raises(ValidationError):
            parse_cart_items([item])

    def test_repeated_medicine_quantities_are_summed(self):
        requested = _requested_quantities([_line(medicine_id=3, quantity=2), _line(medicine_id=1),
                                           _line(medicine_id=3, quantity=4)])
        assert list(requested.items()) == [(3, 6), (1, 1)]


class TestParsing:
    """Tests for scalar parsers."""

    def test_payment_method_is_case_insensitive(self):
        assert parse_payment_method(' card ') == PaymentMethod.CARD

    def test_payment_method_default(self):
        assert parse_payment_method(None, default=PaymentMethod.CASH) == PaymentMethod.CASH

    @pytest.mark.parametrize('value', [None, '', 'BITCOIN', 3])
    def test_unknown_payment_method_is_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_payment_method(value)

    def test_parse_int_accepts_digit_strings(self):
        assert parse_int(' 42 ', 'quantity') == 42

    def test_parse_int_enforces_minimum(self):
        with pytest.raises(ValidationError):
            parse_int(0, 'quantity', minimum=1)

    def test_parse_money_rejects_non_finite(self):
        with pytest.raises(ValidationError):
            parse_money('NaN', 'price')
