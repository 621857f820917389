"""
Unit tests for price and quantity input parsing.
"""

from decimal import Decimal

import pytest

from cotizador.utils.number_format import MAX_PRICE, MAX_QUANTITY, parse_price, parse_quantity


class TestParsePrice:

    @pytest.mark.parametrize('raw, expected', [
        ('1234.5', Decimal('1234.50')),
        ('1,234.50', Decimal('1234.50')),
        ('$1,234.50', Decimal('1234.50')),
        (' 250.5 ', Decimal('250.50')),
        (1000, Decimal('1000.00')),
        (Decimal('99.999'), Decimal('100.00')),
    ])
    def test_accepts_common_formats(self, raw, expected):
        assert parse_price(raw) == expected

    @pytest.mark.parametrize('raw', [None, '', 'abc', '-5', -1, 'NaN', 'Infinity'])
    def test_invalid_or_negative_clamps_to_zero(self, raw):
        assert parse_price(raw) == Decimal('0.00')


class TestParseQuantity:

    @pytest.mark.parametrize('raw, expected', [
        ('3', 3),
        (2, 2),
        ('2.0', 2),
        (' 10 ', 10),
    ])
    def test_integers(self, raw, expected):
        assert parse_quantity(raw) == expected

    @pytest.mark.parametrize('raw', [None, '', '0', '-3', 'dos', '0.5', True, 'Infinity'])
    def test_falls_back_to_one(self, raw):
        assert parse_quantity(raw) == 1

    @pytest.mark.parametrize('raw', ['1e30', 10 ** 30, '99999999999999999999'])
    def test_out_of_range_falls_back_to_one(self, raw):
        assert parse_quantity(raw) == 1

    def test_upper_bound(self):
        assert parse_quantity(str(MAX_QUANTITY)) == MAX_QUANTITY


class TestPriceRange:

    @pytest.mark.parametrize('raw', ['1e30', Decimal('1E+40'), 10 ** 30, '10,000,000.00'])
    def test_out_of_range_clamps_to_zero(self, raw):
        assert parse_price(raw) == Decimal('0.00')

    def test_upper_bound(self):
        assert parse_price('9,999,999.99') == MAX_PRICE
