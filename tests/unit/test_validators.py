"""
Unit tests for form validators.
"""

from datetime import date

import pytest

from cotizador.exceptions import ValidationError
from cotizador.utils.validators import (
    is_valid_email, parse_date, parse_int, validate_client_form, validate_password,
    validate_product_form, validate_quote_header, validate_rfc
)


class TestRfc:

    @pytest.mark.parametrize('rfc', ['INO010203AB1', 'GOMA800101XY9', 'ñañ010101AAA', '&AB010101AB1', ''])
    def test_valid(self, rfc):
        valid, message = validate_rfc(rfc)
        assert valid is True
        assert message is None

    @pytest.mark.parametrize('rfc', ['ABC12', 'AB010101AB1', 'ABCD01010AAB1', 'ABC-010101-AB1',
                                     'ABC\u0660\u0661\u0660\u0662\u0660\u0663AB1'])
    def test_invalid(self, rfc):
        assert validate_rfc(rfc) == (False, 'RFC inválido')


class TestClientForm:

    def test_name_required(self):
        assert validate_client_form({'name': '  '})['name'] == 'Nombre es requerido'

    def test_bad_email_and_rfc(self):
        errors = validate_client_form({'name': 'X', 'email': 'no-arroba', 'rfc': '123'})
        assert errors == {'email': 'Email inválido', 'rfc': 'RFC inválido'}

    def test_tax_regime_must_be_known(self):
        assert 'tax_regime' in validate_client_form({'name': 'X', 'tax_regime': '999'})
        assert validate_client_form({'name': 'X', 'tax_regime': '626'}) == {}

    def test_rfc_normalized_before_check(self):
        assert validate_client_form({'name': 'X', 'rfc': 'ino 010203 ab1'}) == {}


class TestProductForm:

    def test_negative_price(self):
        assert validate_product_form({'name': 'Cámara', 'price': '-1'})['price']

    def test_formatted_price_ok(self):
        assert validate_product_form({'name': 'Cámara', 'price': '$1,200.00'}) == {}

    def test_price_out_of_range(self):
        assert validate_product_form({'name': 'Cámara', 'price': '1e30'})['price'] == 'Precio fuera de rango'


class TestQuoteHeader:

    def test_title_and_client_required(self):
        errors = validate_quote_header({'title': '', 'client_id': None})
        assert errors['title'] == 'Título y cliente requeridos'

    def test_expiry_before_issue(self):
        errors = validate_quote_header(
            {'title': 'T', 'client_id': 1, 'expiry_date': '2026-01-01'},
            issue_date=date(2026, 2, 1),
        )
        assert 'expiry_date' in errors

    def test_bad_expiry_format(self):
        assert 'expiry_date' in validate_quote_header({'title': 'T', 'client_id': 1, 'expiry_date': '31/12/2026'})

    @pytest.mark.parametrize('client_id', ['abc', '1.5', 2.5, '99999999999999999999'])
    def test_client_must_be_an_integer(self, client_id):
        errors = validate_quote_header({'title': 'T', 'client_id': client_id})
        assert errors == {'client_id': 'Cliente inválido'}

    def test_valid_header(self):
        assert validate_quote_header(
            {'title': 'T', 'client_id': 1, 'expiry_date': '2026-03-01'},
            issue_date=date(2026, 2, 1),
        ) == {}


def test_password_rules():
    assert validate_password('12345') is not None
    assert validate_password('123456') is None
    assert validate_password('123456', '654321') == 'Las contraseñas no coinciden'


def test_email_and_date_helpers():
    assert is_valid_email('ventas@cva.mx')
    assert not is_valid_email('ventas@cva')
    assert parse_date('') is None
    assert parse_date('2026-03-05') == date(2026, 3, 5)
    with pytest.raises(ValueError):
        parse_date('05/03/2026')


class TestParseInt:

    @pytest.mark.parametrize('raw, expected', [(None, None), ('', None), ('12', 12), (' 7 ', 7), (3, 3), ('-2', -2)])
    def test_whole_numbers(self, raw, expected):
        assert parse_int(raw, 'version', 'Versión inválida') == expected

    @pytest.mark.parametrize('raw', ['v2', '1.0', True, '١٢', '1' * 19])
    def test_anything_else_is_a_field_error(self, raw):
        with pytest.raises(ValidationError) as excinfo:
            parse_int(raw, 'version', 'Versión inválida')
        assert excinfo.value.errors == {'version': 'Versión inválida'}
        assert excinfo.value.status_code == 400
