"""
Unit tests for SQLAlchemy models.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cotizador.models import AppUser, Client, Product, Quote, QuoteItem


class TestAppUserModel:
    """Tests for AppUser model."""

    def test_create_user(self, session):
        user = AppUser(email='  Nuevo@CVA.test ', name='Nuevo')
        user.set_password('securepassword')
        session.add(user)
        session.commit()

        assert user.id is not None
        assert user.email == 'nuevo@cva.test'
        assert user.active is True
        assert user.is_admin is False
        assert user.check_password('securepassword')
        assert not user.check_password('wrongpassword')

    def test_email_unique(self, session, regular_user):
        session.add(AppUser(email=regular_user.email, name='Otro'))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_email_immutable(self, session, regular_user):
        with pytest.raises(ValueError):
            regular_user.email = 'otro@cva.test'

    def test_default_permissions(self, regular_user):
        assert regular_user.can('cotizaciones', 'borrar')
        assert regular_user.can('clientes', 'crear')
        assert not regular_user.can('usuarios', 'crear')

    def test_admin_can_everything(self, admin_user):
        assert admin_user.can('usuarios', 'borrar')

    def test_restricted_permissions(self, restricted_user):
        assert restricted_user.can('clientes', 'editar')
        assert not restricted_user.can('clientes', 'borrar')
        assert not restricted_user.can('cotizaciones', 'borrar')


class TestCatalogModels:

    def test_product_to_dict(self, products):
        data = products[0].to_dict()
        assert data['code'] == 'DS-2CD1043'
        assert data['price'] == '1000.00'
        assert data['active'] is True

    def test_product_code_unique(self, session, products):
        session.add(Product(code='NVR-8CH', name='Duplicado', price=Decimal('1.00')))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_client_rfc_unique(self, session, customer):
        session.add(Client(name='Otro', rfc=customer.rfc))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()


class TestQuoteModel:

    def test_items_ordered_by_position(self, session, quote):
        session.expire_all()
        stored = session.get(Quote, quote.id)
        assert [item.position for item in stored.items] == [1, 2]
        assert stored.items[0].subtotal == Decimal('2000.00')

    def test_status_label(self, quote):
        assert quote.status_label == 'Borrador'
        quote.status = 'ARCHIVED'
        assert quote.status_label == 'Desconocido'

    def test_is_expired(self, quote):
        quote.expiry_date = date.today() - timedelta(days=1)
        assert quote.is_expired
        quote.status = 'APPROVED'
        assert not quote.is_expired

    def test_number_unique(self, session, quote):
        session.add(Quote(number=quote.number, title='Duplicada', client_id=quote.client_id,
                          issue_date=date.today()))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_deleting_quote_removes_items(self, session, quote):
        quote_id = quote.id
        session.delete(quote)
        session.commit()
        assert session.query(QuoteItem).filter_by(quote_id=quote_id).count() == 0
