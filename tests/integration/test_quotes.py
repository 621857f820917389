"""
Integration tests for the quote editor, persistence strategies and PDF export.
"""

import json
from datetime import date, timedelta
from decimal import Decimal

import pytest

from cotizador.exceptions import ConflictError
from cotizador.models import Quote, QuoteItem
from cotizador.services import quote_service


def header_for(customer, **overrides):
    header = {
        'title': 'Videovigilancia Bodega',
        'client_id': customer.id,
        'expiry_date': '',
        'scope': 'Instalación de 4 cámaras',
        'payment_terms': '50% anticipo, 50% contra entrega',
    }
    header.update(overrides)
    return header


def stored_items(session, quote_id):
    session.expire_all()
    return (
        session.query(QuoteItem)
        .filter(QuoteItem.quote_id == quote_id)
        .order_by(QuoteItem.position)
        .all()
    )


class TestCreateQuote:

    def test_create_json(self, admin_client, session, customer, products):
        payload = header_for(customer, items=[
            {'concept': 'Cámara IP', 'unit_price': '1,000.00', 'quantity': 2, 'product_id': products[0].id},
            {'concept': 'Mano de obra', 'unit_price': '250.50', 'quantity': '1'},
        ])
        response = admin_client.post('/quotes/new', json=payload)

        assert response.status_code == 201
        data = response.get_json()['quote']
        assert data['number'] == 1
        assert data['status'] == 'DRAFT'
        assert data['version'] == 1
        assert (data['subtotal'], data['tax'], data['total']) == ('2250.50', '360.08', '2610.58')

        quote = session.get(Quote, data['id'])
        assert quote.issue_date == date.today()
        assert quote.prepared_by == 'Ana Admin'
        assert quote.exclusions is None

        items = stored_items(session, quote.id)
        assert [(i.position, i.concept) for i in items] == [(1, 'Cámara IP'), (2, 'Mano de obra')]
        assert items[0].product_id == products[0].id
        assert items[1].product_id is None

    def test_numbers_are_sequential(self, admin_client, quote, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, items=[]))
        assert response.get_json()['quote']['number'] == quote.number + 1

    def test_empty_quote_has_zero_totals(self, admin_client, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, items=[]))
        data = response.get_json()['quote']
        assert Decimal(data['total']) == 0

    def test_title_and_client_required(self, admin_client, session, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, title='  ', items=[]))
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Título y cliente requeridos'
        assert session.query(Quote).count() == 0

    def test_unknown_client(self, admin_client, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, client_id=9999, items=[]))
        assert response.status_code == 404

    def test_missing_product_reference_is_dropped(self, admin_client, session, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, items=[
            {'concept': 'Producto borrado', 'unit_price': '10', 'quantity': 1, 'product_id': 9999},
        ]))
        assert response.status_code == 201
        assert stored_items(session, response.get_json()['quote']['id'])[0].product_id is None

    def test_create_from_form(self, admin_client, session, customer):
        response = admin_client.post('/quotes/new', data={
            'title': 'Control de acceso',
            'client_id': str(customer.id),
            'items_json': json.dumps([{'concept': 'Lectora', 'unit_price': '1500', 'quantity': '2'}]),
        })
        assert response.status_code == 302

        quote = session.query(Quote).filter_by(title='Control de acceso').one()
        assert quote.total == Decimal('3480.00')

    def test_bad_items_json(self, admin_client, customer):
        response = admin_client.post('/quotes/new', data={
            'title': 'Control de acceso',
            'client_id': str(customer.id),
            'items_json': '{no es json',
        })
        assert response.status_code == 302
        with admin_client.session_transaction() as stored:
            assert ('danger', 'Partidas inválidas') in stored['_flashes']

    def test_non_numeric_client_is_a_validation_error(self, admin_client, session, customer):
        response = admin_client.post('/quotes/new', json=header_for(customer, client_id='abc', items=[]))

        assert response.status_code == 400
        assert response.get_json()['errors'] == {'client_id': 'Cliente inválido'}
        assert session.query(Quote).count() == 0

    @pytest.mark.parametrize('rows', [
        [{'concept': 'Cámara', 'unit_price': '10', 'quantity': 1, 'product_id': 'x1'}],
        ['no es partida'],
    ])
    def test_malformed_items_are_validation_errors(self, admin_client, session, customer, rows):
        response = admin_client.post('/quotes/new', json=header_for(customer, items=rows))

        assert response.status_code == 400
        assert session.query(Quote).count() == 0


class TestReplaceSave:
    """Default strategy: header, delete items, insert items."""

    def test_replaces_items_and_totals(self, admin_client, session, quote, customer):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(
            customer, title='CCTV Plaza Norte (rev. 2)', version=1,
            items=[{'concept': 'Solo uno', 'unit_price': '100', 'quantity': 3}],
        ))

        assert response.status_code == 200
        data = response.get_json()['quote']
        assert data['version'] == 2
        assert (data['subtotal'], data['tax'], data['total']) == ('300.00', '48.00', '348.00')

        items = stored_items(session, quote_id)
        assert [(i.position, i.concept, i.quantity) for i in items] == [(1, 'Solo uno', 3)]
        assert session.get(Quote, quote_id).title == 'CCTV Plaza Norte (rev. 2)'

    def test_issue_date_never_changes(self, admin_client, session, quote, customer):
        quote_id = quote.id
        original = quote.issue_date
        admin_client.post(f'/quotes/{quote_id}', json=header_for(customer, issue_date='2020-01-01', items=[]))
        session.expire_all()
        assert session.get(Quote, quote_id).issue_date == original

    def test_saving_no_items(self, admin_client, session, quote, customer):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(customer, items=[]))
        assert response.get_json()['quote']['total'] == '0.00'
        assert stored_items(session, quote_id) == []

    def test_failure_after_delete_leaves_header_without_items(self, session, quote, customer, monkeypatch):
        quote_id = quote.id

        def broken_insert(*args, **kwargs):
            raise RuntimeError('insert failed')

        monkeypatch.setattr(quote_service, '_insert_items', broken_insert)

        with pytest.raises(RuntimeError):
            quote_service.update_quote(
                session, quote_id, header_for(customer, title='Cambio a medias'),
                [{'concept': 'Nueva', 'unit_price': '1', 'quantity': 1}],
            )

        session.expire_all()
        stored = session.get(Quote, quote_id)
        assert stored.title == 'Cambio a medias'
        assert stored.version == 2
        assert stored_items(session, quote_id) == []

    def test_unexpected_failure_returns_generic_error(self, admin_client, quote, customer, monkeypatch):
        quote_id = quote.id
        monkeypatch.setattr(quote_service, '_insert_items', lambda *a, **kw: 1 / 0)

        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(customer, items=[]))
        assert response.status_code == 500
        assert response.get_json()['message'] == 'Error inesperado, intenta de nuevo'

    def test_stale_version_rejected(self, admin_client, session, quote, customer):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(customer, version=7, items=[]))

        assert response.status_code == 409
        assert len(stored_items(session, quote_id)) == 2

    def test_non_numeric_version_is_a_validation_error(self, admin_client, session, quote, customer):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(
            customer, title='No debe guardarse', version='v2', items=[],
        ))

        assert response.status_code == 400
        assert response.get_json()['errors'] == {'version': 'Versión inválida'}
        session.expire_all()
        assert session.get(Quote, quote_id).title == 'CCTV Plaza Norte'
        assert len(stored_items(session, quote_id)) == 2


class TestAtomicSave:
    """Single-transaction diff save."""

    def test_diff_by_item_id(self, admin_client, app, session, quote, customer, monkeypatch):
        monkeypatch.setitem(app.config, 'QUOTE_SAVE_STRATEGY', 'atomic')
        quote_id = quote.id
        first, second = stored_items(session, quote_id)
        first_id, second_id = first.id, second.id

        response = admin_client.post(f'/quotes/{quote_id}', json=header_for(customer, version=1, items=[
            {'id': 'nueva', 'concept': 'Disco duro 2TB', 'unit_price': '1500', 'quantity': 1},
            {'id': str(first_id), 'concept': 'Cámara IP Domo 4MP', 'unit_price': '1000.00', 'quantity': 4},
        ]))

        assert response.status_code == 200
        assert response.get_json()['quote']['subtotal'] == '5500.00'

        items = stored_items(session, quote_id)
        assert [i.concept for i in items] == ['Disco duro 2TB', 'Cámara IP Domo 4MP']
        assert items[1].id == first_id
        assert items[1].quantity == 4
        assert second_id not in [i.id for i in items]

    def test_failure_rolls_back_everything(self, session, quote, customer, monkeypatch):
        quote_id = quote.id

        def broken_totals(items):
            raise RuntimeError('totals failed')

        monkeypatch.setattr(quote_service, 'calculate_totals', broken_totals)

        with pytest.raises(RuntimeError):
            quote_service.update_quote_atomic(session, quote_id, header_for(customer, title='No se guarda'), [])

        session.expire_all()
        stored = session.get(Quote, quote_id)
        assert stored.title == 'CCTV Plaza Norte'
        assert stored.version == 1
        assert len(stored_items(session, quote_id)) == 2

    def test_version_conflict(self, session, quote, customer):
        with pytest.raises(ConflictError):
            quote_service.save_quote(session, quote.id, header_for(customer), [],
                                     expected_version=3, strategy='atomic')


class TestQuoteStatusAndDelete:

    def test_change_status(self, admin_client, session, quote):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}/status', json={'status': 'SENT'})

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Quote, quote_id).status == 'SENT'

    def test_any_status_allowed_by_default(self, admin_client, quote):
        response = admin_client.post(f'/quotes/{quote.id}/status', json={'status': 'APPROVED'})
        assert response.get_json()['quote']['status'] == 'APPROVED'

    def test_enforced_transitions(self, admin_client, app, quote, monkeypatch):
        monkeypatch.setitem(app.config, 'ENFORCE_STATUS_TRANSITIONS', True)
        response = admin_client.post(f'/quotes/{quote.id}/status', json={'status': 'APPROVED'})
        assert response.status_code == 400

    def test_delete(self, admin_client, session, quote):
        quote_id = quote.id
        response = admin_client.post(f'/quotes/{quote_id}/delete', json={})

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Quote, quote_id) is None
        assert stored_items(session, quote_id) == []

    def test_delete_requires_permission(self, client, login_as, session, quote, restricted_user):
        login_as(restricted_user)
        response = client.post(f'/quotes/{quote.id}/delete', json={})

        assert response.status_code == 403
        assert session.query(Quote).count() == 1


class TestQuoteList:

    @pytest.fixture
    def old_quote(self, session, customer):
        record = Quote(number=2, title='Proyecto antiguo', client_id=customer.id,
                       issue_date=date.today() - timedelta(days=100), status='SENT')
        session.add(record)
        session.commit()
        return record

    def test_default_range_is_30_days(self, admin_client, quote, old_quote):
        body = admin_client.get('/quotes/').get_data(as_text=True)
        assert 'CCTV Plaza Norte' in body
        assert 'Proyecto antiguo' not in body

    @pytest.mark.parametrize('option, visible', [('90', False), ('year', True), ('all', True)])
    def test_ranges(self, admin_client, quote, old_quote, option, visible):
        body = admin_client.get(f'/quotes/?range={option}').get_data(as_text=True)
        assert ('Proyecto antiguo' in body) is visible

    def test_search(self, admin_client, quote, old_quote):
        body = admin_client.get('/quotes/?range=all&q=ANTIGUO').get_data(as_text=True)
        assert 'Proyecto antiguo' in body
        assert 'CCTV Plaza Norte' not in body

    def test_search_by_client_name(self, session, quote, old_quote):
        found = quote_service.list_quotes(session, days=None, search='plaza comercial')
        assert {q.number for q in found} == {1, 2}

    def test_form_pages(self, admin_client, quote):
        assert admin_client.get('/quotes/new').status_code == 200
        response = admin_client.get(f'/quotes/{quote.id}')
        assert response.status_code == 200
        assert 'CCTV Plaza Norte' in response.get_data(as_text=True)


class TestQuotePdf:

    def test_download(self, admin_client, quote):
        response = admin_client.get(f'/quotes/{quote.id}/pdf')

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert 'Cotizacion-1.pdf' in response.headers['Content-Disposition']
        assert response.data.startswith(b'%PDF')
        for amount in (b'$2,250.50', b'$360.08', b'$2,610.58'):
            assert amount in response.data

    def test_any_user_can_download(self, user_client, quote):
        assert user_client.get(f'/quotes/{quote.id}/pdf').status_code == 200

    def test_unknown_quote(self, admin_client, session):
        assert admin_client.get('/quotes/999/pdf').status_code == 302


class TestEditorEndpoint:

    ITEMS = [{'id': 'a', 'concept': 'Cámara', 'unit_price': '1000', 'quantity': 2}]

    def test_add(self, user_client):
        response = user_client.post('/quotes/editor', json={'action': 'add', 'items': self.ITEMS})
        data = response.get_json()
        assert [item['position'] for item in data['items']] == [1, 2]
        assert data['items'][1]['unit_price'] == '0.00'
        assert data['totals']['subtotal'] == '2000.00'

    def test_update(self, user_client):
        response = user_client.post('/quotes/editor', json={
            'action': 'update', 'items': self.ITEMS, 'item_id': 'a', 'field': 'quantity', 'value': '3',
        })
        assert response.get_json()['totals'] == {'subtotal': '3000.00', 'tax': '480.00', 'total': '3480.00'}

    def test_select_product_keeps_quantity(self, user_client, products):
        response = user_client.post('/quotes/editor', json={
            'action': 'select_product', 'items': self.ITEMS, 'item_id': 'a', 'product_id': products[1].id,
        })
        item = response.get_json()['items'][0]
        assert item['concept'] == 'NVR 8 canales'
        assert item['unit_price'] == '250.50'
        assert item['quantity'] == 2
        assert item['product_id'] == products[1].id

    def test_inactive_product(self, user_client, products):
        response = user_client.post('/quotes/editor', json={
            'action': 'select_product', 'items': self.ITEMS, 'item_id': 'a', 'product_id': products[2].id,
        })
        assert response.status_code == 404

    def test_remove_and_move(self, user_client):
        items = self.ITEMS + [{'id': 'b', 'concept': 'NVR'}, {'id': 'c', 'concept': 'Disco'}]
        response = user_client.post('/quotes/editor', json={
            'action': 'move', 'items': items, 'item_id': 'c', 'position': 1,
        })
        assert [i['id'] for i in response.get_json()['items']] == ['c', 'a', 'b']

        response = user_client.post('/quotes/editor', json={'action': 'remove', 'items': items, 'item_id': 'a'})
        assert [(i['id'], i['position']) for i in response.get_json()['items']] == [('b', 1), ('c', 2)]

    def test_unknown_action(self, user_client):
        response = user_client.post('/quotes/editor', json={'action': 'explode', 'items': []})
        assert response.status_code == 400

    @pytest.mark.parametrize('payload, field', [
        ({'action': 'select_product', 'item_id': 'a', 'product_id': 'abc'}, 'product_id'),
        ({'action': 'move', 'item_id': 'a', 'position': 'arriba'}, 'position'),
    ])
    def test_non_numeric_ids_are_validation_errors(self, user_client, payload, field):
        response = user_client.post('/quotes/editor', json=dict(payload, items=self.ITEMS))

        assert response.status_code == 400
        assert list(response.get_json()['errors']) == [field]

    def test_out_of_range_price_is_clamped(self, user_client):
        response = user_client.post('/quotes/editor', json={
            'action': 'update', 'items': self.ITEMS, 'item_id': 'a', 'field': 'unit_price', 'value': '1e30',
        })

        assert response.status_code == 200
        assert response.get_json()['items'][0]['unit_price'] == '0.00'


def test_end_to_end_quote_for_client_without_rfc(admin_client, session):
    """Client 'Acme' without RFC, two items, exported totals."""
    response = admin_client.post('/clients/new', json={'name': 'Acme'})
    client_id = response.get_json()['client']['id']

    response = admin_client.post('/quotes/new', json={
        'title': 'Installation A',
        'client_id': client_id,
        'items': [
            {'concept': 'Cámara', 'unit_price': '1000.00', 'quantity': 2},
            {'concept': 'NVR', 'unit_price': '250.50', 'quantity': 1},
        ],
    })
    quote = response.get_json()['quote']
    assert (quote['subtotal'], quote['tax'], quote['total']) == ('2250.50', '360.08', '2610.58')

    pdf = admin_client.get(f"/quotes/{quote['id']}/pdf").data
    for amount in (b'$2,250.50', b'$360.08', b'$2,610.58'):
        assert amount in pdf
    assert b'RFC:' not in pdf


def test_metrics_count_saves(admin_client, quote, customer):
    admin_client.post(f'/quotes/{quote.id}', json=header_for(customer, items=[]))

    body = admin_client.get('/metrics').get_data(as_text=True)
    assert 'quotes_saved_total{operation="replace"}' in body
    assert 'quote_save_duration_seconds_count{strategy="replace"}' in body
