"""Quotes blueprint: list, editor, save, status, delete and PDF download."""
import json
from io import BytesIO
from typing import Any, Dict, List, Tuple

from botocore.exceptions import BotoCoreError, ClientError
from flask import Blueprint, current_app, flash, g, jsonify, redirect, render_template, request, send_file, url_for

from cotizador.database import db_session
from cotizador.decorators.permissions import require_permission
from cotizador.exceptions import BusinessLogicError, NotFoundError, ValidationError
from cotizador.middleware import require_login
from cotizador.models import QuoteStatus
from cotizador.services import quote_service
from cotizador.services.client_service import list_clients
from cotizador.services.config_service import load_logo_bytes
from cotizador.services.line_item_service import LineItemEditor
from cotizador.services.product_service import get_product
from cotizador.utils.validators import parse_int
from cotizador.blueprints.metrics import quote_pdfs_generated_total, quote_save_duration_seconds, quotes_saved_total

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')

HEADER_FIELDS = (
    'title', 'client_id', 'prepared_by', 'expiry_date',
    'scope', 'exclusions', 'observations', 'payment_terms', 'training',
)


def _read_payload() -> Tuple[Dict[str, Any], List[Dict[str, Any]], Any]:
    """
    Header, item rows and expected version from a JSON body or a form post.

    Forms send the rows serialized in the ``items_json`` field.
    """
    if request.is_json:
        data = request.get_json(silent=True) or {}
        rows = data.get('items') or []
    else:
        data = request.form
        try:
            rows = json.loads(data.get('items_json') or '[]')
        except ValueError:
            raise ValidationError({'items': 'Partidas inválidas'})

    if not isinstance(rows, list):
        raise ValidationError({'items': 'Partidas inválidas'})

    header = {field: data.get(field) for field in HEADER_FIELDS}
    version = data.get('version') or None
    return header, rows, version


def _quote_payload(quote) -> Dict[str, Any]:
    return {
        'id': quote.id,
        'number': quote.number,
        'title': quote.title,
        'status': quote.status,
        'version': quote.version,
        'subtotal': str(quote.subtotal),
        'tax': str(quote.tax),
        'total': str(quote.total),
    }


def _logo_bytes(business_info: Dict[str, Any]):
    if not business_info.get('logo_key'):
        return None
    from cotizador.services.storage_service import get_storage_service
    try:
        return load_logo_bytes(db_session, get_storage_service())
    except (BotoCoreError, ClientError) as e:
        current_app.logger.warning(f"[PDF] Logo unavailable, using initials mark: {e}")
        return None


@quotes_bp.route('/')
@require_login
def list_quotes():
    """Quotes in the selected issue-date range, optionally filtered by text."""
    range_option = request.args.get('range', quote_service.DEFAULT_RANGE)
    if range_option not in quote_service.RANGE_OPTIONS:
        range_option = quote_service.DEFAULT_RANGE
    search = request.args.get('q', '').strip()

    quotes = quote_service.list_quotes(db_session, days=quote_service.range_days(range_option), search=search)

    return render_template(
        'quotes/list.html',
        quotes=quotes,
        range_option=range_option,
        range_options=list(quote_service.RANGE_OPTIONS),
        search=search,
    )


def _render_form(quote=None):
    editor = LineItemEditor.from_models(quote.items) if quote else LineItemEditor()
    if not len(editor):
        editor.add()
    return render_template(
        'quotes/form.html',
        quote=quote,
        clients=list_clients(db_session),
        items=editor.to_list(),
        totals=editor.totals().rounded(),
        statuses=QuoteStatus,
    )


@quotes_bp.route('/new', methods=['GET'])
@require_login
@require_permission('cotizaciones', 'crear')
def new_quote():
    return _render_form()


@quotes_bp.route('/new', methods=['POST'])
@require_login
@require_permission('cotizaciones', 'crear')
def create_quote():
    header, rows, _ = _read_payload()
    if not header.get('prepared_by'):
        header['prepared_by'] = g.auth.name

    quote = quote_service.create_quote(db_session, header, rows, created_by=g.auth.user_id)
    quotes_saved_total.labels(operation='create').inc()

    if request.is_json:
        return jsonify({'status': 'ok', 'quote': _quote_payload(quote)}), 201
    flash(f'Cotización #{quote.number} creada', 'success')
    return redirect(url_for('quotes.edit_quote', quote_id=quote.id))


@quotes_bp.route('/<int:quote_id>', methods=['GET'])
@require_login
def edit_quote(quote_id):
    quote = quote_service.get_quote(db_session, quote_id)
    return _render_form(quote)


@quotes_bp.route('/<int:quote_id>', methods=['POST'])
@require_login
@require_permission('cotizaciones', 'editar')
def save_quote(quote_id):
    header, rows, version = _read_payload()
    strategy = current_app.config.get('QUOTE_SAVE_STRATEGY', 'replace')

    with quote_save_duration_seconds.labels(strategy=strategy).time():
        quote = quote_service.save_quote(
            db_session, quote_id, header, rows,
            expected_version=version, strategy=strategy,
        )
    quotes_saved_total.labels(operation=strategy).inc()

    if request.is_json:
        return jsonify({'status': 'ok', 'quote': _quote_payload(quote)})
    flash('Cotización guardada', 'success')
    return redirect(url_for('quotes.edit_quote', quote_id=quote.id))


@quotes_bp.route('/<int:quote_id>/status', methods=['POST'])
@require_login
@require_permission('cotizaciones', 'editar')
def change_status(quote_id):
    data = (request.get_json(silent=True) or {}) if request.is_json else request.form
    quote = quote_service.change_status(
        db_session, quote_id, data.get('status'),
        enforce=current_app.config.get('ENFORCE_STATUS_TRANSITIONS', False),
    )

    if request.is_json:
        return jsonify({'status': 'ok', 'quote': _quote_payload(quote)})
    flash(f'Estado actualizado: {quote.status_label}', 'success')
    return redirect(request.referrer or url_for('quotes.list_quotes'))


@quotes_bp.route('/<int:quote_id>/delete', methods=['POST'])
@require_login
@require_permission('cotizaciones', 'borrar')
def delete_quote(quote_id):
    quote_service.delete_quote(db_session, quote_id)

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Cotización eliminada', 'success')
    return redirect(url_for('quotes.list_quotes'))


@quotes_bp.route('/<int:quote_id>/pdf')
@require_login
def download_pdf(quote_id):
    """Generate and download the quote PDF."""
    quote = quote_service.get_quote(db_session, quote_id)
    business_info = quote_service.build_business_info(db_session)

    pdf = quote_service.generate_quote_pdf_from_db(
        db_session, quote.id, business_info,
        logo_bytes=_logo_bytes(business_info),
        compress=current_app.config.get('PDF_COMPRESSION', True),
    )
    quote_pdfs_generated_total.inc()

    return send_file(
        BytesIO(pdf),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=quote_service.pdf_filename(quote)
    )


@quotes_bp.route('/editor', methods=['POST'])
@require_login
def editor_action():
    """
    Apply one editor action to the submitted item rows and return the new
    rows with their totals.

    Body: {"items": [...], "action": "add" | "update" | "remove" | "move" |
    "select_product", "item_id", "field", "value", "position", "product_id"}
    """
    data = request.get_json(silent=True) or {}
    editor = LineItemEditor.from_rows(data.get('items') or [])
    action = data.get('action')
    item_id = data.get('item_id')

    if action == 'add':
        editor.add()
    elif action == 'update':
        editor.update(item_id, data.get('field'), data.get('value'))
    elif action == 'remove':
        editor.remove(item_id)
    elif action == 'move':
        editor.move(item_id, data.get('position') or 1)
    elif action == 'select_product':
        product_id = parse_int(data.get('product_id'), 'product_id', 'Producto inválido')
        product = get_product(db_session, product_id) if product_id else None
        if product is not None and not product.active:
            raise NotFoundError('Producto no disponible.')
        editor.select_product(item_id, product)
    else:
        raise BusinessLogicError(f'Acción desconocida: {action}')

    return jsonify({
        'status': 'ok',
        'items': editor.to_list(),
        'totals': editor.totals().to_dict(),
    })

