"""Products blueprint: admin catalog management and the line-item lookup."""
from typing import Any, Dict

from flask import Blueprint, flash, jsonify, redirect, render_template, request, url_for

from cotizador.database import db_session
from cotizador.decorators.permissions import require_admin
from cotizador.middleware import require_login
from cotizador.models import PRODUCT_CATEGORIES
from cotizador.services import product_service
from cotizador.services.line_item_service import product_lookup

products_bp = Blueprint('products', __name__, url_prefix='/products')


def _product_data() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    data = request.form.to_dict()
    data['active'] = request.form.get('active') in ('on', 'true', '1')
    return data


@products_bp.route('/')
@require_login
@require_admin
def list_products():
    search = request.args.get('q', '').strip()
    category = request.args.get('category') or None
    products = product_service.list_products(db_session, search, category)
    return render_template(
        'products/list.html',
        products=products,
        search=search,
        category=category,
        categories=PRODUCT_CATEGORIES,
    )


@products_bp.route('/lookup')
@require_login
def lookup():
    """Catalog suggestions for a quote line item (any signed-in user)."""
    return jsonify(product_lookup(product_service.active_products(db_session), request.args.get('q', '')))


@products_bp.route('/new', methods=['GET'])
@require_login
@require_admin
def new_product():
    return render_template('products/form.html', product=None, categories=PRODUCT_CATEGORIES)


@products_bp.route('/new', methods=['POST'])
@require_login
@require_admin
def create_product():
    product = product_service.create_product(db_session, _product_data())

    if request.is_json:
        return jsonify({'status': 'ok', 'product': product.to_dict()}), 201
    flash(f'Producto "{product.name}" creado', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/edit', methods=['GET'])
@require_login
@require_admin
def edit_product(product_id):
    product = product_service.get_product(db_session, product_id)
    return render_template('products/form.html', product=product, categories=PRODUCT_CATEGORIES)


@products_bp.route('/<int:product_id>/edit', methods=['POST'])
@require_login
@require_admin
def update_product(product_id):
    product = product_service.update_product(db_session, product_id, _product_data())

    if request.is_json:
        return jsonify({'status': 'ok', 'product': product.to_dict()})
    flash('Producto actualizado', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/toggle', methods=['POST'])
@require_login
@require_admin
def toggle_product(product_id):
    product = product_service.toggle_active(db_session, product_id)

    if request.is_json:
        return jsonify({'status': 'ok', 'product': product.to_dict()})
    flash(f'Producto {"activado" if product.active else "desactivado"}', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/delete', methods=['POST'])
@require_login
@require_admin
def delete_product(product_id):
    product_service.delete_product(db_session, product_id)

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Producto eliminado', 'success')
    return redirect(url_for('products.list_products'))
