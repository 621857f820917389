"""Clients blueprint: list/search, create, edit and delete clientes."""
from typing import Any, Dict

from flask import Blueprint, flash, g, jsonify, redirect, render_template, request, url_for

from cotizador.database import db_session
from cotizador.decorators.permissions import require_permission
from cotizador.middleware import require_login
from cotizador.models import TAX_REGIMES
from cotizador.services import client_service

clients_bp = Blueprint('clients', __name__, url_prefix='/clients')


def _client_data() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _client_payload(client) -> Dict[str, Any]:
    return {
        'id': client.id,
        'name': client.name,
        'legal_name': client.legal_name,
        'rfc': client.rfc,
        'fiscal_address': client.fiscal_address,
        'email': client.email,
        'phone': client.phone,
        'tax_regime': client.tax_regime,
    }


@clients_bp.route('/')
@require_login
def list_clients():
    search = request.args.get('q', '').strip()
    clients = client_service.list_clients(db_session, search)
    if request.args.get('format') == 'json':
        return jsonify({'results': [_client_payload(c) for c in clients]})
    return render_template('clients/list.html', clients=clients, search=search)


@clients_bp.route('/new', methods=['GET'])
@require_login
@require_permission('clientes', 'crear')
def new_client():
    return render_template('clients/form.html', client=None, tax_regimes=TAX_REGIMES)


@clients_bp.route('/new', methods=['POST'])
@require_login
@require_permission('clientes', 'crear')
def create_client():
    client = client_service.create_client(db_session, _client_data(), created_by=g.auth.user_id)

    if request.is_json:
        return jsonify({'status': 'ok', 'client': _client_payload(client)}), 201
    flash(f'Cliente "{client.name}" creado', 'success')
    return redirect(url_for('clients.list_clients'))


@clients_bp.route('/<int:client_id>/edit', methods=['GET'])
@require_login
@require_permission('clientes', 'editar')
def edit_client(client_id):
    client = client_service.get_client(db_session, client_id)
    return render_template('clients/form.html', client=client, tax_regimes=TAX_REGIMES)


@clients_bp.route('/<int:client_id>/edit', methods=['POST'])
@require_login
@require_permission('clientes', 'editar')
def update_client(client_id):
    client = client_service.update_client(db_session, client_id, _client_data())

    if request.is_json:
        return jsonify({'status': 'ok', 'client': _client_payload(client)})
    flash('Cliente actualizado', 'success')
    return redirect(url_for('clients.list_clients'))


@clients_bp.route('/<int:client_id>/delete', methods=['POST'])
@require_login
@require_permission('clientes', 'borrar')
def delete_client(client_id):
    client_service.delete_client(db_session, client_id)

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Cliente eliminado', 'success')
    return redirect(url_for('clients.list_clients'))
