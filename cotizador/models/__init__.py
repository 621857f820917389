"""Models package - exports all SQLAlchemy models."""
from cotizador.models.app_user import (
    AppUser, PERMISSION_MODULES, PERMISSION_ACTIONS, default_permissions, normalize_permissions
)
from cotizador.models.app_config import AppConfig
from cotizador.models.client import Client, TAX_REGIMES
from cotizador.models.product import Product, PRODUCT_CATEGORIES
from cotizador.models.quote import Quote, QuoteStatus, STATUS_LABELS, CONVENTIONAL_TRANSITIONS
from cotizador.models.quote_item import QuoteItem

__all__ = [
    'AppUser', 'PERMISSION_MODULES', 'PERMISSION_ACTIONS', 'default_permissions', 'normalize_permissions',
    'AppConfig',
    'Client', 'TAX_REGIMES',
    'Product', 'PRODUCT_CATEGORIES',
    'Quote', 'QuoteStatus', 'STATUS_LABELS', 'CONVENTIONAL_TRANSITIONS',
    'QuoteItem',
]
