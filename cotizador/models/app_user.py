"""AppUser model - application users with email/password authentication."""
import copy
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from cotizador.database import Base, IdType


PERMISSION_MODULES = ('cotizaciones', 'clientes', 'usuarios')
PERMISSION_ACTIONS = ('crear', 'editar', 'borrar')

DEFAULT_PERMISSIONS = {
    'cotizaciones': {'crear': True, 'editar': True, 'borrar': True},
    'clientes': {'crear': True, 'editar': True, 'borrar': True},
    'usuarios': {'crear': False, 'editar': False, 'borrar': False},
}


def default_permissions():
    return copy.deepcopy(DEFAULT_PERMISSIONS)


def normalize_permissions(raw):
    """Return a full module x action matrix; missing cells take the default."""
    matrix = default_permissions()
    for module in PERMISSION_MODULES:
        actions = (raw or {}).get(module) or {}
        for action in PERMISSION_ACTIONS:
            if action in actions:
                matrix[module][action] = bool(actions[action])
    return matrix


class AppUser(Base):
    """Application user. Email is immutable once the row exists."""

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    auth_ref = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    permissions = Column(JSON, nullable=False, default=default_permissions)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @validates('email')
    def _validate_email_immutable(self, key, value):
        if self.email is not None and self.id is not None and value != self.email:
            raise ValueError('El email no se puede modificar')
        return value.strip().lower() if value else value

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def can(self, module, action):
        """Permission matrix lookup; admins can do everything."""
        if self.is_admin:
            return True
        return bool(normalize_permissions(self.permissions).get(module, {}).get(action, False))

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', admin={self.is_admin})>"
