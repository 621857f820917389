"""Client model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cotizador.database import Base, IdType


# Régimen fiscal codes accepted on the client form
TAX_REGIMES = [
    ('601', 'General de Ley Personas Morales'),
    ('603', 'Personas Morales con Fines no Lucrativos'),
    ('612', 'Personas Físicas con Actividades Empresariales'),
    ('616', 'Sin obligaciones fiscales'),
    ('621', 'Incorporación Fiscal'),
    ('626', 'Régimen Simplificado de Confianza'),
]


class Client(Base):
    """Client (cliente)."""

    __tablename__ = 'client'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    legal_name = Column(String(255), nullable=True)
    rfc = Column(String(13), nullable=True, unique=True)
    fiscal_address = Column(Text, nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    tax_regime = Column(String(3), nullable=True)
    created_by = Column(IdType, ForeignKey('app_user.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship('AppUser', foreign_keys=[created_by])
    quotes = relationship('Quote', back_populates='client', passive_deletes='all')

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', rfc='{self.rfc}')>"

    @property
    def tax_regime_label(self):
        """Human label for the régimen fiscal code."""
        return dict(TAX_REGIMES).get(self.tax_regime or '', '')
