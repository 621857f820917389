"""Quote model for cotizaciones."""
import enum
from datetime import date
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cotizador.database import Base, IdType
from cotizador.utils.formatters import STATUS_LABELS


class QuoteStatus(enum.Enum):
    """Quote status enum."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @property
    def label(self):
        return STATUS_LABELS[self.value]

    @classmethod
    def values(cls):
        return [status.value for status in cls]


# Lifecycle convention: draft -> sent -> approved | rejected; expired from any
# non-terminal state. Not enforced unless ENFORCE_STATUS_TRANSITIONS is set.
CONVENTIONAL_TRANSITIONS = {
    'DRAFT': {'SENT', 'EXPIRED'},
    'SENT': {'APPROVED', 'REJECTED', 'EXPIRED'},
    'APPROVED': set(),
    'REJECTED': set(),
    'EXPIRED': set(),
}


class Quote(Base):
    """
    Quote (Cotización).

    subtotal/tax/total are a snapshot written on save, recomputed from the
    saved items; they are not authoritative between edits.
    """

    __tablename__ = 'quote'

    id = Column(IdType, primary_key=True, autoincrement=True)
    number = Column(Integer, nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    client_id = Column(IdType, ForeignKey('client.id', ondelete='RESTRICT'), nullable=False, index=True)
    created_by = Column(IdType, ForeignKey('app_user.id', ondelete='SET NULL'), nullable=True)
    prepared_by = Column(String(200), nullable=True)
    issue_date = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=True)
    scope = Column(Text, nullable=True)
    exclusions = Column(Text, nullable=True)
    observations = Column(Text, nullable=True)
    payment_terms = Column(Text, nullable=True)
    training = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='DRAFT')
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    client = relationship('Client', back_populates='quotes')
    creator = relationship('AppUser', foreign_keys=[created_by])
    items = relationship(
        'QuoteItem',
        back_populates='quote',
        order_by='QuoteItem.position',
        cascade='all, delete-orphan',
        passive_deletes=True
    )

    def __repr__(self):
        return f"<Quote(id={self.id}, number={self.number}, status='{self.status}', total={self.total})>"

    @property
    def is_expired(self):
        """Expiry is observed, not enforced: DRAFT/SENT quotes past their expiry date."""
        if self.status in ('DRAFT', 'SENT') and self.expiry_date:
            return date.today() > self.expiry_date
        return False

    @property
    def status_label(self):
        return STATUS_LABELS.get(self.status, 'Desconocido')

    @property
    def narrative_fields(self):
        return {
            'scope': self.scope,
            'exclusions': self.exclusions,
            'observations': self.observations,
            'payment_terms': self.payment_terms,
            'training': self.training,
        }
