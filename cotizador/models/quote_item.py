"""QuoteItem model for quote line items (partidas)."""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from cotizador.database import Base, IdType


class QuoteItem(Base):
    """
    Quote line item (Partida).

    Items are fully replaced on every quote save; ``position`` is reassigned
    1..N to match the submitted order. The line subtotal is derived, never
    stored.
    """

    __tablename__ = 'quote_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    quote_id = Column(IdType, ForeignKey('quote.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    concept = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='SET NULL'), nullable=True)

    # Relationships
    quote = relationship('Quote', back_populates='items')
    product = relationship('Product', foreign_keys=[product_id])

    def __repr__(self):
        return f"<QuoteItem(id={self.id}, quote_id={self.quote_id}, position={self.position}, concept='{self.concept}')>"

    @property
    def subtotal(self):
        return Decimal(str(self.unit_price or 0)) * int(self.quantity or 0)
