"""Product model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from cotizador.database import Base, IdType


PRODUCT_CATEGORIES = [
    'Cámaras',
    'DVR/NVR',
    'Accesorios',
    'Cableado',
    'Instalación',
    'Servicios',
    'Soporte',
    'Otros',
]


class Product(Base):
    """
    Catalog product.

    Inactive products are kept (soft state) but excluded from the quote
    line-item lookup.
    """

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=True, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(14, 2), nullable=False, default=0)
    category = Column(String(64), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.code}', name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'price': str(self.price) if self.price is not None else '0.00',
            'category': self.category,
            'active': self.active,
        }
