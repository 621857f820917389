"""Key-value application configuration (company name, logo)."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from cotizador.database import Base


class AppConfig(Base):
    """Configuration row (configuración)."""

    __tablename__ = 'app_config'

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AppConfig(key='{self.key}', value='{self.value}')>"
