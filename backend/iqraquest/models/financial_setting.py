"""Database model for financial settings."""

from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.sql import func

from ..database import Base


class FinancialSetting(Base):
    """Key/value financial configuration stored as JSON (thresholds, fees)."""

    __tablename__ = "financial_settings"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<FinancialSetting key={self.key}>"


__all__ = ["FinancialSetting"]
