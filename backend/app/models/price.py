from sqlalchemy import Column, Date, Float, Index, Integer, String
from app.db.base import Base

class PriceObservation(Base):
    """Observed daily market price for a SKU (hosted table ``real``)."""

    __tablename__ = "real"

    id = Column(Integer, primary_key=True)
    sku_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=True)
    price = Column(Float, nullable=True)

    __table_args__ = (Index("ix_real_sku_date", "sku_id", "date"),)
