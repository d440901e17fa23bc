from sqlalchemy import Column, Date, Float, Index, Integer, String
from app.db.base import Base

class PredictionResult(Base):
    """
    One model output row (hosted table ``result``).

    The table is written by the external scoring job, so everything except the
    key and the SKU is nullable; dirty rows are filtered by the label derivator.
    """

    __tablename__ = "result"

    id = Column(Integer, primary_key=True)
    sku_id = Column(String(64), nullable=False, index=True)
    prediction_date = Column(Date, nullable=True)
    target_date = Column(Date, nullable=True)
    prediction_step = Column(Integer, nullable=True)
    prediction_probability = Column(Float, nullable=True)

    __table_args__ = (
        Index("ix_result_sku_prediction_date", "sku_id", "prediction_date"),
        Index("ix_result_sku_target_date", "sku_id", "target_date"),
    )
