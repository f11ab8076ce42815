"""
Pricing Performance Model

One row per observed price point: the price we showed for a product type
and whether the visitor converted. Feeds the conversion stats endpoint.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean
from datetime import datetime

from app.models.base import Base


class PricingPerformance(Base):
    __tablename__ = "pricing_performance"

    id = Column(Integer, primary_key=True, index=True)
    product_type = Column(String, index=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    converted = Column(Boolean, nullable=False, default=False)
    user_id = Column(String, nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, index=True)
