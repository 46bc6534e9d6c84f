from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Text
from datetime import datetime, timezone

from marketplace.data.database import Base


class OrderTrackingModel(Base):
    __tablename__ = "order_tracking"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)

    #pass-through, bez integracji z przewoznikiem
    carrier = Column(String(100), nullable=False)
    tracking_number = Column(String(100), nullable=False)
    tracking_url = Column(String, nullable=True)
    status = Column(String(50), nullable=False, default="in_transit")
    status_details = Column(Text, nullable=True)
    estimated_delivery = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
