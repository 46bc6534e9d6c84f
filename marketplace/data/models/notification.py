from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Boolean, JSON, Text
from datetime import datetime, timezone

from marketplace.data.database import Base


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(String(50), nullable=False)  # order, payment, shipment
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    #read zmienia warstwa UI, core tylko zapisuje
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
