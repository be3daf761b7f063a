from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from datetime import datetime
from config import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    status = Column(String(50), default="pending", nullable=False)  # pending, processing, completed

    # Renewal relation: parent is the order that generated the license
    parent_order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    renewal_license_key = Column(String(255), nullable=True)
    renewal_ids = Column(JSON, default=[])

    notes = Column(JSON, default=[])

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
