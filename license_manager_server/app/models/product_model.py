# -*- coding: utf-8 -*-
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey
from datetime import datetime

from config import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)

    # version / wp_tested / wp_requires / last_updated / logo / cover / bucket / filename
    meta = Column(JSON, default={})

    # Renewal policy
    use_generator = Column(Boolean, default=False)
    generator_id = Column(Integer, ForeignKey("generators.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
