from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from config import Base

class ServerOption(Base):
    __tablename__ = "server_options"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)  # basic_config, s3_config
    value = Column(JSON, default={})

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
