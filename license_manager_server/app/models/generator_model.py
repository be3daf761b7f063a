from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from config import Base

class Generator(Base):
    __tablename__ = "generators"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # Number of days a license (or a renewal) is valid for
    expires_in = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
