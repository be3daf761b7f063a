# -*- coding: utf-8 -*-
"""
APILog Model
-------------
Audit trail of license server activity: every activation, deactivation
and validation request (accepted or rejected), renewal orders and
option changes made by an administrator.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
from config import Base
import json
import logging

logger = logging.getLogger(__name__)


class APILog(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)

    # License key, admin username or order email responsible for the action
    user = Column(String(255), nullable=True)

    # Short action name, e.g. "activate_ok", "validate_rejected"
    action = Column(String(255), nullable=False)

    # JSON describing the event
    details = Column(Text, nullable=True)

    # Client site (Referer) or IP address
    ip_address = Column(String(255), nullable=True)

    endpoint = Column(String(255), nullable=True)

    timestamp = Column(DateTime, default=datetime.utcnow)


def log_event(db_session, user=None, action="", details=None, ip_address=None, endpoint=None):
    """
    Stores a log record in its own commit.
    Call it outside of any pending license transaction.
    """
    if isinstance(details, (dict, list)):
        details = json.dumps(details, default=str)
    elif details is not None:
        details = str(details)

    try:
        log_entry = APILog(
            user=user,
            action=action,
            details=details,
            ip_address=ip_address,
            endpoint=endpoint,
        )
        db_session.add(log_entry)
        db_session.commit()
        return log_entry

    except Exception:
        db_session.rollback()
        logger.exception("Failed to store %s event", action)
        return None
