# pisma/models/letter.py
"""
편지 모델
"""

from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy import Enum as SQLEnum
from .base import Base
from pisma.utils.clock import now_utc

class Letter(Base):
    __tablename__ = "letter_TB"

    LETTER_ID = Column(String(36), primary_key=True)
    STATUS = Column(SQLEnum('sealed', 'delivered', 'opened', name="letter_status"), default='sealed', nullable=False)
    CREATED_AT = Column(DateTime, default=now_utc, nullable=False)
    UNLOCK_AT = Column(DateTime, nullable=False)
    OPENED_AT = Column(DateTime)
    SCHEDULED_DATE = Column(DateTime)
    IS_RECURRING = Column(Boolean, default=False, nullable=False)
    RECURRING_TYPE = Column(SQLEnum('yearly', 'monthly', name="recurring_type"))

    SENDER_ID = Column(String(36), ForeignKey('user_TB.USER_ID'))
    SENDER_NAME = Column(String(100))
    RECIPIENT_ID = Column(String(36), ForeignKey('user_TB.USER_ID'))
    RECIPIENT_EMAIL = Column(String(100))
    RECIPIENT_NAME = Column(String(100))

    MESSAGE = Column(Text)
    LANGUAGE = Column(String(5), default='en', nullable=False)
    IS_PUBLIC = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        # 예약 스윕: status = sealed AND unlock/scheduled <= now
        Index("ix_letter_status_unlock", "STATUS", "UNLOCK_AT"),
        Index("ix_letter_recurring", "IS_RECURRING"),
    )
