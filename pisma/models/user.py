# pisma/models/user.py
"""
사용자 모델 (수신자 이메일 조회/권한 확인용)
"""

from sqlalchemy import Column, String, DateTime
from .base import Base
from pisma.utils.clock import now_utc

class User(Base):
    __tablename__ = "user_TB"

    USER_ID = Column(String(36), primary_key=True)
    NAME = Column(String(100))
    EMAIL = Column(String(100), unique=True, nullable=False)
    JOINED_AT = Column(DateTime, default=now_utc)
