# pisma/models/watermark.py
"""
스윕 작업별 마지막 실행 시각
"""

from sqlalchemy import Column, String, DateTime
from .base import Base

class SweepWatermark(Base):
    __tablename__ = "sweep_watermark_TB"

    JOB_NAME = Column(String(50), primary_key=True)
    LAST_SWEPT_AT = Column(DateTime, nullable=False)
