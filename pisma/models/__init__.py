# pisma/models/__init__.py
"""
Models 패키지
SQLAlchemy 모델 정의
"""

from .base import Base
from .user import User
from .letter import Letter
from .watermark import SweepWatermark

__all__ = [
    "Base",
    "User",
    "Letter",
    "SweepWatermark"
]
