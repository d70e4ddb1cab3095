# pisma/models/base.py
"""
SQLAlchemy Base 설정
엔진/세션은 DatabaseService 가 관리
"""

from sqlalchemy.orm import declarative_base

# Base 모델
Base = declarative_base()
