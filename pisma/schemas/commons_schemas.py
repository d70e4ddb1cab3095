# pisma/schemas/commons_schemas.py
"""
공통 스키마 - 여러 API에서 공유하는 스키마들
"""

from pydantic import BaseModel
from typing import Optional

# 기본 응답 스키마
class BaseResponse(BaseModel):
    status: str
    message: Optional[str] = None
    timestamp: Optional[str] = None

# HTTPException detail 형식
class ErrorDetail(BaseModel):
    error: str
    code: str
