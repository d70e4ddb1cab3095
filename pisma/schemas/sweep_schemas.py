# pisma/schemas/sweep_schemas.py
"""
스윕(예약/반복 편지 처리) 관련 스키마
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SweepAction(str, Enum):
    DELIVER = "deliver"  # 알림 발송 후 sealed -> delivered
    NOTIFY = "notify"    # 반복 편지: 알림만, 상태 변경 없음


class SweepDecision(BaseModel):
    letter_id: str
    action: SweepAction


class SweepFailure(BaseModel):
    letter_id: str
    code: str
    error: str


class SweepResult(BaseModel):
    job: str
    due: int = 0
    processed: int = 0
    notified: int = 0
    failures: List[SweepFailure] = Field(default_factory=list)
    skipped: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)


# 외부로 나가는 최종 응답
class SweepResponse(BaseModel):
    success: bool = True
    processed: int
    failed: int = 0
    skipped: bool = False
    message: Optional[str] = None
