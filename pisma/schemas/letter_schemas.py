# pisma/schemas/letter_schemas.py

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pisma.schemas.commons_schemas import BaseResponse
from pisma.utils.clock import to_naive_utc


class LetterStatus(str, Enum):
    SEALED = "sealed"
    DELIVERED = "delivered"
    OPENED = "opened"


class RecurringType(str, Enum):
    YEARLY = "yearly"
    MONTHLY = "monthly"


# 전달 방식 (kind 로 구분되는 tagged union)
class DurationPlan(BaseModel):
    kind: Literal["duration"] = "duration"
    hours: int = Field(48, ge=1, le=87600)  # 최대 10년


class ScheduledPlan(BaseModel):
    kind: Literal["scheduled"] = "scheduled"
    scheduled_date: datetime

    @field_validator("scheduled_date")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class RecurringPlan(BaseModel):
    kind: Literal["recurring"] = "recurring"
    anchor_date: datetime
    cadence: RecurringType

    @field_validator("anchor_date")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


DeliveryPlan = Annotated[
    Union[DurationPlan, ScheduledPlan, RecurringPlan],
    Field(discriminator="kind")
]


class LetterRecord(BaseModel):
    """DB 행을 옮겨 담은 편지 스냅샷 (상태 머신 입력)"""
    model_config = ConfigDict(frozen=True)

    id: str
    status: LetterStatus = LetterStatus.SEALED
    created_at: datetime
    unlock_at: datetime
    opened_at: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    is_recurring: bool = False
    recurring_type: Optional[RecurringType] = None

    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None

    message: Optional[str] = None
    language: str = "en"
    is_public: bool = False

    @property
    def delivery_plan(self) -> Union[DurationPlan, ScheduledPlan, RecurringPlan]:
        if self.is_recurring and self.recurring_type:
            return RecurringPlan(anchor_date=self.unlock_at, cadence=self.recurring_type)
        if self.scheduled_date is not None:
            return ScheduledPlan(scheduled_date=self.scheduled_date)
        hours = max(1, round((self.unlock_at - self.created_at).total_seconds() / 3600))
        return DurationPlan(hours=hours)


# 요청 스키마
class LetterCreateRequest(BaseModel):
    delivery: DeliveryPlan = Field(default_factory=DurationPlan)
    message: Optional[str] = Field(None, max_length=10000)
    sender_id: Optional[str] = None
    sender_name: str = Field("Anonymous", max_length=100)
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = Field(None, max_length=100)
    recipient_name: Optional[str] = Field(None, max_length=100)
    language: Literal["en", "sr"] = "en"
    is_public: bool = False

    @field_validator("recipient_email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        if value is not None and "@" not in value:
            raise ValueError("Invalid email")
        return value


# 응답 스키마
class LetterStatusResponse(BaseModel):
    letter_id: str
    status: LetterStatus
    is_locked: bool
    unlock_at: datetime
    opened_at: Optional[datetime] = None
    delivery_kind: str = "duration"
    is_recurring: bool = False
    recurring_type: Optional[RecurringType] = None


class LetterView(BaseModel):
    """잠긴 편지는 message 가 비어 있음"""
    letter_id: str
    status: LetterStatus
    is_locked: bool
    unlock_at: datetime
    created_at: datetime
    opened_at: Optional[datetime] = None
    sender_name: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None


class OpenLetterResponse(BaseResponse):
    status: str = "success"
    message: str
    letter: LetterView
