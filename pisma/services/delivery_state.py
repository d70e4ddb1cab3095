# pisma/services/delivery_state.py
"""
편지 전달 상태 머신

sealed -> delivered -> opened (opened 는 최종 상태, sealed -> opened 도 허용)
모든 함수는 순수 함수이며 저장소에 접근하지 않는다.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Union

from pydantic import BaseModel

from pisma.schemas.letter_schemas import (
    DurationPlan,
    LetterRecord,
    LetterStatus,
    RecurringPlan,
    RecurringType,
    ScheduledPlan,
)
from pisma.schemas.sweep_schemas import SweepAction, SweepDecision
from pisma.services.errors import LetterLockedError


class LockState(BaseModel):
    is_locked: bool


def evaluate_lock(letter: LetterRecord, now: datetime) -> LockState:
    return LockState(is_locked=now < letter.unlock_at)


def mark_opened(letter: LetterRecord, now: datetime) -> LetterRecord:
    """열기 처리. 이미 열린 편지는 그대로 반환 (첫 opened_at 유지)"""
    if letter.status == LetterStatus.OPENED:
        return letter

    if evaluate_lock(letter, now).is_locked:
        raise LetterLockedError(letter.id, letter.unlock_at)

    return letter.model_copy(update={"status": LetterStatus.OPENED, "opened_at": now})


def compute_unlock_at(
    plan: Union[DurationPlan, ScheduledPlan, RecurringPlan],
    created_at: datetime
) -> datetime:
    if isinstance(plan, ScheduledPlan):
        return plan.scheduled_date
    if isinstance(plan, RecurringPlan):
        return plan.anchor_date
    return created_at + timedelta(hours=plan.hours)


def is_scheduled_due(letter: LetterRecord, now: datetime) -> bool:
    if letter.status != LetterStatus.SEALED:
        return False
    due_at = letter.scheduled_date or letter.unlock_at
    return due_at <= now


def is_recurring_due(letter: LetterRecord, now: datetime) -> bool:
    """
    반복 편지 알림 여부

    기준일(unlock_at)과 월/일이 같은 날에만 발송한다. 기준일이 속한 해(yearly)
    또는 같은 해/월(monthly)은 제외. 2월 29일 기준 yearly 는 평년에, 29~31일 기준
    monthly 는 해당 날짜가 없는 달에 발송하지 않는다.
    """
    if not letter.is_recurring or letter.recurring_type is None:
        return False

    anchor = letter.unlock_at
    if now.day != anchor.day:
        return False

    if letter.recurring_type == RecurringType.YEARLY:
        return now.month == anchor.month and now.year != anchor.year

    if letter.recurring_type == RecurringType.MONTHLY:
        return (now.year, now.month) != (anchor.year, anchor.month)

    return False


def sweep_due(letters: Iterable[LetterRecord], now: datetime) -> List[SweepDecision]:
    """
    스윕 대상 판정

    예약 만료 편지는 DELIVER, 반복 편지 해당일은 NOTIFY.
    둘 다 해당하면 DELIVER 하나만 반환한다.
    """
    decisions: List[SweepDecision] = []
    seen = set()

    for letter in letters:
        if letter.id in seen:
            continue

        if is_scheduled_due(letter, now):
            action = SweepAction.DELIVER
        elif is_recurring_due(letter, now):
            action = SweepAction.NOTIFY
        else:
            continue

        seen.add(letter.id)
        decisions.append(SweepDecision(letter_id=letter.id, action=action))

    return decisions
