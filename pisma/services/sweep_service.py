# pisma/services/sweep_service.py
"""
예약/반복 편지 스윕

- process_scheduled: 예약 시각이 지난 sealed 편지에 알림 후 delivered 로 변경
- process_recurring: 반복 편지 기념일 알림 (상태/unlock_at 변경 없음)

개별 편지 실패는 모아서 보고하고 배치는 계속 진행한다.
조회 단계의 DB 오류만 호출자에게 전파된다.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from pisma.config import settings
from pisma.schemas.letter_schemas import LetterRecord, LetterStatus
from pisma.schemas.sweep_schemas import SweepAction, SweepDecision, SweepFailure, SweepResult
from pisma.services.database_service import database_service
from pisma.services.delivery_state import sweep_due
from pisma.services.errors import PismaError
from pisma.services.notification_service import NotificationKind, notification_service
from pisma.utils.clock import now_utc
from pisma.utils.logger import logger

ItemHandler = Callable[[LetterRecord, datetime], Awaitable[bool]]


class SweepService:
    SCHEDULED_JOB = "process_scheduled"
    RECURRING_JOB = "process_recurring"

    def __init__(
        self,
        store=None,
        notifier=None,
        batch_size: Optional[int] = None,
        item_timeout: Optional[float] = None
    ):
        self.store = store or database_service
        self.notifier = notifier or notification_service
        self.batch_size = batch_size or settings.scheduled_batch_size
        self.item_timeout = item_timeout or settings.notification_timeout_seconds

    async def process_scheduled(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or now_utc()
        result = SweepResult(job=self.SCHEDULED_JOB)

        letters = await self.store.find_due_scheduled(now, self.batch_size)
        decisions = [d for d in sweep_due(letters, now) if d.action == SweepAction.DELIVER]
        logger.info(f" 예약 편지 {len(decisions)}건 처리 시작")

        await self._run(decisions, letters, now, self._deliver, result)
        return result

    async def process_recurring(self, now: Optional[datetime] = None, force: bool = False) -> SweepResult:
        now = now or now_utc()
        result = SweepResult(job=self.RECURRING_JOB)

        claimed = False
        if not force:
            claimed = await self.store.claim_watermark(self.RECURRING_JOB, now)
            if not claimed:
                logger.info(f" 반복 편지 스윕은 오늘({now.date().isoformat()}) 이미 실행됨 - 건너뜀")
                result.skipped = True
                return result

        try:
            letters = await self.store.find_recurring()
            # sealed 상태로 만료된 반복 편지는 예약 스윕이 전달한다
            decisions = [d for d in sweep_due(letters, now) if d.action == SweepAction.NOTIFY]
            logger.info(f" 오늘 발송할 반복 편지 {len(decisions)}건")

            await self._run(decisions, letters, now, self._notify_recurring, result)
        except Exception:
            if claimed:
                await self.store.release_watermark(self.RECURRING_JOB, now)
            raise
        return result

    async def _run(
        self,
        decisions: List[SweepDecision],
        letters: List[LetterRecord],
        now: datetime,
        handler: ItemHandler,
        result: SweepResult
    ):
        by_id: Dict[str, LetterRecord] = {letter.id: letter for letter in letters}
        targets = [by_id[d.letter_id] for d in decisions]
        result.due = len(targets)

        outcomes = await asyncio.gather(
            *(asyncio.wait_for(handler(letter, now), timeout=self.item_timeout) for letter in targets),
            return_exceptions=True
        )

        for letter, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                result.failures.append(self._failure(letter, outcome))
                continue
            result.processed += 1
            if outcome:
                result.notified += 1

        logger.info(
            f" {result.job} 완료: 대상 {result.due}건, 성공 {result.processed}건, "
            f"알림 {result.notified}건, 실패 {result.failed}건"
        )

    @staticmethod
    def _failure(letter: LetterRecord, error: BaseException) -> SweepFailure:
        if isinstance(error, PismaError):
            code = error.code
        elif isinstance(error, asyncio.TimeoutError):
            code = "NOTIFICATION_TIMEOUT"
        else:
            code = type(error).__name__
        logger.error(f" 편지 처리 실패: {letter.id} [{code}] {error}")
        return SweepFailure(letter_id=letter.id, code=code, error=str(error))

    async def _deliver(self, letter: LetterRecord, now: datetime) -> bool:
        notified = False
        if letter.recipient_email:
            notified = await self.notifier.notify(
                recipient_email=letter.recipient_email,
                sender_name=letter.sender_name or "Anonymous",
                letter_id=letter.id,
                unlock_at=letter.unlock_at,
                language=letter.language,
                kind=NotificationKind.ARRIVED
            )
        else:
            logger.info(f" 수신 이메일 없음, 알림 없이 전달 처리: {letter.id}")

        changed = await self.store.update_status(letter.id, LetterStatus.DELIVERED, expected=LetterStatus.SEALED)
        if not changed:
            logger.info(f" 이미 상태가 변경된 편지: {letter.id}")
        return notified

    async def _notify_recurring(self, letter: LetterRecord, now: datetime) -> bool:
        if not letter.recipient_email:
            return False
        return await self.notifier.notify(
            recipient_email=letter.recipient_email,
            sender_name=letter.sender_name or "Anonymous",
            letter_id=letter.id,
            unlock_at=now,
            language=letter.language,
            kind=NotificationKind.RECURRING
        )


sweep_service = SweepService()
