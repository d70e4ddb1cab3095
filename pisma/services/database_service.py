# pisma/services/database_service.py
"""
데이터베이스 서비스
SQLAlchemy 기반 비동기 DB 연결

편지 상태 변경은 모두 조건부 UPDATE (compare-and-set) 로 처리한다.
"""

from typing import List, Optional
from datetime import datetime
import uuid

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import and_, delete, or_, update
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pisma.config import settings
from pisma.models import Base, Letter, SweepWatermark, User
from pisma.schemas.letter_schemas import LetterRecord, LetterStatus
from pisma.utils.clock import now_utc
from pisma.utils.logger import logger


class DatabaseService:
    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.sqlalchemy_url
        engine_kwargs = {"echo": settings.debug, "pool_pre_ping": True}
        if self.database_url.startswith("mysql"):
            engine_kwargs["pool_recycle"] = 3600
        self.engine = create_async_engine(self.database_url, **engine_kwargs)
        self.async_session = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(" DatabaseService 초기화 완료")

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(" 데이터베이스 테이블 생성 완료")

    @staticmethod
    def _to_record(letter: Letter, user_email: Optional[str] = None) -> LetterRecord:
        return LetterRecord(
            id=letter.LETTER_ID,
            status=letter.STATUS,
            created_at=letter.CREATED_AT,
            unlock_at=letter.UNLOCK_AT,
            opened_at=letter.OPENED_AT,
            scheduled_date=letter.SCHEDULED_DATE,
            is_recurring=bool(letter.IS_RECURRING),
            recurring_type=letter.RECURRING_TYPE,
            sender_id=letter.SENDER_ID,
            sender_name=letter.SENDER_NAME,
            recipient_id=letter.RECIPIENT_ID,
            # 등록 사용자 수신자는 계정 이메일로 보완
            recipient_email=letter.RECIPIENT_EMAIL or user_email,
            recipient_name=letter.RECIPIENT_NAME,
            message=letter.MESSAGE,
            language=letter.LANGUAGE or "en",
            is_public=bool(letter.IS_PUBLIC)
        )

    def _letter_query(self):
        return select(Letter, User.EMAIL).outerjoin(User, User.USER_ID == Letter.RECIPIENT_ID)

    async def create_letter(
        self,
        unlock_at: datetime,
        created_at: Optional[datetime] = None,
        scheduled_date: Optional[datetime] = None,
        is_recurring: bool = False,
        recurring_type: Optional[str] = None,
        letter_id: Optional[str] = None,
        **fields
    ) -> LetterRecord:
        letter = Letter(
            LETTER_ID=letter_id or str(uuid.uuid4()),
            STATUS=LetterStatus.SEALED.value,
            CREATED_AT=created_at or now_utc(),
            UNLOCK_AT=unlock_at,
            SCHEDULED_DATE=scheduled_date,
            IS_RECURRING=is_recurring,
            RECURRING_TYPE=recurring_type,
            SENDER_ID=fields.get("sender_id"),
            SENDER_NAME=fields.get("sender_name"),
            RECIPIENT_ID=fields.get("recipient_id"),
            RECIPIENT_EMAIL=fields.get("recipient_email"),
            RECIPIENT_NAME=fields.get("recipient_name"),
            MESSAGE=fields.get("message"),
            LANGUAGE=fields.get("language") or "en",
            IS_PUBLIC=fields.get("is_public", False)
        )
        async with self.async_session() as session:
            session.add(letter)
            await session.commit()
        logger.info(f" 편지 저장 완료: {letter.LETTER_ID} (unlock_at={unlock_at.isoformat()})")
        return await self.get_by_id(letter.LETTER_ID)

    async def create_user(self, email: str, name: Optional[str] = None, user_id: Optional[str] = None) -> str:
        user_id = user_id or str(uuid.uuid4())
        async with self.async_session() as session:
            session.add(User(USER_ID=user_id, NAME=name, EMAIL=email))
            await session.commit()
        return user_id

    async def get_by_id(self, letter_id: str) -> Optional[LetterRecord]:
        async with self.async_session() as session:
            result = await session.execute(
                self._letter_query().where(Letter.LETTER_ID == letter_id)
            )
            row = result.first()
            if not row:
                return None
            letter, user_email = row
            return self._to_record(letter, user_email)

    async def find_due_scheduled(self, now: datetime, limit: int) -> List[LetterRecord]:
        """sealed 상태이면서 예약일(없으면 unlock_at)이 지난 편지, 오래된 순으로 limit 개"""
        due_at = or_(
            Letter.SCHEDULED_DATE <= now,
            and_(Letter.SCHEDULED_DATE.is_(None), Letter.UNLOCK_AT <= now)
        )
        async with self.async_session() as session:
            result = await session.execute(
                self._letter_query()
                .where(Letter.STATUS == LetterStatus.SEALED.value, due_at)
                .order_by(Letter.UNLOCK_AT.asc(), Letter.LETTER_ID.asc())
                .limit(limit)
            )
            return [self._to_record(letter, email) for letter, email in result.all()]

    async def find_recurring(self) -> List[LetterRecord]:
        async with self.async_session() as session:
            result = await session.execute(
                self._letter_query().where(Letter.IS_RECURRING.is_(True))
            )
            return [self._to_record(letter, email) for letter, email in result.all()]

    async def update_status(
        self,
        letter_id: str,
        new_status: LetterStatus,
        expected: Optional[LetterStatus] = None
    ) -> bool:
        """상태 변경 (expected 가 있으면 해당 상태일 때만). 변경 여부 반환"""
        conditions = [Letter.LETTER_ID == letter_id]
        if expected is not None:
            conditions.append(Letter.STATUS == expected.value)

        async with self.async_session() as session:
            result = await session.execute(
                update(Letter).where(*conditions).values(STATUS=new_status.value)
            )
            await session.commit()
            return result.rowcount == 1

    async def mark_opened(self, letter_id: str, opened_at: datetime) -> Optional[LetterRecord]:
        """
        열기 처리 (opened 가 아니고 unlock_at 이 지난 경우에만 변경)
        동시 요청에서 진 쪽은 먼저 저장된 opened_at 을 그대로 돌려받는다.
        """
        async with self.async_session() as session:
            result = await session.execute(
                update(Letter)
                .where(
                    Letter.LETTER_ID == letter_id,
                    Letter.STATUS != LetterStatus.OPENED.value,
                    Letter.UNLOCK_AT <= opened_at
                )
                .values(STATUS=LetterStatus.OPENED.value, OPENED_AT=opened_at)
            )
            await session.commit()

        if result.rowcount == 1:
            logger.info(f" 편지 열람 처리: {letter_id}")
        return await self.get_by_id(letter_id)

    async def claim_watermark(self, job_name: str, now: datetime) -> bool:
        """
        하루 한 번 실행되는 작업의 실행권 획득
        같은 날짜에 이미 실행되었으면 False
        """
        day_start = datetime(now.year, now.month, now.day)
        async with self.async_session() as session:
            result = await session.execute(
                update(SweepWatermark)
                .where(SweepWatermark.JOB_NAME == job_name, SweepWatermark.LAST_SWEPT_AT < day_start)
                .values(LAST_SWEPT_AT=now)
            )
            if result.rowcount == 1:
                await session.commit()
                return True

            existing = await session.get(SweepWatermark, job_name)
            if existing is not None:
                return False

            session.add(SweepWatermark(JOB_NAME=job_name, LAST_SWEPT_AT=now))
            try:
                await session.commit()
            except IntegrityError:
                # 동시에 다른 스윕이 먼저 기록함
                await session.rollback()
                return False
            return True

    async def release_watermark(self, job_name: str, claimed_at: datetime):
        """claim_watermark 로 기록한 실행권 반납 (실행 실패 시 같은 날 재시도 허용)"""
        day_start = datetime(claimed_at.year, claimed_at.month, claimed_at.day)
        async with self.async_session() as session:
            await session.execute(
                delete(SweepWatermark)
                .where(SweepWatermark.JOB_NAME == job_name, SweepWatermark.LAST_SWEPT_AT >= day_start)
            )
            await session.commit()
        logger.info(f" 실행권 반납: {job_name}")

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f" DB 연결 확인 실패: {e}")
            return False

    async def close(self):
        await self.engine.dispose()
        logger.info("🔌 데이터베이스 연결 종료")

# 전역 인스턴스화
database_service = DatabaseService()
