# pisma/api/letter.py

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException

from pisma.schemas.letter_schemas import (
    LetterCreateRequest,
    LetterRecord,
    LetterStatus,
    LetterStatusResponse,
    LetterView,
    OpenLetterResponse,
    RecurringPlan,
    ScheduledPlan,
)
from pisma.services.database_service import database_service
from pisma.services.delivery_state import compute_unlock_at, evaluate_lock, mark_opened
from pisma.services.errors import (
    LetterForbiddenError,
    LetterNotFoundError,
    NotificationDispatchError,
    PismaError,
)
from pisma.services.notification_service import NotificationKind, notification_service
from pisma.utils.clock import now_utc
from pisma.utils.logger import logger

router = APIRouter(tags=["letter"])


def can_open(letter: LetterRecord, user_id: Optional[str], user_email: Optional[str]) -> bool:
    """수신자 본인, 수신자 미지정 편지, 공개 편지만 열 수 있음"""
    if letter.is_public:
        return True
    if not letter.recipient_id and not letter.recipient_email:
        return True
    if user_id and letter.recipient_id == user_id:
        return True
    return bool(user_email and letter.recipient_email == user_email)


def to_view(letter: LetterRecord, is_locked: bool, reveal: bool) -> LetterView:
    return LetterView(
        letter_id=letter.id,
        status=letter.status,
        is_locked=is_locked,
        unlock_at=letter.unlock_at,
        created_at=letter.created_at,
        opened_at=letter.opened_at,
        sender_name=letter.sender_name,
        recipient_name=letter.recipient_name,
        message=letter.message if reveal else None
    )


async def load_letter(letter_id: str) -> LetterRecord:
    letter = await database_service.get_by_id(letter_id)
    if letter is None:
        raise LetterNotFoundError(letter_id)
    return letter


async def send_on_its_way(letter: LetterRecord):
    try:
        await notification_service.notify(
            recipient_email=letter.recipient_email,
            sender_name=letter.sender_name or "Anonymous",
            letter_id=letter.id,
            unlock_at=letter.unlock_at,
            language=letter.language,
            kind=NotificationKind.ON_ITS_WAY
        )
    except NotificationDispatchError as e:
        logger.error(f" 작성 알림 실패 (무시): {e}")


@router.post("/letters", response_model=LetterStatusResponse, status_code=201)
async def create_letter(request: LetterCreateRequest, background_tasks: BackgroundTasks):
    """편지 봉인 (sealed 상태로 생성)"""
    now = now_utc()
    plan = request.delivery

    letter = await database_service.create_letter(
        unlock_at=compute_unlock_at(plan, now),
        created_at=now,
        scheduled_date=plan.scheduled_date if isinstance(plan, ScheduledPlan) else None,
        is_recurring=isinstance(plan, RecurringPlan),
        recurring_type=plan.cadence.value if isinstance(plan, RecurringPlan) else None,
        sender_id=request.sender_id,
        sender_name=request.sender_name,
        recipient_id=request.recipient_id,
        recipient_email=request.recipient_email,
        recipient_name=request.recipient_name,
        message=request.message,
        language=request.language,
        is_public=request.is_public
    )

    if letter.recipient_email:
        background_tasks.add_task(send_on_its_way, letter)

    return LetterStatusResponse(
        letter_id=letter.id,
        status=letter.status,
        is_locked=evaluate_lock(letter, now).is_locked,
        unlock_at=letter.unlock_at,
        delivery_kind=letter.delivery_plan.kind,
        is_recurring=letter.is_recurring,
        recurring_type=letter.recurring_type
    )


@router.get("/letters/{letter_id}", response_model=LetterView)
async def get_letter(
    letter_id: str,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None)
):
    """잠긴 편지는 보낸 사람에게만 내용 공개"""
    try:
        letter = await load_letter(letter_id)
        is_sender = bool(x_user_id and letter.sender_id == x_user_id)
        if not is_sender and not can_open(letter, x_user_id, x_user_email):
            raise LetterForbiddenError("Access denied")

        is_locked = evaluate_lock(letter, now_utc()).is_locked
        return to_view(letter, is_locked, reveal=is_sender or not is_locked)

    except PismaError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/letters/{letter_id}/status", response_model=LetterStatusResponse)
async def get_letter_status(letter_id: str):
    try:
        letter = await load_letter(letter_id)
    except PismaError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return LetterStatusResponse(
        letter_id=letter.id,
        status=letter.status,
        is_locked=evaluate_lock(letter, now_utc()).is_locked,
        unlock_at=letter.unlock_at,
        opened_at=letter.opened_at,
        delivery_kind=letter.delivery_plan.kind,
        is_recurring=letter.is_recurring,
        recurring_type=letter.recurring_type
    )


@router.post("/letters/{letter_id}/open", response_model=OpenLetterResponse)
async def open_letter(
    letter_id: str,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None)
):
    """편지 열기 (이미 열린 편지는 성공으로 처리)"""
    try:
        letter = await load_letter(letter_id)
        if not can_open(letter, x_user_id, x_user_email):
            raise LetterForbiddenError()

        now = now_utc()
        if letter.status == LetterStatus.OPENED:
            return OpenLetterResponse(
                message="Letter already opened",
                letter=to_view(letter, False, True),
                timestamp=now.isoformat()
            )

        # 잠겨 있으면 LetterLockedError
        opening = mark_opened(letter, now)

        opened = await database_service.mark_opened(letter.id, opening.opened_at)
        if opened is None:
            raise LetterNotFoundError(letter_id)
        return OpenLetterResponse(
            message="Letter opened",
            letter=to_view(opened, False, True),
            timestamp=now.isoformat()
        )

    except PismaError as e:
        logger.info(f" 편지 열기 거부: {letter_id} [{e.code}]")
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
