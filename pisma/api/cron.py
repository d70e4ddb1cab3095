# pisma/api/cron.py
"""
외부 cron 트리거 엔드포인트
cron_secret 이 설정되어 있으면 Authorization: Bearer <secret> 필요
"""

from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from pisma.config import settings
from pisma.schemas.sweep_schemas import SweepResponse, SweepResult
from pisma.services.sweep_service import sweep_service
from pisma.utils.logger import logger

router = APIRouter(tags=["cron"])


def verify_cron_secret(authorization: Optional[str]):
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail={"error": "Unauthorized", "code": "UNAUTHORIZED"})


def internal_error() -> HTTPException:
    return HTTPException(status_code=500, detail={"error": "Internal Server Error", "code": "INTERNAL_ERROR"})


def to_response(result: SweepResult) -> SweepResponse:
    return SweepResponse(
        success=True,
        processed=result.processed,
        failed=result.failed,
        skipped=result.skipped,
        message="already swept today" if result.skipped else None
    )


@router.api_route("/cron/process-scheduled", methods=["GET", "POST"], response_model=SweepResponse)
async def process_scheduled(authorization: Optional[str] = Header(None)):
    verify_cron_secret(authorization)
    try:
        result = await sweep_service.process_scheduled()
    except Exception as e:
        logger.error(f" 예약 편지 cron 오류: {e}")
        raise internal_error()
    return to_response(result)


@router.api_route("/cron/process-recurring", methods=["GET", "POST"], response_model=SweepResponse)
async def process_recurring(authorization: Optional[str] = Header(None), force: bool = False):
    verify_cron_secret(authorization)
    try:
        result = await sweep_service.process_recurring(force=force)
    except Exception as e:
        logger.error(f" 반복 편지 cron 오류: {e}")
        raise internal_error()
    return to_response(result)
