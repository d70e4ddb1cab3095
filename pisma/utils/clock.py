"""
시간 유틸리티

DB 에는 timezone 정보 없이 UTC 기준 시각을 저장한다.
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """aware datetime 은 UTC 로 변환 후 tzinfo 제거"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
