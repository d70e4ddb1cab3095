# pisma/services/errors.py
"""
편지 전달 도메인 오류
API 레이어에서 HTTPException 으로 변환
"""

from pisma.schemas.commons_schemas import ErrorDetail


class PismaError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "", code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_detail(self) -> dict:
        return ErrorDetail(error=self.message, code=self.code).model_dump()


class LetterLockedError(PismaError):
    """unlock_at 이전에 열기 시도"""
    code = "LETTER_LOCKED"
    status_code = 403

    def __init__(self, letter_id: str, unlock_at=None):
        super().__init__("This letter is still sealed")
        self.letter_id = letter_id
        self.unlock_at = unlock_at


class LetterNotFoundError(PismaError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, letter_id: str):
        super().__init__("Letter not found")
        self.letter_id = letter_id


class LetterForbiddenError(PismaError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You are not authorized to open this letter"):
        super().__init__(message)


class NotificationDispatchError(PismaError):
    """개별 알림 발송 실패 - 스윕 배치는 계속 진행"""
    code = "NOTIFICATION_DISPATCH_FAILED"
    status_code = 502

    def __init__(self, letter_id: str, reason: str):
        super().__init__(f"Notification for letter {letter_id} failed: {reason}")
        self.letter_id = letter_id
        self.reason = reason
