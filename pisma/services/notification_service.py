# pisma/services/notification_service.py
"""
편지 알림 메일 발송 (aiosmtplib)
"""

from datetime import datetime
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from enum import Enum

import aiosmtplib

from pisma.config import settings
from pisma.services.errors import NotificationDispatchError
from pisma.utils.logger import logger


class NotificationKind(str, Enum):
    ON_ITS_WAY = "on_its_way"  # 작성 직후
    ARRIVED = "arrived"        # 예약 스윕으로 전달됨
    RECURRING = "recurring"    # 반복 편지 기념일


SUBJECTS = {
    "en": {
        NotificationKind.ON_ITS_WAY: "📬 A letter from {sender} is on its way!",
        NotificationKind.ARRIVED: "📬 Your letter from {sender} has arrived!",
        NotificationKind.RECURRING: "📬 A letter from {sender} is back for you today",
    },
    "sr": {
        NotificationKind.ON_ITS_WAY: "📬 Pismo od {sender} je na putu!",
        NotificationKind.ARRIVED: "📬 Vaše pismo od {sender} je stiglo!",
        NotificationKind.RECURRING: "📬 Pismo od {sender} vam se danas ponovo javlja",
    },
}

BODIES = {
    "en": {
        NotificationKind.ON_ITS_WAY: "{sender} has sent you a time-locked letter.\nIt stays sealed until {unlock_at}.\n\n{url}\n",
        NotificationKind.ARRIVED: "The letter from {sender} is now ready to be opened.\n\n{url}\n",
        NotificationKind.RECURRING: "Today is the anniversary of a letter from {sender}.\n\n{url}\n",
    },
    "sr": {
        NotificationKind.ON_ITS_WAY: "{sender} vam je poslao/la vremenski zaključano pismo.\nOstaje zapečaćeno do {unlock_at}.\n\n{url}\n",
        NotificationKind.ARRIVED: "Pismo od {sender} je spremno za otvaranje.\n\n{url}\n",
        NotificationKind.RECURRING: "Danas je godišnjica pisma od {sender}.\n\n{url}\n",
    },
}


class NotificationService:
    def __init__(self):
        self.enabled = bool(settings.smtp_host)
        if not self.enabled:
            logger.warning(" SMTP 미설정 - 알림 메일 발송을 건너뜀")

    def build_message(
        self,
        recipient_email: str,
        sender_name: str,
        letter_id: str,
        unlock_at: datetime,
        language: str = "en",
        kind: NotificationKind = NotificationKind.ARRIVED
    ) -> EmailMessage:
        lang = language if language in SUBJECTS else "en"
        sender = sender_name or "Anonymous"
        url = f"{settings.app_base_url.rstrip('/')}/letter/{letter_id}"

        msg = EmailMessage()
        msg["From"] = settings.smtp_from
        msg["To"] = recipient_email
        msg["Subject"] = SUBJECTS[lang][kind].format(sender=sender)
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain="pisma.app")
        msg.set_content(BODIES[lang][kind].format(
            sender=sender,
            unlock_at=unlock_at.strftime("%Y-%m-%d %H:%M UTC"),
            url=url
        ))
        return msg

    async def notify(
        self,
        recipient_email: str,
        sender_name: str,
        letter_id: str,
        unlock_at: datetime,
        language: str = "en",
        kind: NotificationKind = NotificationKind.ARRIVED
    ) -> bool:
        """발송 성공 True, SMTP 미설정으로 건너뛰면 False, 실패 시 NotificationDispatchError"""
        if not self.enabled:
            logger.warning(f" SMTP 미설정, 알림 생략: {letter_id}")
            return False

        msg = self.build_message(recipient_email, sender_name, letter_id, unlock_at, language, kind)
        try:
            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_port == 465,  # 465 는 implicit TLS
                start_tls=settings.smtp_port == 587,
                timeout=settings.smtp_timeout
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f" 알림 발송 실패: {letter_id} -> {recipient_email}: {e}")
            raise NotificationDispatchError(letter_id, str(e)) from e

        logger.info(f" 알림 발송 완료: {letter_id} ({kind.value}, {language})")
        return True

notification_service = NotificationService()
