from __future__ import annotations

import asyncio
import os
import tempfile

# pisma 를 import 하기 전에 환경 설정 (settings 는 import 시점에 생성됨)
_DB_DIR = tempfile.mkdtemp(prefix="pisma-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/pisma.db"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("SMTP_HOST", None)
os.environ.pop("CRON_SECRET", None)

import pytest
from httpx import ASGITransport, AsyncClient

from pisma.models import Base
from pisma.services.database_service import database_service
from pisma.services.errors import NotificationDispatchError


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db():
    async with database_service.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield database_service
    await database_service.engine.dispose()


@pytest.fixture
async def client(db):
    from pisma.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class FakeNotifier:
    """notify 호출 기록, fail_ids 에 있으면 발송 실패"""

    def __init__(self, fail_ids=(), slow_ids=(), delay: float = 0.0):
        self.fail_ids = set(fail_ids)
        self.slow_ids = set(slow_ids)
        self.delay = delay
        self.calls = []

    async def notify(self, recipient_email, sender_name, letter_id, unlock_at, language="en", kind=None):
        if letter_id in self.slow_ids:
            await asyncio.sleep(self.delay)
        if letter_id in self.fail_ids:
            raise NotificationDispatchError(letter_id, "smtp down")
        self.calls.append({
            "recipient_email": recipient_email,
            "sender_name": sender_name,
            "letter_id": letter_id,
            "unlock_at": unlock_at,
            "language": language,
            "kind": kind,
        })
        return True


@pytest.fixture
def notifier():
    return FakeNotifier()
