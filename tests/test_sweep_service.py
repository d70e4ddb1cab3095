"""Tests for pisma.services.sweep_service."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FakeNotifier
from pisma.schemas.letter_schemas import LetterStatus
from pisma.services.notification_service import NotificationKind
from pisma.services.sweep_service import SweepService

pytestmark = pytest.mark.anyio

NOW = datetime(2025, 3, 15, 9, 0)


async def seed_due(db, count: int, prefix: str = "due", email: bool = True):
    ids = []
    for i in range(count):
        letter = await db.create_letter(
            unlock_at=NOW - timedelta(minutes=count - i),
            created_at=NOW - timedelta(days=2),
            scheduled_date=NOW - timedelta(minutes=count - i),
            recipient_email=f"{prefix}-{i}@example.com" if email else None,
            sender_name="Ana",
            letter_id=f"{prefix}-{i:03d}"
        )
        ids.append(letter.id)
    return ids


async def statuses(db, ids):
    return {letter_id: (await db.get_by_id(letter_id)).status for letter_id in ids}


class TestProcessScheduled:
    async def test_delivers_and_notifies(self, db, notifier):
        ids = await seed_due(db, 3)
        service = SweepService(store=db, notifier=notifier)

        result = await service.process_scheduled(NOW)

        assert result.processed == 3
        assert result.notified == 3
        assert result.failed == 0
        assert set((await statuses(db, ids)).values()) == {LetterStatus.DELIVERED}
        assert {call["kind"] for call in notifier.calls} == {NotificationKind.ARRIVED}
        assert notifier.calls[0]["sender_name"] == "Ana"

    async def test_batch_limit_and_rerun(self, db, notifier):
        ids = await seed_due(db, 60)
        service = SweepService(store=db, notifier=notifier, batch_size=50)

        first = await service.process_scheduled(NOW)
        assert first.processed == 50
        states = await statuses(db, ids)
        assert sum(1 for s in states.values() if s == LetterStatus.DELIVERED) == 50
        assert sum(1 for s in states.values() if s == LetterStatus.SEALED) == 10

        second = await service.process_scheduled(NOW)
        assert second.processed == 10

        third = await service.process_scheduled(NOW)
        assert third.processed == 0

        notified_ids = [call["letter_id"] for call in notifier.calls]
        assert len(notified_ids) == 60
        assert set(notified_ids) == set(ids)

    async def test_one_failure_does_not_abort_batch(self, db):
        ids = await seed_due(db, 5)
        failing = ids[2]
        service = SweepService(store=db, notifier=FakeNotifier(fail_ids=[failing]))

        result = await service.process_scheduled(NOW)

        assert result.processed == 4
        assert result.failed == 1
        assert result.failures[0].letter_id == failing
        assert result.failures[0].code == "NOTIFICATION_DISPATCH_FAILED"
        states = await statuses(db, ids)
        assert states[failing] == LetterStatus.SEALED
        assert [i for i, s in states.items() if s == LetterStatus.DELIVERED] == [i for i in ids if i != failing]

        # 다음 스윕에서 재시도
        retry = await SweepService(store=db, notifier=FakeNotifier()).process_scheduled(NOW)
        assert retry.processed == 1
        assert (await db.get_by_id(failing)).status == LetterStatus.DELIVERED

    async def test_slow_notification_times_out_alone(self, db):
        ids = await seed_due(db, 3)
        slow = FakeNotifier(slow_ids=[ids[0]], delay=5)
        service = SweepService(store=db, notifier=slow, item_timeout=0.05)

        result = await service.process_scheduled(NOW)

        assert result.processed == 2
        assert [f.code for f in result.failures] == ["NOTIFICATION_TIMEOUT"]
        assert (await db.get_by_id(ids[0])).status == LetterStatus.SEALED

    async def test_letter_without_email_is_delivered_silently(self, db, notifier):
        ids = await seed_due(db, 1, email=False)
        result = await SweepService(store=db, notifier=notifier).process_scheduled(NOW)

        assert result.processed == 1
        assert result.notified == 0
        assert notifier.calls == []
        assert (await db.get_by_id(ids[0])).status == LetterStatus.DELIVERED

    async def test_opened_letter_is_not_swept(self, db, notifier):
        ids = await seed_due(db, 1)
        await db.mark_opened(ids[0], NOW)
        result = await SweepService(store=db, notifier=notifier).process_scheduled(NOW)
        assert result.due == 0
        assert (await db.get_by_id(ids[0])).status == LetterStatus.OPENED

    async def test_persistence_outage_propagates(self, notifier):
        class BrokenStore:
            async def find_due_scheduled(self, now, limit):
                raise OperationalError("SELECT", {}, Exception("db down"))

        with pytest.raises(OperationalError):
            await SweepService(store=BrokenStore(), notifier=notifier).process_scheduled(NOW)


class TestProcessRecurring:
    async def make_recurring(self, db, cadence="yearly", anchor=datetime(2024, 3, 15, 12, 0), opened=True, **fields):
        letter = await db.create_letter(
            unlock_at=anchor,
            created_at=anchor - timedelta(days=1),
            is_recurring=True,
            recurring_type=cadence,
            recipient_email="reader@example.com",
            sender_name="Ana",
            **fields
        )
        if opened:
            letter = await db.mark_opened(letter.id, anchor + timedelta(days=1))
        return letter

    async def test_yearly_anniversary_notifies_without_mutation(self, db, notifier):
        letter = await self.make_recurring(db)

        result = await SweepService(store=db, notifier=notifier).process_recurring(NOW)

        assert result.processed == 1
        assert result.notified == 1
        assert notifier.calls[0]["kind"] == NotificationKind.RECURRING
        after = await db.get_by_id(letter.id)
        assert after.status == LetterStatus.OPENED
        assert after.unlock_at == letter.unlock_at

    async def test_second_run_same_day_is_skipped(self, db, notifier):
        await self.make_recurring(db, letter_id="r1")
        service = SweepService(store=db, notifier=notifier)

        first = await service.process_recurring(NOW)
        second = await service.process_recurring(NOW + timedelta(hours=2))

        assert first.processed == 1
        assert second.skipped is True
        assert len(notifier.calls) == 1

        forced = await service.process_recurring(NOW + timedelta(hours=3), force=True)
        assert forced.processed == 1
        assert len(notifier.calls) == 2

    async def test_not_due_on_other_days(self, db, notifier):
        await self.make_recurring(db)
        result = await SweepService(store=db, notifier=notifier).process_recurring(NOW + timedelta(days=1))
        assert result.skipped is False
        assert result.due == 0
        assert notifier.calls == []

    async def test_monthly(self, db, notifier):
        await self.make_recurring(db, cadence="monthly")
        service = SweepService(store=db, notifier=notifier)
        result = await service.process_recurring(datetime(2024, 4, 15, 8, 0))
        assert result.notified == 1

    async def test_failure_is_collected(self, db):
        letter = await self.make_recurring(db)
        service = SweepService(store=db, notifier=FakeNotifier(fail_ids=[letter.id]))

        result = await service.process_recurring(NOW)

        assert result.processed == 0
        assert result.failed == 1
        assert (await db.get_by_id(letter.id)).status == LetterStatus.OPENED

    async def test_sealed_recurring_left_to_scheduled_sweep(self, db, notifier):
        letter = await self.make_recurring(db, opened=False)
        service = SweepService(store=db, notifier=notifier)

        recurring = await service.process_recurring(NOW)
        assert recurring.due == 0

        scheduled = await service.process_scheduled(NOW)
        assert scheduled.processed == 1
        assert (await db.get_by_id(letter.id)).status == LetterStatus.DELIVERED

    async def test_failed_run_does_not_burn_the_day(self, db, notifier):
        await self.make_recurring(db)

        class FlakyStore:
            def __init__(self, store):
                self.store = store
                self.failures = 1

            def __getattr__(self, name):
                return getattr(self.store, name)

            async def find_recurring(self):
                if self.failures:
                    self.failures -= 1
                    raise OperationalError("SELECT", {}, Exception("db down"))
                return await self.store.find_recurring()

        service = SweepService(store=FlakyStore(db), notifier=notifier)

        with pytest.raises(OperationalError):
            await service.process_recurring(NOW)

        retry = await service.process_recurring(NOW + timedelta(minutes=5))
        assert retry.skipped is False
        assert retry.notified == 1
        assert (await service.process_recurring(NOW + timedelta(hours=1))).skipped is True
