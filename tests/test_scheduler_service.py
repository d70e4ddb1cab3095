"""Tests for pisma.services.scheduler_service."""

from __future__ import annotations

import pytest

from pisma.config import settings
from pisma.schemas.sweep_schemas import SweepResult
from pisma.services import scheduler_service as scheduler_module
from pisma.services.scheduler_service import SchedulerService


def test_register_jobs():
    service = SchedulerService()
    service.register_jobs()
    jobs = {job.id: job for job in service.scheduler.get_jobs()}
    assert set(jobs) == {"process_scheduled", "process_recurring"}
    assert jobs["process_scheduled"].max_instances == 1


def test_start_disabled(monkeypatch):
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    service = SchedulerService()
    service.start()
    assert service.scheduler.running is False
    service.stop()


@pytest.mark.anyio
async def test_jobs_swallow_sweep_errors(monkeypatch):
    class ExplodingSweeps:
        async def process_scheduled(self):
            raise RuntimeError("boom")

        async def process_recurring(self):
            return SweepResult(job="process_recurring", skipped=True)

    monkeypatch.setattr(scheduler_module, "sweep_service", ExplodingSweeps())
    service = SchedulerService()

    await service.process_scheduled_job()
    await service.process_recurring_job()
