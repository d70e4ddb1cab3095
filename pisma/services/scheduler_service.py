from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pisma.config import settings
from pisma.services.sweep_service import sweep_service
from pisma.utils.logger import logger

class SchedulerService:
    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        logger.info(" SchedulerService 초기화 완료")

    def register_jobs(self):
        # 겹쳐 실행되지 않도록 max_instances=1, 밀린 실행은 한 번으로 합침
        self.scheduler.add_job(
            func=self.process_scheduled_job,
            trigger=CronTrigger(minute=f"*/{settings.scheduled_sweep_minutes}", timezone="UTC"),
            id='process_scheduled',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.add_job(
            func=self.process_recurring_job,
            trigger=CronTrigger(hour=settings.recurring_sweep_hour, minute=0, timezone="UTC"),
            id='process_recurring',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

    def start(self):
        if not settings.scheduler_enabled:
            logger.info(" 스케줄러 비활성화 (scheduler_enabled=False)")
            return
        try:
            self.register_jobs()
            self.scheduler.start()
            logger.info(" 스케줄러 시작 - 예약/반복 편지 작업 등록")
        except Exception as e:
            logger.error(f" 스케줄러 시작 실패: {e}")

    def stop(self):
        if not self.scheduler.running:
            return
        try:
            self.scheduler.shutdown()
            logger.info(" 스케줄러 종료")
        except Exception as e:
            logger.error(f" 스케줄러 종료 실패: {e}")

    async def process_scheduled_job(self):
        try:
            result = await sweep_service.process_scheduled()
            logger.info(f" 예약 편지 작업 완료: {result.processed}건 처리")
        except Exception as e:
            logger.error(f" 예약 편지 작업 실패: {e}")

    async def process_recurring_job(self):
        try:
            result = await sweep_service.process_recurring()
            if not result.skipped:
                logger.info(f" 반복 편지 작업 완료: {result.processed}건 처리")
        except Exception as e:
            logger.error(f" 반복 편지 작업 실패: {e}")

scheduler_service = SchedulerService()
