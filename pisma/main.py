# pisma/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pisma import __version__
from pisma.api import cron, letter
from pisma.services.scheduler_service import scheduler_service
from pisma.services.database_service import database_service
from pisma.utils.logger import setup_logger
from pisma.config import settings
import uvicorn

# 로거 설정
logger = setup_logger()


app = FastAPI(
    title="Pisma Delivery Service",
    description="시간 잠금 편지 전달 스케줄러 - 예약/반복 편지 스윕 및 열람 처리",
    version=__version__,
    debug=settings.debug
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 실제 배포시에는 특정 도메인으로 제한
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_event():
    """앱 시작시 초기화"""
    logger.info(" Pisma Delivery Service 시작")
    logger.info(f" Debug 모드: {settings.debug}")

    # 데이터베이스 테이블 생성 (필요시)
    try:
        await database_service.create_tables()
        logger.info("🗄️ 데이터베이스 초기화 완료")
    except Exception as e:
        logger.warning(f" 데이터베이스 초기화 실패: {e}")

    # 스케줄러 시작 (예약/반복 편지)
    scheduler_service.start()

@app.on_event("shutdown")
async def shutdown_event():
    """앱 종료시 정리"""
    logger.info(" Pisma Delivery Service 종료")
    scheduler_service.stop()
    await database_service.close()


# 라우터 등록
app.include_router(letter.router, prefix="/api")
app.include_router(cron.router, prefix="/api")

@app.get("/")
async def root():
    return {
        "service": "Pisma Delivery Service",
        "version": __version__,
        "status": "running",
        "features": [
            "시간 잠금 편지",
            "예약 전달 스윕",
            "반복(매년/매월) 알림"
        ]
    }

@app.get("/health")
async def health_check():
    database_ok = await database_service.ping()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": database_ok,
        "scheduler": {
            "enabled": settings.scheduler_enabled,
            "running": scheduler_service.scheduler.running
        },
        "smtp_configured": bool(settings.smtp_host)
    }

if __name__ == "__main__":
    uvicorn.run(
        "pisma.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
