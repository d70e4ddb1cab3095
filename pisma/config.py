# pisma/config.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="allow")

    # MySQL
    mysql_host: str = "localhost"
    mysql_port: int = 3306
    mysql_user: str = "pisma"
    mysql_password: str = ""
    mysql_database: str = "pisma"

    # 직접 지정하면 mysql_* 설정보다 우선 (테스트는 sqlite+aiosqlite 사용)
    database_url: Optional[str] = None

    # SMTP (smtp_host 가 없으면 알림 발송을 건너뜀)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: str = "Pisma <letters@pisma.app>"
    smtp_timeout: int = 60
    app_base_url: str = "http://localhost:3000"

    # Sweep Settings
    scheduled_batch_size: int = 50  # 한 번의 예약 스윕에서 처리할 최대 편지 수
    notification_timeout_seconds: float = 30.0
    scheduled_sweep_minutes: int = 5
    recurring_sweep_hour: int = 8
    scheduler_enabled: bool = True

    # 외부 cron 트리거 인증 (설정 시 Bearer 토큰 필요)
    cron_secret: Optional[str] = None

    # App Settings
    debug: bool = False
    log_level: str = "INFO"

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"mysql+aiomysql://{self.mysql_user}:{self.mysql_password}@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}"

settings = Settings()
