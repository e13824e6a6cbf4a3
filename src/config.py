"""
src/config.py

환경 변수(.env 포함)에서 읽는 서비스 설정입니다.
"""
import os
import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import dotenv
from loguru import logger


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_url: str = "sqlite:///lead_roles.db"
    token_ttl: timedelta = timedelta(hours=1)
    # CORS 허용 출처는 하나만 둡니다.
    allowed_origin: str = "http://localhost:3000"
    rate_limit_max_calls: int = 20
    rate_limit_window: timedelta = timedelta(hours=1)
    host: str = ""
    port: int = 8000
    log_level: str = "INFO"
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        dotenv.load_dotenv()

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        return cls(
            jwt_secret=jwt_secret,
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            token_ttl=timedelta(seconds=int(os.getenv("TOKEN_TTL_SECONDS", 3600))),
            allowed_origin=os.getenv("ALLOWED_ORIGIN", cls.allowed_origin),
            rate_limit_max_calls=int(os.getenv("RATE_LIMIT_MAX_CALLS", 20)),
            rate_limit_window=timedelta(seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 3600))),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", 8000)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            admin_email=os.getenv("ADMIN_EMAIL") or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
        )


def configure_logging(level: str = "INFO") -> None:
    """프로세스 시작 시 한 번만 호출합니다."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        backtrace=False,
        diagnose=False,
    )
