from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from src.repositories.interfaces import IRateLimitRepository
from src.utils.clock import utcnow


class DenialReason(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    CHECK_FAILED = "check_failed"


@dataclass(frozen=True)
class RateLimitDecision:
    """
    한도 확인 결과입니다. Allowed와 Denied(reason) 두 가지 형태만 가집니다.

    한도 초과와 저장소 장애는 모두 호출을 막지만, 로그에서 구분할 수 있도록 reason을 남깁니다.
    """
    allowed: bool
    count: Optional[int] = None
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls, count: int) -> "RateLimitDecision":
        return cls(allowed=True, count=count)

    @classmethod
    def deny(cls, reason: DenialReason) -> "RateLimitDecision":
        return cls(allowed=False, reason=reason)


class RateLimiter:
    """요청자별 고정 길이 롤링 윈도우 한도를 적용합니다. 어떤 오류든 거부로 처리합니다(fail closed)."""

    def __init__(
        self,
        rate_limit_repo: IRateLimitRepository,
        max_calls: int = 20,
        window: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.rate_limit_repo = rate_limit_repo
        self.max_calls = max_calls
        self.window = window
        self.clock = clock

    def check(self, requester_uid: str) -> RateLimitDecision:
        try:
            count = self.rate_limit_repo.try_consume(requester_uid, self.clock(), self.max_calls, self.window)
        except Exception as e:
            logger.opt(exception=e).error(f"[RATE_LIMIT] Counter check failed for {requester_uid}; denying")
            return RateLimitDecision.deny(DenialReason.CHECK_FAILED)

        if count is None:
            logger.warning(f"[RATE_LIMIT] Quota of {self.max_calls} per {self.window} exhausted for {requester_uid}")
            return RateLimitDecision.deny(DenialReason.QUOTA_EXCEEDED)

        logger.debug(f"[RATE_LIMIT] {requester_uid} at {count}/{self.max_calls}")
        return RateLimitDecision.allow(count)
