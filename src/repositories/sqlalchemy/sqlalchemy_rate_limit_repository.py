from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IRateLimitRepository

Counter = models.RateLimitCounter

class SqlalchemyRateLimitRepository(IRateLimitRepository):
    """
    읽기-후-쓰기 대신 조건부 UPDATE 한 문장으로 확인과 증가를 동시에 수행합니다.
    같은 요청자의 동시 호출 두 건이 모두 count=19를 읽고 통과하는 경쟁 상태가 생기지 않습니다.
    """
    def __init__(self, db_session: Session):
        self.db = db_session

    def try_consume(self, requester_uid: str, now: datetime, max_calls: int, window: timedelta) -> Optional[int]:
        try:
            return self._consume(requester_uid, now, max_calls, window)
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _consume(self, requester_uid: str, now: datetime, max_calls: int, window: timedelta) -> Optional[int]:
        window_floor = now - window

        # 1. 유효한 윈도우 안에서 한도가 남아 있으면 증가
        result = self.db.execute(
            update(Counter)
            .where(
                Counter.requester_uid == requester_uid,
                Counter.window_start >= window_floor,
                Counter.count < max_calls,
            )
            .values(count=Counter.count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            count = self.db.execute(
                select(Counter.count).where(Counter.requester_uid == requester_uid)
            ).scalar_one()
            self.db.commit()
            return count

        # 2. 윈도우가 만료되었으면 그 자리에서 초기화
        result = self.db.execute(
            update(Counter)
            .where(Counter.requester_uid == requester_uid, Counter.window_start < window_floor)
            .values(count=1, window_start=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            self.db.commit()
            return 1

        # 3. 카운터가 아직 없으면 생성 (동시 생성 충돌은 IntegrityError로 전파)
        exists = self.db.execute(
            select(Counter.requester_uid).where(Counter.requester_uid == requester_uid)
        ).first()
        if exists is None:
            self.db.add(Counter(requester_uid=requester_uid, count=1, window_start=now))
            self.db.commit()
            return 1

        # 유효한 윈도우에서 한도 소진
        self.db.rollback()
        return None
