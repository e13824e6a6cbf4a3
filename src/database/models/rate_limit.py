from sqlalchemy import Column, Integer, String, DateTime
from ..database import Base

class RateLimitCounter(Base):
    """
    요청자별 역할 변경 호출 횟수 카운터입니다.
    첫 호출 시 생성되며, 윈도우가 만료되면 그 자리에서 초기화될 뿐 삭제되지 않습니다.
    """
    __tablename__ = "rate_limit_counters"
    requester_uid = Column(String, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    window_start = Column(DateTime, nullable=False)
