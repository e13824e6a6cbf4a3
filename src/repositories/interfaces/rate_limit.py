from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

class IRateLimitRepository(ABC):
    @abstractmethod
    def try_consume(self, requester_uid: str, now: datetime, max_calls: int, window: timedelta) -> Optional[int]:
        """
        요청자의 카운터를 원자적으로 확인하고 1 증가시킵니다.

        윈도우가 만료되었으면 window_start를 now로, count를 1로 초기화합니다.
        카운터가 없으면 count=1로 생성합니다.

        Returns:
            증가 후의 count. 현재 윈도우의 한도를 이미 소진했다면 None.
        """
        pass
