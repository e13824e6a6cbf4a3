from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.database import models

class IProfileRepository(ABC):
    @abstractmethod
    def create(self, profile_model: models.Profile) -> models.Profile:
        """새로운 프로필을 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_uid(self, uid: str) -> Optional[models.Profile]:
        """사용자 ID로 프로필을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Profile]:
        """모든 프로필의 목록을 조회합니다."""
        pass

    @abstractmethod
    def merge_role(self, uid: str, role: str, modified_at: datetime) -> models.Profile:
        """
        프로필의 role과 last_modified만 갱신합니다. 다른 필드는 건드리지 않습니다.
        프로필이 없으면 두 필드만 가진 프로필을 새로 만듭니다.
        """
        pass

    @abstractmethod
    def set_active(self, profile: models.Profile, is_active: bool, modified_at: datetime) -> models.Profile:
        """프로필의 활성 상태를 변경합니다."""
        pass
