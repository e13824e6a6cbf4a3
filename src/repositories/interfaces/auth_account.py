from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from src.database import models

class IAuthAccountRepository(ABC):
    @abstractmethod
    def create(self, account_model: models.AuthAccount) -> models.AuthAccount:
        """새로운 인증 계정을 생성합니다."""
        pass

    @abstractmethod
    def find_by_uid(self, uid: str) -> Optional[models.AuthAccount]:
        """사용자 ID로 인증 계정을 조회합니다."""
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[models.AuthAccount]:
        """이메일로 인증 계정을 조회합니다."""
        pass

    @abstractmethod
    def set_custom_claims(self, account: models.AuthAccount, claims: Dict[str, Any]) -> models.AuthAccount:
        """계정의 custom claims 전체를 주어진 값으로 교체합니다. 병합은 호출자의 책임입니다."""
        pass

    @abstractmethod
    def set_disabled(self, account: models.AuthAccount, disabled: bool) -> models.AuthAccount:
        """계정의 비활성화(disabled) 상태를 변경합니다."""
        pass
