from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IAuthAccountRepository

class SqlalchemyAuthAccountRepository(IAuthAccountRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, account_model: models.AuthAccount) -> models.AuthAccount:
        self.db.add(account_model)
        self.db.commit()
        self.db.refresh(account_model)
        return account_model

    def find_by_uid(self, uid: str) -> Optional[models.AuthAccount]:
        return self.db.query(models.AuthAccount).filter(models.AuthAccount.uid == uid).first()

    def find_by_email(self, email: str) -> Optional[models.AuthAccount]:
        return self.db.query(models.AuthAccount).filter(models.AuthAccount.email == email).first()

    def set_custom_claims(self, account: models.AuthAccount, claims: Dict[str, Any]) -> models.AuthAccount:
        # JSON 컬럼은 내부 변경을 감지하지 못하므로 항상 새 dict를 대입
        account.custom_claims = dict(claims)
        self.db.commit()
        self.db.refresh(account)
        return account

    def set_disabled(self, account: models.AuthAccount, disabled: bool) -> models.AuthAccount:
        account.disabled = disabled
        self.db.commit()
        self.db.refresh(account)
        return account
