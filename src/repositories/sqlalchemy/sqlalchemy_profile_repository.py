from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IProfileRepository

class SqlalchemyProfileRepository(IProfileRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, profile_model: models.Profile) -> models.Profile:
        self.db.add(profile_model)
        self.db.commit()
        self.db.refresh(profile_model)
        return profile_model

    def find_by_uid(self, uid: str) -> Optional[models.Profile]:
        return self.db.query(models.Profile).filter(models.Profile.uid == uid).first()

    def list_all(self) -> List[models.Profile]:
        return self.db.query(models.Profile).order_by(models.Profile.email.asc()).all()

    def merge_role(self, uid: str, role: str, modified_at: datetime) -> models.Profile:
        profile = self.find_by_uid(uid)
        if profile is None:
            # 문서 저장소의 merge 쓰기처럼, 없으면 두 필드만으로 생성
            profile = models.Profile(uid=uid, is_active=True)
            self.db.add(profile)
        profile.role = role
        profile.last_modified = modified_at
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def set_active(self, profile: models.Profile, is_active: bool, modified_at: datetime) -> models.Profile:
        profile.is_active = is_active
        profile.last_modified = modified_at
        self.db.commit()
        self.db.refresh(profile)
        return profile
