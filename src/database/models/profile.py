from sqlalchemy import Column, String, Boolean, DateTime, func
from ..database import Base

class Profile(Base):
    """
    사용자 한 명당 하나씩 존재하는 프로필 레코드입니다.
    역할(role)과 활성 상태(is_active)의 영속적인 원본(source of truth)입니다.
    삭제하지 않고, 비활성화할 때는 is_active만 False로 바꿉니다.
    """
    __tablename__ = "profiles"
    uid = Column(String, primary_key=True, index=True)
    # 소문자로 정규화되어 저장되지만, 유일성 제약은 두지 않습니다.
    email = Column(String, nullable=True, index=True)
    role = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    last_modified = Column(DateTime, nullable=True)
