from sqlalchemy import Column, String, Boolean, DateTime, JSON, func
from ..database import Base

class AuthAccount(Base):
    """
    인증 서브시스템의 계정을 나타냅니다.
    토큰 발급 시 custom_claims가 토큰 본문에 그대로 복사되므로,
    여기의 role은 다음 토큰 재발급 전까지 토큰과 다를 수 있습니다.
    """
    __tablename__ = "auth_accounts"
    uid = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    disabled = Column(Boolean, nullable=False, default=False)
    custom_claims = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())
