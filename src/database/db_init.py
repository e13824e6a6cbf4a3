import uuid

from loguru import logger

from src.context import AppContext
from src.database.database import Base
from src.database import models
from src.services.identity_service import hash_password
from src.services.roles import ADMIN


def initialize_db(context: AppContext):
    """
    테이블을 생성하고, 설정된 경우 최초 관리자 계정을 만듭니다.

    관리자는 프로필과 토큰 클레임 양쪽에 Admin 역할을 가진 상태로 생성되므로
    별도의 역할 부여 없이 바로 다른 사용자의 역할을 바꿀 수 있습니다.
    """
    logger.info("DB 초기화 중 (SQLAlchemy 사용)...")

    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=context.engine)
    logger.info("테이블 생성 완료.")

    settings = context.settings
    if not (settings.admin_email and settings.admin_password):
        return

    admin_email = settings.admin_email.strip().lower()
    db = context.session_factory()
    try:
        if db.query(models.AuthAccount).filter(models.AuthAccount.email == admin_email).first():
            logger.info("관리자 계정이 이미 존재합니다. 초기화를 건너뜁니다.")
            return

        uid = uuid.uuid4().hex
        db.add(models.AuthAccount(
            uid=uid,
            email=admin_email,
            password_hash=hash_password(settings.admin_password),
            disabled=False,
            custom_claims={"role": ADMIN},
        ))
        db.add(models.Profile(uid=uid, email=admin_email, role=ADMIN, is_active=True))
        db.commit()
        logger.info(f"관리자 계정 생성 완료: {admin_email} ({uid})")

    except Exception:
        logger.exception("관리자 계정 생성 중 오류 발생")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == '__main__':
    from src.config import Settings, configure_logging

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    context = AppContext.create(settings)
    try:
        initialize_db(context)
    finally:
        context.close()
