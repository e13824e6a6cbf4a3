import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

import bcrypt
import jwt
from loguru import logger

from src.database import models
from src.repositories.interfaces import IAuthAccountRepository, IProfileRepository
from src.services.exceptions import (
    AuthenticationError, InvalidParameterError, PermissionDeniedError,
    ProfileNotFoundError, TargetNotFoundError, TokenInvalidError, UserCreationError
)
from src.services.roles import SELF_DECLARABLE_ROLES, canonical_role, is_admin
from src.utils.clock import utcnow

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6

# custom claims로 덮어쓸 수 없는 토큰 필드
RESERVED_CLAIMS = frozenset({"sub", "uid", "email", "iat", "exp", "nbf", "iss", "aud"})

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def hash_password(password: str) -> str:
    # bcrypt는 앞 72바이트만 사용
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False


def profile_to_dict(profile: models.Profile) -> Dict[str, Any]:
    return {
        "uid": profile.uid,
        "email": profile.email,
        "role": profile.role,
        "isActive": profile.is_active is not False,
        "lastModified": profile.last_modified.isoformat() if profile.last_modified else None,
    }


class IdentityService:
    """계정 등록, 토큰 발급/검증, 프로필 조회와 활성 상태 관리를 제공합니다."""

    def __init__(
        self,
        auth_repo: IAuthAccountRepository,
        profile_repo: IProfileRepository,
        jwt_secret: str,
        token_ttl: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        IdentityService를 초기화합니다.

        Args:
            auth_repo: 인증 계정(비밀번호, disabled, custom claims)에 접근하기 위한 리포지토리.
            profile_repo: 프로필(role, is_active)에 접근하기 위한 리포지토리.
            jwt_secret: 토큰 서명 키.
            token_ttl: 발급한 토큰의 유효 기간.
            clock: last_modified에 기록할 서버 시각.
        """
        self.auth_repo = auth_repo
        self.profile_repo = profile_repo
        self.jwt_secret = jwt_secret
        self.token_ttl = token_ttl
        self.clock = clock

    # --- 등록 및 토큰 ---

    def register(self, email: str, password: str, role: str) -> Dict[str, Any]:
        """
        인증 계정과 프로필을 만듭니다. 역할은 사용자가 스스로 선언한 값이며,
        토큰 클레임에는 아직 반영하지 않습니다(관리자가 역할을 부여할 때 동기화됨).

        Raises:
            InvalidParameterError: 이메일, 비밀번호, 역할 중 하나가 유효하지 않거나 Admin을 스스로 선언했을 때.
            UserCreationError: 같은 이메일의 계정이 이미 존재할 때.
        """
        normalized_email = email.strip().lower() if isinstance(email, str) else ""
        if not normalized_email or not _EMAIL_PATTERN.fullmatch(normalized_email):
            raise InvalidParameterError("Please enter a valid email address.")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidParameterError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        declared_role = canonical_role(role)
        if declared_role is None:
            raise InvalidParameterError(f"Invalid role. Allowed: {', '.join(SELF_DECLARABLE_ROLES)}")
        if declared_role not in SELF_DECLARABLE_ROLES:
            # Admin은 최초 관리자 시드나 /assignRole로만 부여됨
            raise InvalidParameterError(f"The {declared_role} role cannot be chosen at registration.")

        if self.auth_repo.find_by_email(normalized_email):
            raise UserCreationError(f"User with email '{normalized_email}' already exists.")

        account = self.auth_repo.create(models.AuthAccount(
            uid=uuid.uuid4().hex,
            email=normalized_email,
            password_hash=hash_password(password),
            disabled=False,
            custom_claims={},
        ))
        self.profile_repo.create(models.Profile(
            uid=account.uid,
            email=normalized_email,
            role=declared_role,
            is_active=True,
        ))
        logger.info(f"[REGISTER] {normalized_email} registered as {declared_role} ({account.uid})")
        return {"uid": account.uid, "email": normalized_email, "role": declared_role}

    def authenticate(self, email: str, password: str) -> Dict[str, str]:
        """
        자격증명을 검증하고, 성공 시 현재 custom claims를 담은 토큰을 발급합니다.

        Raises:
            AuthenticationError: 계정이 없거나, 비밀번호가 틀렸거나, 계정이 비활성화되었을 때.
        """
        normalized_email = email.strip().lower() if isinstance(email, str) else ""
        account = self.auth_repo.find_by_email(normalized_email)
        if not account or not isinstance(password, str) or not verify_password(password, account.password_hash):
            raise AuthenticationError("Invalid email or password.")
        if account.disabled:
            raise AuthenticationError("This account has been disabled.")
        return self._issue_token(account)

    def refresh_token(self, token_data: Dict[str, Any]) -> Dict[str, str]:
        """
        검증된 토큰의 주인에게 새 토큰을 발급합니다. 역할 변경 후 클레임을 반영하는 유일한 경로입니다.

        Raises:
            TokenInvalidError: 계정이 사라졌거나 비활성화되었을 때.
        """
        account = self.auth_repo.find_by_uid(token_data.get("uid", ""))
        if not account or account.disabled:
            raise TokenInvalidError("Account no longer exists or is disabled.")
        return self._issue_token(account)

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        토큰의 서명과 만료를 검증하고, 유효하면 토큰 클레임을 반환합니다.

        Raises:
            TokenInvalidError: 서명이 틀렸거나 만료되었을 때.
        """
        try:
            payload = jwt.decode(
                token, self.jwt_secret, algorithms=[JWT_ALGORITHM], options={"require": ["exp", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            raise TokenInvalidError("Token has expired.")
        except jwt.InvalidTokenError as e:
            logger.info(f"[AUTH] Rejected token: {e}")
            raise TokenInvalidError("Invalid or expired ID token")
        payload.setdefault("uid", payload["sub"])
        return payload

    def _issue_token(self, account: models.AuthAccount) -> Dict[str, str]:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + self.token_ttl
        payload = {k: v for k, v in (account.custom_claims or {}).items() if k not in RESERVED_CLAIMS}
        payload.update({
            "sub": account.uid,
            "uid": account.uid,
            "email": account.email,
            "iat": issued_at,
            "exp": expires_at,
        })
        token = jwt.encode(payload, self.jwt_secret, algorithm=JWT_ALGORITHM)
        return {"token": token, "expires_at": expires_at.isoformat()}

    # --- 프로필 ---

    def get_profile(self, requester: Dict[str, Any], uid: str) -> Dict[str, Any]:
        """
        프로필 하나를 조회합니다. 본인 또는 관리자만 조회할 수 있습니다.

        Raises:
            PermissionDeniedError: 본인도 관리자도 아닐 때.
            ProfileNotFoundError: 해당 ID의 프로필을 찾을 수 없을 때.
        """
        if requester.get("uid") != uid:
            self._require_admin(requester)
        profile = self.profile_repo.find_by_uid(uid)
        if not profile:
            raise ProfileNotFoundError(f"Profile for user '{uid}' not found.")
        return profile_to_dict(profile)

    def list_profiles(self, requester: Dict[str, Any]) -> List[Dict[str, Any]]:
        """모든 프로필의 목록을 조회합니다. (관리자 전용)"""
        self._require_admin(requester)
        return [profile_to_dict(p) for p in self.profile_repo.list_all()]

    def set_active(self, requester: Dict[str, Any], uid: str, is_active: Any) -> Dict[str, Any]:
        """
        프로필을 활성/비활성화합니다. 삭제 대신 이 플래그로 사용자를 막습니다. (관리자 전용)

        Raises:
            InvalidParameterError: is_active가 bool이 아닐 때.
            ProfileNotFoundError: 해당 ID의 프로필을 찾을 수 없을 때.
        """
        self._require_admin(requester)
        if not isinstance(is_active, bool):
            raise InvalidParameterError("Expected { isActive: boolean }")
        profile = self.profile_repo.find_by_uid(uid)
        if not profile:
            raise ProfileNotFoundError(f"Profile for user '{uid}' not found.")
        profile = self.profile_repo.set_active(profile, is_active, self.clock())
        logger.info(f"[PROFILE] {requester.get('uid')} set isActive={is_active} on {uid}")
        return profile_to_dict(profile)

    def set_disabled(self, requester: Dict[str, Any], uid: str, disabled: Any) -> Dict[str, Any]:
        """
        인증 계정을 비활성화/재활성화합니다. 비활성화된 계정은 로그인과 역할 부여 대상에서 제외됩니다. (관리자 전용)

        Raises:
            InvalidParameterError: disabled가 bool이 아닐 때.
            TargetNotFoundError: 해당 ID의 계정이 없을 때.
        """
        self._require_admin(requester)
        if not isinstance(disabled, bool):
            raise InvalidParameterError("Expected { disabled: boolean }")
        account = self.auth_repo.find_by_uid(uid)
        if not account:
            raise TargetNotFoundError(f"User '{uid}' not found.")
        account = self.auth_repo.set_disabled(account, disabled)
        logger.info(f"[AUTH] {requester.get('uid')} set disabled={disabled} on {uid}")
        return {"uid": account.uid, "disabled": account.disabled}

    def _require_admin(self, requester: Dict[str, Any]) -> None:
        profile = self.profile_repo.find_by_uid(requester.get("uid", ""))
        if not is_admin(profile.role if profile else None, requester.get("role")):
            logger.warning(f"[AUTH] {requester.get('uid')} denied admin-only operation")
            raise PermissionDeniedError("Only Admins can perform this action.")
