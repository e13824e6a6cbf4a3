from datetime import datetime
from typing import Any, Callable, Dict

from loguru import logger

from src.repositories.interfaces import IAuthAccountRepository, IProfileRepository
from src.services.exceptions import (
    InvalidParameterError, PermissionDeniedError, RateLimitExceededError,
    RoleAssignmentError, TargetDisabledError, TargetNotFoundError
)
from src.services.rate_limiter import RateLimiter
from src.services.roles import ALLOWED_ROLES, is_admin
from src.utils.clock import utcnow


class RoleAssignmentService:
    """
    관리자가 대상 사용자의 역할을 변경하는 서비스입니다.

    역할은 두 곳에 저장됩니다. 프로필이 영속적인 원본이고, 인증 계정의 custom claims는
    다음 토큰 갱신 때 반영되는 비정규화된 캐시입니다. 두 저장소를 묶는 트랜잭션은 없으므로
    프로필을 먼저 쓰고 클레임을 나중에 쓰며, 클레임 쓰기가 실패해도 프로필은 되돌리지 않습니다.

    같은 대상에 대한 동시 호출은 마지막으로 완료된 호출이 이깁니다(last-write-wins).
    클레임 병합도 읽기-덮어쓰기 구조라 같은 경쟁이 있지만, 최종 상태는 마지막 호출로 결정됩니다.
    """

    def __init__(
        self,
        profile_repo: IProfileRepository,
        auth_repo: IAuthAccountRepository,
        rate_limiter: RateLimiter,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        RoleAssignmentService를 초기화합니다.

        Args:
            profile_repo: 요청자 권한 확인과 대상 프로필 갱신에 사용하는 리포지토리.
            auth_repo: 대상 계정 존재/비활성화 확인과 custom claims 병합에 사용하는 리포지토리.
            rate_limiter: 요청자별 호출 한도.
            clock: last_modified에 기록할 서버 시각.
        """
        self.profile_repo = profile_repo
        self.auth_repo = auth_repo
        self.rate_limiter = rate_limiter
        self.clock = clock

    def assign_role(self, requester: Dict[str, Any], uid: Any, role: Any) -> Dict[str, str]:
        """
        대상 사용자의 역할을 변경합니다. 아래 검사를 순서대로 통과해야만 쓰기가 일어납니다.

        Args:
            requester: 검증된 토큰의 클레임. 요청 본문이 아닌 토큰에서만 요청자를 식별합니다.
            uid: 대상 사용자 ID.
            role: 부여할 역할. ALLOWED_ROLES 중 하나와 정확히 일치해야 합니다.

        Returns:
            대상 ID와 새 역할을 담은 딕셔너리.

        Raises:
            InvalidParameterError: uid/role이 없거나, 문자열이 아니거나, 허용되지 않은 역할일 때.
            RateLimitExceededError: 요청자가 한도를 초과했거나 한도 확인에 실패했을 때.
            PermissionDeniedError: 요청자가 프로필과 클레임 어느 쪽으로도 Admin이 아닐 때.
            TargetNotFoundError: 대상 계정이 없을 때.
            TargetDisabledError: 대상 계정이 비활성화되었을 때.
            RoleAssignmentError: 프로필 또는 클레임 저장에 실패했을 때.
        """
        requester_uid = requester.get("uid")
        uid, role = self._validate_params(uid, role)

        decision = self.rate_limiter.check(requester_uid)
        if not decision.allowed:
            logger.warning(f"[ASSIGN_ROLE] Throttled {requester_uid} ({decision.reason.value})")
            raise RateLimitExceededError("Too many role assignment requests. Try again later.")

        requester_profile = self.profile_repo.find_by_uid(requester_uid)
        profile_role = requester_profile.role if requester_profile else None
        if not is_admin(profile_role, requester.get("role")):
            logger.warning(
                f"[ASSIGN_ROLE] Permission denied for {requester_uid} "
                f"(profile role={profile_role}, claims role={requester.get('role')})"
            )
            raise PermissionDeniedError("Only Admins can assign roles.")

        account = self.auth_repo.find_by_uid(uid)
        if not account:
            raise TargetNotFoundError(f"User '{uid}' not found.")
        if account.disabled:
            raise TargetDisabledError(f"User '{uid}' is disabled; roles cannot be assigned to disabled accounts.")

        # 1단계: 프로필 (원본)
        try:
            self.profile_repo.merge_role(uid, role, self.clock())
        except Exception as e:
            logger.opt(exception=e).error(f"[ASSIGN_ROLE] Profile write failed for {uid} (role={role}, by={requester_uid})")
            raise RoleAssignmentError("Failed to update the user's profile role.")

        # 2단계: 클레임 (캐시) - 기존 클레임을 보존하고 role만 덮어씀
        claims = dict(account.custom_claims or {})
        claims["role"] = role
        try:
            self.auth_repo.set_custom_claims(account, claims)
        except Exception as e:
            logger.opt(exception=e).error(
                f"[ASSIGN_ROLE] Partial failure: profile of {uid} now {role} but claims were not updated "
                f"(by={requester_uid}); claims stay stale until the assignment is retried"
            )
            raise RoleAssignmentError(
                "Profile role was updated but token claims could not be synchronized. Retry the assignment."
            )

        logger.info(f"[ASSIGN_ROLE] {requester_uid} set role of {uid} to {role} (call {decision.count} in window)")
        return {"uid": uid, "role": role}

    @staticmethod
    def _validate_params(uid: Any, role: Any):
        if not isinstance(uid, str) or not isinstance(role, str) or not uid.strip() or not role.strip():
            raise InvalidParameterError("Missing parameters. Expected { uid, role }")
        uid, role = uid.strip(), role.strip()
        if role not in ALLOWED_ROLES:
            raise InvalidParameterError(f"Invalid role. Allowed: {', '.join(ALLOWED_ROLES)}")
        return uid, role
