"""
페이지 진입 시 유효 역할(effective role)을 계산하고 접근을 허용하거나 다른 페이지로 보냅니다.

토큰은 같은 세션 안에서 프로필 변경보다 오래 살아남을 수 있으므로, 로그인 화면뿐 아니라
역할별 페이지마다 맨 앞에서 같은 검사를 다시 수행해야 합니다.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx
import jwt
from loguru import logger

from src.client.session import AuthSession

LOGIN_PAGE = "/login"
UNAUTHORIZED_PAGE = "/unauthorized"

# 유효 역할(소문자) -> 해당 역할의 기본 페이지
ROLE_HOME = {
    "admin": "/dashboard",
    "teamadmin": "/teamadmin",
    "master": "/tasks",
    "executive": "/tasks",
}

# 페이지 -> 접근 가능한 유효 역할
PAGE_ROLES = {
    "/dashboard": frozenset({"admin"}),
    "/teamadmin": frozenset({"teamadmin"}),
    "/tasks": frozenset({"master", "executive"}),
}


def resolve_effective_role(claims_role: Optional[str], profile_role: Optional[str]) -> str:
    """클레임 역할이 있으면 항상 우선합니다. 둘 다 없으면 빈 문자열. 비교용으로 소문자로 접습니다."""
    return (claims_role or profile_role or "").lower()


def home_page_for(effective_role: str) -> str:
    return ROLE_HOME.get(effective_role, UNAUTHORIZED_PAGE)


class AccessState(str, Enum):
    AUTHORIZED = "authorized"
    REDIRECTED = "redirected"
    # 조회 도중 로그아웃되어 결과를 버림
    DISCARDED = "discarded"


@dataclass(frozen=True)
class PageAccess:
    state: AccessState
    effective_role: str = ""
    location: Optional[str] = None

    @classmethod
    def authorized(cls, effective_role: str) -> "PageAccess":
        return cls(AccessState.AUTHORIZED, effective_role)

    @classmethod
    def redirect(cls, location: str, effective_role: str = "") -> "PageAccess":
        return cls(AccessState.REDIRECTED, effective_role, location)


class RoleGuard:
    def __init__(self, session: AuthSession):
        self.session = session

    async def check(self, page: Optional[str] = None) -> PageAccess:
        """
        현재 세션으로 page에 들어갈 수 있는지 판정합니다.

        Args:
            page: 보호된 페이지 경로. None이면 로그인 직후처럼 역할별 기본 페이지로 보냅니다.

        Returns:
            AUTHORIZED(렌더링), REDIRECTED(location으로 이동), DISCARDED(도중에 로그아웃됨) 중 하나.
        """
        if not self.session.is_authenticated:
            return PageAccess.redirect(LOGIN_PAGE)

        try:
            uid = self.session.uid
        except jwt.PyJWTError as e:
            logger.warning(f"[GUARD] Unreadable token; signing out: {e}")
            await self.session.sign_out()
            return PageAccess.redirect(LOGIN_PAGE)

        generation = self.session.generation
        claims_role, profile = await asyncio.gather(self._read_claims_role(), self._fetch_profile(uid))

        if self.session.generation != generation:
            logger.debug(f"[GUARD] Discarding resolution for {uid}; session changed mid-flight")
            return PageAccess(AccessState.DISCARDED)

        # 비활성 사용자는 역할과 무관하게 로그아웃
        if profile is not None and profile.get("isActive") is False:
            logger.info(f"[GUARD] {uid} is deactivated; signing out")
            await self.session.sign_out()
            return PageAccess.redirect(LOGIN_PAGE)

        effective_role = resolve_effective_role(claims_role, profile.get("role") if profile else None)
        logger.debug(
            f"[GUARD] claimsRole={claims_role}, profileRole={profile.get('role') if profile else None}, "
            f"effectiveRole={effective_role}"
        )

        if page is not None and effective_role in PAGE_ROLES.get(page, ()):
            return PageAccess.authorized(effective_role)
        return PageAccess.redirect(home_page_for(effective_role), effective_role)

    async def _read_claims_role(self) -> Optional[str]:
        try:
            return await self.session.get_claims_role()
        except jwt.PyJWTError as e:
            logger.warning(f"[GUARD] Could not read token claims: {e}")
            return None

    async def _fetch_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.session.fetch_profile(uid)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            # 프로필 조회 실패는 막지 않고 클레임만으로 판단
            logger.warning(f"[GUARD] Profile fetch failed for {uid}; falling back to claims: {e}")
            return None
