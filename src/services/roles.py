"""
시스템이 허용하는 역할 목록입니다.

역할 집합은 고정되어 있으며 계층 구조가 없습니다.
저장과 비교는 정규형(대소문자 구분)으로 하고, 화면 라우팅에서만 소문자로 접어서 사용합니다.
"""
from typing import Optional

ADMIN = "Admin"
TEAM_ADMIN = "TeamAdmin"
MASTER = "Master"
EXECUTIVE = "Executive"

ALLOWED_ROLES = (ADMIN, TEAM_ADMIN, MASTER, EXECUTIVE)

# 회원가입 때 스스로 고를 수 있는 역할. Admin은 제외
SELF_DECLARABLE_ROLES = (TEAM_ADMIN, MASTER, EXECUTIVE)

_CANONICAL_BY_FOLDED = {role.lower(): role for role in ALLOWED_ROLES}


def canonical_role(value: Optional[str]) -> Optional[str]:
    """대소문자를 무시하고 허용된 역할의 정규형을 돌려줍니다. 허용되지 않으면 None."""
    if not isinstance(value, str):
        return None
    return _CANONICAL_BY_FOLDED.get(value.strip().lower())


def is_admin(profile_role: Optional[str], claims_role: Optional[str]) -> bool:
    """
    프로필 또는 토큰 클레임 중 하나라도 Admin이면 관리자로 인정합니다.

    프로필에서 강등되었지만 아직 토큰을 갱신하지 않은 관리자도 통과합니다.
    클레임과 프로필이 어긋나는 기간을 허용하기 위한 의도된 동작입니다.
    """
    return profile_role == ADMIN or claims_role == ADMIN
