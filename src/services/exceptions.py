# src/services/exceptions.py

# --- Auth Exceptions ---
class TokenInvalidError(Exception):
    """Bearer 토큰이 없거나, 서명이 틀렸거나, 만료되었을 때"""
    pass

class AuthenticationError(Exception):
    """사용자 자격 증명 실패 시"""
    pass

# --- Validation Exceptions ---
class InvalidParameterError(ValueError):
    """요청 파라미터가 없거나 형식이 잘못되었을 때"""
    pass

class UserCreationError(Exception):
    """사용자 등록 실패 시 (이메일 중복 등)"""
    pass

class MethodNotAllowedError(Exception):
    """경로는 존재하지만 HTTP 메서드가 맞지 않을 때"""
    pass

# --- Authorization Exceptions ---
class PermissionDeniedError(Exception):
    """요청자의 권한이 부족할 때"""
    pass

class RateLimitExceededError(Exception):
    """요청자가 호출 한도를 초과했거나, 한도 확인 자체에 실패했을 때"""
    pass

# --- Target Exceptions ---
class TargetNotFoundError(Exception):
    """역할을 부여할 대상 계정이 인증 시스템에 없을 때"""
    pass

class TargetDisabledError(Exception):
    """역할을 부여할 대상 계정이 비활성화(disabled) 상태일 때"""
    pass

class ProfileNotFoundError(Exception):
    """프로필을 찾을 수 없을 때"""
    pass

# --- Internal Exceptions ---
class RoleAssignmentError(Exception):
    """역할 저장 중 저장소 오류가 발생했을 때. 메시지는 호출자에게 노출해도 안전해야 합니다."""
    pass
