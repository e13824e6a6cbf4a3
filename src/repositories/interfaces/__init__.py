from .profile import IProfileRepository
from .auth_account import IAuthAccountRepository
from .rate_limit import IRateLimitRepository

__all__ = ["IProfileRepository", "IAuthAccountRepository", "IRateLimitRepository"]
