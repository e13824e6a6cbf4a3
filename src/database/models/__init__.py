from .profile import Profile
from .auth_account import AuthAccount
from .rate_limit import RateLimitCounter

__all__ = ["Profile", "AuthAccount", "RateLimitCounter"]
