from .sqlalchemy_profile_repository import SqlalchemyProfileRepository
from .sqlalchemy_auth_account_repository import SqlalchemyAuthAccountRepository
from .sqlalchemy_rate_limit_repository import SqlalchemyRateLimitRepository

__all__ = [
    "SqlalchemyProfileRepository",
    "SqlalchemyAuthAccountRepository",
    "SqlalchemyRateLimitRepository",
]
