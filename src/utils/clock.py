from datetime import datetime, timezone


def utcnow() -> datetime:
    """DB에 저장하는 서버 시각. SQLite 호환을 위해 tzinfo 없는 UTC 시각을 사용합니다."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
