from datetime import datetime, timezone


def utcnow() -> datetime:
    # SQLite drops tzinfo on the way back, so everything is kept naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
