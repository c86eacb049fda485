from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now, comparable with the naive datetimes Motor returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
