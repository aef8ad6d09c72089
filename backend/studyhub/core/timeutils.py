from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    """Serialise a timestamp for the wire.

    SQLite hands back naive datetimes even for timezone-aware columns; those
    are always written as UTC here, so they are tagged as such.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
