from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> str:
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def to_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_unix(seconds: int | float) -> str:
    return to_timestamp(datetime.fromtimestamp(seconds, tz=timezone.utc))


def normalize(value: str | None) -> str | None:
    """Bring a client-supplied ISO date or datetime into the stored format.

    Stored timestamps are compared as strings, so everything persisted must
    share one layout.
    """
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return to_timestamp(parsed)
