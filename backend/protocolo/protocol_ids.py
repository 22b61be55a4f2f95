from datetime import datetime

PROTOCOL_ID_LENGTH = 17


def generate_protocol_id(now: datetime | None = None) -> str:
    """Return ``YYYYMMDDHHMMSSmmm`` for ``now`` (local wall clock by default).

    Ids sort in creation order as long as no two are generated within the
    same millisecond; a clash surfaces as a primary-key violation on insert.
    """
    now = now or datetime.now()
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"


def is_protocol_id(value: str) -> bool:
    return isinstance(value, str) and len(value) == PROTOCOL_ID_LENGTH and value.isdigit()
