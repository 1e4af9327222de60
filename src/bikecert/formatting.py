import base64
from datetime import datetime, timedelta, timezone

from bikecert.constants import USER_ID_SIZE


def to_hex(data: bytes) -> str:
    return data.hex()


def to_b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def format_uuid(data: bytes) -> str:
    """Hyphenated 8-4-4-4-12 form; anything that is not 16 bytes is shown as plain hex."""
    if len(data) != USER_ID_SIZE:
        return data.hex()
    h = data.hex()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def uuid_version(data: bytes) -> int:
    if len(data) != USER_ID_SIZE:
        return 0
    return data[6] >> 4


def normalize_uuid_text(text: str) -> str:
    return "".join(c for c in text if c != "-" and not c.isspace()).lower()


def format_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_duration(seconds: int) -> str:
    return str(timedelta(seconds=seconds))
