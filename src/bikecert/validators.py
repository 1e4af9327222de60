"""
Field validators.

Each check is a pure function over the decoded fields that returns the
findings it produced. None of them halt: a certificate that fails every
check still gets every check.
"""

import re
from datetime import datetime, timezone

from bikecert.constants import (
    MAX_EXPIRY_HORIZON,
    PUBLIC_KEY_SIZE,
    ROLE_LABELS,
    SERIAL_PATTERN,
    USER_ID_SIZE,
)
from bikecert.formatting import format_duration
from bikecert.payload import FIELD_LABELS, WIRE_KEYS, CertificateFields, DecodedPayload
from bikecert.report import Finding, Level, Section

REQUIRED_FIELDS = tuple(WIRE_KEYS)
# the fixed-offset layout never carried a device module serial
LEGACY_REQUIRED_FIELDS = tuple(name for name in REQUIRED_FIELDS if name != "device_module_id")

_SERIAL_RE = re.compile(SERIAL_PATTERN, re.ASCII)


def _error(message: str, *details: str) -> Finding:
    return Finding(level=Level.ERROR, section=Section.STRUCTURE, message=message, details=list(details))


def _warning(message: str, *details: str) -> Finding:
    return Finding(level=Level.WARNING, section=Section.STRUCTURE, message=message, details=list(details))


def is_valid_serial(serial: str) -> bool:
    return bool(serial) and _SERIAL_RE.fullmatch(serial) is not None


def is_valid_uuid(data: bytes) -> bool:
    """RFC 4122 shape: version 1-5 in the high nibble of byte 6, variant 0b10 in byte 8."""
    if len(data) != USER_ID_SIZE:
        return False
    version = data[6] >> 4
    variant = data[8] >> 6
    return 1 <= version <= 5 and variant == 0b10


def role_label(role: int) -> str:
    return ROLE_LABELS.get(role, f"Unknown Role (0x{role:02X})")


def unix_now() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())


def check_presence(decoded: DecodedPayload) -> list[Finding]:
    required = LEGACY_REQUIRED_FIELDS if decoded.layout == "legacy" else REQUIRED_FIELDS
    findings = []
    for name in required:
        if name not in decoded.present:
            keys = "/".join(WIRE_KEYS[name])
            findings.append(_error(f"Missing required field: '{name}' ({keys})"))
    return findings


def check_types(decoded: DecodedPayload) -> list[Finding]:
    findings = [_error(message) for message in decoded.field_errors.values()]

    fields = decoded.fields
    if fields.user_id is not None and len(fields.user_id) != USER_ID_SIZE:
        findings.append(
            _error(
                f"Field 'user_id' has incorrect length "
                f"(expected {USER_ID_SIZE} bytes, got {len(fields.user_id)})"
            )
        )
    if fields.public_key is not None and len(fields.public_key) != PUBLIC_KEY_SIZE:
        findings.append(
            _error(
                f"Field 'public_key' has incorrect length "
                f"(expected {PUBLIC_KEY_SIZE} bytes, got {len(fields.public_key)})"
            )
        )
    return findings


def check_serial(name: str, serial: str | None) -> list[Finding]:
    if serial is None:
        return []
    label = FIELD_LABELS[name]
    if not serial:
        return [_error(f"{label} is empty")]
    if not is_valid_serial(serial):
        return [_warning(f"{label} has invalid format: {serial}")]
    return []


def check_expiry(expiry: int | None, now: int) -> list[Finding]:
    if expiry is None:
        return []
    if expiry == 0:
        return [_error("Certificate has no expiry (timestamp is zero)")]
    if expiry < now:
        elapsed = now - expiry
        return [_error(f"Certificate has expired ({format_duration(elapsed)} ago, {elapsed} s)")]
    if expiry > now + MAX_EXPIRY_HORIZON:
        days = (expiry - now) / 86400
        return [_warning(f"Certificate expiry is suspiciously far in the future ({days:.1f} days)")]
    return []


def check_role(role: int | None) -> list[Finding]:
    if role is None or role in ROLE_LABELS:
        return []
    return [_warning(f"Unknown role value: 0x{role:02X}")]


def check_uuid(user_id: bytes | None) -> list[Finding]:
    # a wrong length is already an error from check_types
    if user_id is None or len(user_id) != USER_ID_SIZE:
        return []
    if not is_valid_uuid(user_id):
        return [_warning("User UUID has invalid version or variant")]
    return []


def validate_fields(decoded: DecodedPayload, now: int | None = None) -> list[Finding]:
    if now is None:
        now = unix_now()
    fields: CertificateFields = decoded.fields
    return [
        *check_presence(decoded),
        *check_types(decoded),
        *check_serial("frame_id", fields.frame_id),
        *check_serial("device_module_id", fields.device_module_id),
        *check_expiry(fields.expiry, now),
        *check_role(fields.role),
        *check_uuid(fields.user_id),
    ]
