from typing import Final

# Ed25519
SIGNATURE_SIZE: Final = 64
PUBLIC_KEY_SIZE: Final = 32

# 64 byte signature followed by at least the 70 byte legacy payload
MIN_CERTIFICATE_SIZE: Final = 134

USER_ID_SIZE: Final = 16

# 1 letter model prefix + 5 letters + 5 digits + 2 letters
SERIAL_PATTERN: Final = r"^[A-Z]{6}\d{5}[A-Z]{2}$"
SERIAL_SIZE: Final = 13

MAX_EXPIRY_HORIZON: Final = 365 * 24 * 60 * 60

UINT8_MAX: Final = 0xFF
UINT32_MAX: Final = 0xFFFFFFFF

ROLE_LABELS: Final[dict[int, str]] = {
    0x00: "Guest (Read-Only Access)",
    0x01: "Limited Access",
    0x03: "Owner (Standard Access)",
    0x07: "Owner (Full Control)",
    0x0F: "Service/Admin (Extended Permissions)",
}
