"""
Payload decoding.

The payload following the signature is a CBOR map keyed by short strings.
Keys were renamed between format revisions ("fm"/"bm" became "f"/"b"), so
every key is optional here and all semantic judgement is left to the
validators. Type problems on known keys are recorded per field instead of
failing the decode, so a partially broken certificate still gets a report.

An older revision used a fixed-offset layout instead of CBOR. That decoder
lives separately in decode_legacy_payload and is only ever used on request.
"""

import io
from typing import Any, Callable, Literal

import cbor2
from pydantic import BaseModel, ConfigDict, Field

from bikecert.constants import SERIAL_SIZE, UINT8_MAX, UINT32_MAX
from bikecert.errors import PayloadDecodeError
from bikecert.logging import get_logger

logger = get_logger("bikecert.payload")

LEGACY_PAYLOAD_SIZE = 4 + SERIAL_SIZE + 4 + 1 + 16 + 32

# Logical field -> wire keys, current revision first
WIRE_KEYS: dict[str, tuple[str, ...]] = {
    "id": ("i",),
    "frame_id": ("f", "fm"),
    "device_module_id": ("b", "bm"),
    "expiry": ("e",),
    "role": ("r",),
    "user_id": ("u",),
    "public_key": ("p",),
}

FIELD_LABELS: dict[str, str] = {
    "id": "Certificate ID",
    "frame_id": "Frame ID",
    "device_module_id": "Device module ID",
    "expiry": "Expiry",
    "role": "Role",
    "user_id": "User ID",
    "public_key": "Public key",
}


class CertificateFields(BaseModel):
    id: int | None = None
    frame_id: str | None = None
    device_module_id: str | None = None
    expiry: int | None = None
    role: int | None = None
    user_id: bytes | None = None
    public_key: bytes | None = None


class DecodedPayload(BaseModel):
    fields: CertificateFields
    layout: Literal["cbor", "legacy"] = "cbor"
    # logical fields whose wire key was present, whatever its type
    present: set[str] = Field(default_factory=set)
    field_errors: dict[str, str] = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)
    raw: dict[Any, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)


def _type_name(value: Any) -> str:
    return type(value).__name__


def _uint(maximum: int) -> Callable[[Any], int]:
    def coerce(value: Any) -> int:
        # bool is an int subclass, but never a valid wire integer here
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected unsigned integer, got {_type_name(value)}")
        if value < 0 or value > maximum:
            raise TypeError(f"value {value} does not fit in {maximum.bit_length()} bits")
        return value

    return coerce


def _serial(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("ascii")
        except UnicodeDecodeError:
            raise TypeError("byte string is not ASCII") from None
    raise TypeError(f"expected string, got {_type_name(value)}")


def _bytes(value: Any) -> bytes:
    if not isinstance(value, bytes):
        raise TypeError(f"expected bytes, got {_type_name(value)}")
    return value


COERCERS: dict[str, Callable[[Any], Any]] = {
    "id": _uint(UINT32_MAX),
    "frame_id": _serial,
    "device_module_id": _serial,
    "expiry": _uint(UINT32_MAX),
    "role": _uint(UINT8_MAX),
    "user_id": _bytes,
    "public_key": _bytes,
}


def _loads_single_map(payload: bytes) -> dict[Any, Any]:
    fp = io.BytesIO(payload)
    try:
        item = cbor2.CBORDecoder(fp).decode()
    except (
        cbor2.CBORDecodeError,
        ValueError,
        TypeError,
        OverflowError,
        RecursionError,
        MemoryError,
    ) as e:
        raise PayloadDecodeError(f"Payload is not well-formed CBOR: {e}") from e

    if not isinstance(item, dict):
        raise PayloadDecodeError(f"Payload is a CBOR {_type_name(item)}, expected a map")
    trailing = len(payload) - fp.tell()
    if trailing:
        raise PayloadDecodeError(f"Payload has {trailing} trailing byte(s) after the CBOR map")
    return item


def fields_from_map(raw: dict[Any, Any]) -> DecodedPayload:
    values: dict[str, Any] = {}
    present: set[str] = set()
    errors: dict[str, str] = {}
    claimed: set[str] = set()

    for name, keys in WIRE_KEYS.items():
        for key in keys:
            if key not in raw:
                continue
            claimed.add(key)
            present.add(name)
            try:
                values[name] = COERCERS[name](raw[key])
            except TypeError as e:
                errors[name] = f"Field '{name}' ({key}) has incorrect type: {e}"
            break

    extra = {
        (k if isinstance(k, str) else repr(k)): v for k, v in raw.items() if k not in claimed
    }
    return DecodedPayload(
        fields=CertificateFields(**values),
        present=present,
        field_errors=errors,
        extra=extra,
        raw=raw,
    )


def decode_payload(payload: bytes) -> DecodedPayload:
    raw = _loads_single_map(payload)
    decoded = fields_from_map(raw)
    logger.debug(
        "payload_decoded",
        layout="cbor",
        present=sorted(decoded.present),
        field_errors=len(decoded.field_errors),
        extra_keys=sorted(decoded.extra),
    )
    return decoded


def decode_legacy_payload(payload: bytes) -> DecodedPayload:
    """
    Fixed-offset layout of the older format revision, big-endian:

        id (4) | frame serial (13, ASCII) | expiry (4) | role (1) | user id (16) | public key (32)

    There is no device module serial in this layout.
    """
    if len(payload) < LEGACY_PAYLOAD_SIZE:
        raise PayloadDecodeError(
            f"Payload is {len(payload)} bytes, legacy layout needs {LEGACY_PAYLOAD_SIZE}"
        )

    offset = 0

    def take(n: int) -> bytes:
        nonlocal offset
        chunk = payload[offset : offset + n]
        offset += n
        return chunk

    values: dict[str, Any] = {"id": int.from_bytes(take(4), "big")}
    errors: dict[str, str] = {}
    try:
        values["frame_id"] = _serial(take(SERIAL_SIZE).rstrip(b"\x00 "))
    except TypeError as e:
        errors["frame_id"] = f"Field 'frame_id' (legacy) has incorrect type: {e}"
    values["expiry"] = int.from_bytes(take(4), "big")
    values["role"] = take(1)[0]
    values["user_id"] = take(16)
    values["public_key"] = take(32)

    extra: dict[str, Any] = {}
    if offset < len(payload):
        extra["_trailing"] = payload[offset:]

    present = set(values) | set(errors)
    logger.debug("payload_decoded", layout="legacy", trailing=len(payload) - offset)
    return DecodedPayload(
        fields=CertificateFields(**values),
        layout="legacy",
        present=present,
        field_errors=errors,
        extra=extra,
        raw={},
    )
