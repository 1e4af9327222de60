"""
Cross-referencing decoded certificate identifiers against the caller's devices.

Matching is exact string equality only. Frame and module serials from the
certificate are treated as independent identifiers, each compared against
every serial a device record carries.
"""

import hmac
import re
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bikecert.crypto_utils import parse_public_key_b64
from bikecert.formatting import format_uuid, normalize_uuid_text, to_b64
from bikecert.payload import CertificateFields
from bikecert.report import Finding, Level, Section
from bikecert.validators import is_valid_serial

_NUMERIC_ID = re.compile(r"[0-9]+")


def is_numeric_id(value: str) -> bool:
    return _NUMERIC_ID.fullmatch(value) is not None


class DeviceRecord(BaseModel):
    device_id: int = Field(alias="id")
    name: str = ""
    frame_number: str = Field(default="", alias="frameNumber")
    frame_serial: str = Field(default="", alias="frameSerial")
    module_serial: str = Field(default="", alias="mainEcuSerial")
    ble_profile: str = Field(default="", alias="bleProfile")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def serials(self) -> list[tuple[str, str]]:
        """(field, serial) pairs in tie-break order, empty serials skipped."""
        pairs = [
            ("frame number", self.frame_number),
            ("frame serial", self.frame_serial),
            ("module serial", self.module_serial),
        ]
        return [(field, serial) for field, serial in pairs if serial]

    def matching_field(self, identifier: str | None) -> str | None:
        if not identifier:
            return None
        for field, serial in self.serials():
            if serial == identifier:
                return field
        return None


def load_inventory(document: Any) -> list[DeviceRecord]:
    """Accepts the account API document ({"data": {"bikes": [...]}}) or a bare list."""
    if isinstance(document, dict):
        data = document.get("data")
        document = data.get("bikes") if isinstance(data, dict) else None
    if not isinstance(document, list):
        raise ValueError("Inventory must be a list of devices or an account document")
    return [DeviceRecord.model_validate(entry) for entry in document]


def _finding(level: Level, section: Section, message: str, *details: str) -> Finding:
    return Finding(level=level, section=section, message=message, details=list(details))


def find_device(
    fields: CertificateFields, inventory: Sequence[DeviceRecord]
) -> tuple[DeviceRecord, str, str] | None:
    """First record matching either decoded serial, with the matched field and identifier."""
    identifiers = [i for i in (fields.frame_id, fields.device_module_id) if i]
    for device in inventory:
        for identifier in identifiers:
            field = device.matching_field(identifier)
            if field is not None:
                return device, field, identifier
    return None


def inventory_note(identifier: str | None, inventory: Sequence[DeviceRecord]) -> str:
    if not identifier or not inventory:
        return ""
    if any(device.matching_field(identifier) for device in inventory):
        return "(matches inventory)"
    return "(not found in inventory)"


def check_inventory(
    fields: CertificateFields, inventory: Sequence[DeviceRecord]
) -> list[Finding]:
    if not inventory:
        return []

    match = find_device(fields, inventory)
    if match is not None:
        device, field, identifier = match
        return [
            _finding(
                Level.SUCCESS,
                Section.INVENTORY,
                "Certificate is VALID for an inventory device",
                f"Matched device ID: {device.device_id}",
                f"Device name: {device.name}",
                f"Frame number: {device.frame_number}",
                f"Matched on {field}: {identifier}",
            )
        ]

    listing = "; ".join(
        f"ID {d.device_id}: " + ", ".join(serial for _, serial in d.serials()) for d in inventory
    )
    return [
        _finding(
            Level.WARNING,
            Section.INVENTORY,
            "Certificate does NOT match any inventory device",
            f"Certificate frame ID: {fields.frame_id or ''}",
            f"Certificate module ID: {fields.device_module_id or ''}",
            f"Inventory devices: {listing}",
        )
    ]


def _device_owns_certificate(device: DeviceRecord, fields: CertificateFields) -> bool:
    identifiers = [i for i in (fields.frame_id, fields.device_module_id) if i]
    if not identifiers:
        return False
    return all(device.matching_field(identifier) is not None for identifier in identifiers)


def check_target(
    target: str, fields: CertificateFields, inventory: Sequence[DeviceRecord]
) -> list[Finding]:
    section = Section.TARGET
    target = target.strip()
    frame_id = fields.frame_id or ""
    module_id = fields.device_module_id or ""

    if not is_numeric_id(target):
        findings = []
        if not is_valid_serial(target):
            findings.append(
                _finding(Level.WARNING, section, f"Device ID '{target}' has invalid serial format")
            )
        if target and target in (frame_id, module_id):
            findings.append(_finding(Level.SUCCESS, section, f"Device ID verified (serial): {target}"))
        else:
            findings.append(
                _finding(
                    Level.ERROR,
                    section,
                    f"Device ID NOT found: {target}",
                    f"Certificate frame ID: {frame_id}, module ID: {module_id}",
                )
            )
        return findings

    try:
        device_id = int(target)
    except ValueError:
        # past the interpreter's int conversion limit, so no record can carry it
        return [
            _finding(
                Level.ERROR,
                section,
                f"Device ID not found: numeric ID has {len(target)} digits",
            )
        ]
    if not inventory:
        return [
            _finding(
                Level.INFO,
                section,
                f"Cannot verify numeric device ID {device_id} (no inventory available)",
            )
        ]

    device = next((d for d in inventory if d.device_id == device_id), None)
    if device is None:
        ids = ", ".join(str(d.device_id) for d in inventory)
        return [
            _finding(
                Level.ERROR,
                section,
                f"Device ID {device_id} not found in inventory",
                f"Inventory device IDs: {ids}",
            )
        ]

    if _device_owns_certificate(device, fields):
        return [
            _finding(
                Level.SUCCESS,
                section,
                f"Device ID verified: {device.device_id} ({device.frame_number})",
                "Certificate matches device from inventory",
            )
        ]
    serials = ", ".join(serial for _, serial in device.serials())
    return [
        _finding(
            Level.ERROR,
            section,
            "Device ID mismatch",
            f"Inventory device {device.device_id} has serials: {serials}",
            f"Certificate frame ID: {frame_id}, module ID: {module_id}",
        )
    ]


def check_public_key(expected: str, fields: CertificateFields) -> list[Finding]:
    section = Section.PUBLIC_KEY
    try:
        expected_key = parse_public_key_b64(expected)
    except ValueError as e:
        return [_finding(Level.ERROR, section, f"Expected public key is invalid: {e}")]

    embedded = fields.public_key
    if embedded is None:
        return [_finding(Level.ERROR, section, "Certificate carries no public key to compare")]
    if hmac.compare_digest(embedded, expected_key):
        return [_finding(Level.SUCCESS, section, "Public key matches the certificate")]
    return [
        _finding(
            Level.ERROR,
            section,
            "Public key mismatch",
            f"Expected: {to_b64(expected_key)}",
            f"Certificate: {to_b64(embedded)}",
        )
    ]


def check_owner(expected: str, fields: CertificateFields) -> list[Finding]:
    section = Section.OWNER
    user_id = fields.user_id
    if user_id is None:
        return [_finding(Level.ERROR, section, "Certificate carries no user ID to compare")]

    if normalize_uuid_text(expected) == user_id.hex():
        return [_finding(Level.SUCCESS, section, f"Owner ID verified: {expected}")]
    return [
        _finding(
            Level.ERROR,
            section,
            "Owner ID mismatch",
            f"Expected: {expected}",
            f"Certificate: {format_uuid(user_id)}",
        )
    ]
