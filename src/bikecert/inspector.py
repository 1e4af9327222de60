"""
Certificate inspection pipeline.

    base64 text -> envelope split -> signature check -> payload decode
    -> field validation -> field display -> inventory / target / key / owner checks

Only three things stop the pipeline early: input that is not base64, a
buffer shorter than the minimum certificate size, and a payload that cannot
be decoded. Everything else becomes a finding in the report. Nothing raised
by the stages escapes inspect_certificate; a halted run still returns every
finding collected up to the halt.
"""

from collections.abc import Sequence

from bikecert.crypto_utils import AuthorityKey
from bikecert.envelope import Envelope, decode_certificate_text, split_envelope
from bikecert.errors import CertificateError, MalformedInputError, PayloadDecodeError, TooShortError
from bikecert.formatting import format_timestamp, format_uuid, to_b64, to_hex, uuid_version
from bikecert.inventory import (
    DeviceRecord,
    check_inventory,
    check_owner,
    check_public_key,
    check_target,
    inventory_note,
)
from bikecert.logging import get_logger
from bikecert.payload import DecodedPayload, decode_legacy_payload, decode_payload
from bikecert.report import Halt, Level, Section, ValidationReport
from bikecert.signature import check_signature
from bikecert.validators import is_valid_serial, is_valid_uuid, role_label, validate_fields

logger = get_logger("bikecert.inspector")

MISSING = "(missing)"


def _halt(report: ValidationReport, reason: Halt, error: CertificateError) -> ValidationReport:
    report.add(Level.ERROR, Section.STRUCTURE, str(error))
    report.halt = reason
    logger.warning("inspection_halted", reason=reason, error=str(error))
    return report


def _describe_envelope(report: ValidationReport, raw: bytes, envelope: Envelope) -> None:
    info = Level.INFO
    report.add(info, Section.STRUCTURE, f"Decoded certificate (hex): {to_hex(raw)}")
    report.add(
        info,
        Section.STRUCTURE,
        f"Signature is {len(envelope.signature)} bytes (Ed25519 signature)",
        f"Base64: {to_b64(envelope.signature)}",
        f"R component (first 32 bytes): {to_hex(envelope.signature[:32])}",
        f"S component (last 32 bytes):  {to_hex(envelope.signature[32:])}",
    )
    report.add(
        info,
        Section.STRUCTURE,
        f"Payload length: {len(envelope.payload)} bytes",
        f"Payload (hex): {to_hex(envelope.payload)}",
    )


def _describe_payload(report: ValidationReport, decoded: DecodedPayload) -> None:
    if decoded.raw:
        report.add(Level.INFO, Section.STRUCTURE, f"Raw CBOR map: {decoded.raw!r}")
    for key, value in decoded.extra.items():
        report.add(Level.INFO, Section.STRUCTURE, f"Unknown field in certificate: '{key}' = {value!r}")


def _serial_note(serial: str, inventory: Sequence[DeviceRecord]) -> str:
    if not is_valid_serial(serial):
        return "(invalid format)"
    return inventory_note(serial, inventory) or "(valid format)"


def _show_fields(
    report: ValidationReport,
    envelope: Envelope,
    decoded: DecodedPayload,
    inventory: Sequence[DeviceRecord],
) -> None:
    fields = decoded.fields

    report.show("Signature (Base64)", to_b64(envelope.signature))
    if decoded.layout == "legacy":
        report.show("Payload layout", "legacy fixed-offset")
    # changes with every certificate, it is not the device's account ID
    report.show("Certificate ID", MISSING if fields.id is None else str(fields.id))

    for label, serial in (
        ("AFM (Authorized Frame Module)", fields.frame_id),
        ("ABM (Authorized Device Module)", fields.device_module_id),
    ):
        if serial is None:
            report.show(label, MISSING)
        else:
            report.show(label, serial, _serial_note(serial, inventory) if serial else "")

    if fields.expiry is None:
        report.show("Certificate Expiry", MISSING)
    else:
        report.show("Certificate Expiry", f"{format_timestamp(fields.expiry)} (Unix: {fields.expiry})")

    report.show("Access Level", MISSING if fields.role is None else role_label(fields.role))

    if fields.user_id is None:
        report.show("User ID", MISSING)
    elif is_valid_uuid(fields.user_id):
        report.show("User ID", format_uuid(fields.user_id), f"(valid UUID v{uuid_version(fields.user_id)})")
    else:
        report.show("User ID", format_uuid(fields.user_id), "(invalid UUID)")

    report.show(
        "Embedded Public Key (Base64)",
        MISSING if fields.public_key is None else to_b64(fields.public_key),
    )


def inspect_certificate(
    encoded: str,
    *,
    expected_public_key: str | None = None,
    target_device_id: str | None = None,
    expected_owner_id: str | None = None,
    inventory: Sequence[DeviceRecord] | None = None,
    authority_keys: Sequence[AuthorityKey] | None = None,
    verbose: bool = False,
    allow_legacy_layout: bool = False,
    now: int | None = None,
) -> ValidationReport:
    report = ValidationReport()
    inventory = list(inventory or [])

    try:
        raw = decode_certificate_text(encoded)
    except MalformedInputError as e:
        return _halt(report, "malformed_input", e)

    if verbose:
        report.add(Level.INFO, Section.STRUCTURE, f"Total certificate length: {len(raw)} bytes")

    try:
        envelope = split_envelope(raw)
    except TooShortError as e:
        return _halt(report, "too_short", e)
    logger.debug("envelope_split", size=envelope.size, payload=len(envelope.payload))

    if verbose:
        _describe_envelope(report, raw, envelope)
    report.extend(check_signature(envelope.signature, envelope.payload, authority_keys or ()))

    try:
        decoded = decode_payload(envelope.payload)
    except PayloadDecodeError as e:
        if not allow_legacy_layout:
            return _halt(report, "decode_error", e)
        try:
            decoded = decode_legacy_payload(envelope.payload)
        except PayloadDecodeError as legacy_error:
            return _halt(report, "decode_error", PayloadDecodeError(f"{e}; {legacy_error}"))
        report.add(
            Level.WARNING,
            Section.STRUCTURE,
            "Payload decoded with the legacy fixed-offset layout",
            f"Structured decode failed: {e}",
        )

    if verbose:
        _describe_payload(report, decoded)

    report.extend(validate_fields(decoded, now))
    _show_fields(report, envelope, decoded, inventory)

    fields = decoded.fields
    report.extend(check_inventory(fields, inventory))
    if target_device_id:
        report.extend(check_target(target_device_id, fields, inventory))
    if expected_public_key:
        report.extend(check_public_key(expected_public_key, fields))
    if expected_owner_id:
        report.extend(check_owner(expected_owner_id, fields))

    logger.debug(
        "inspection_complete",
        verdict=report.verdict.value,
        errors=report.error_count,
        warnings=report.warning_count,
    )
    return report
