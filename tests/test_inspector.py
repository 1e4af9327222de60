import base64
import contextlib
import io
import os
import unittest

import cbor2
from parameterized import parameterized

from builders import (
    AUTHORITY_KEY,
    FRAME_SERIAL,
    HOLDER_PUBLIC_KEY,
    MODULE_SERIAL,
    NOW,
    USER_UUID,
    b64,
    legacy_payload,
    make_certificate,
    make_fields,
)
from bikecert import DeviceRecord, Level, Section, Verdict, inspect_certificate


def pad_to(fields, size):
    """Adds an unknown field so the whole envelope is exactly `size` bytes."""
    fields = {**fields, "x": b""}
    pad = size - len(cbor2.dumps(fields)) - 64
    fields["x"] = b"\x00" * pad
    while len(cbor2.dumps(fields)) + 64 > size:
        pad -= 1
        fields["x"] = b"\x00" * pad
    return fields


class TestEndToEnd(unittest.TestCase):
    def test_valid_certificate_without_authority_keys(self):
        fields = pad_to(make_fields(e=NOW + 86400, r=0x07), 200)
        encoded = make_certificate(fields)
        self.assertEqual(len(base64.b64decode(encoded)), 200)

        report = inspect_certificate(encoded, now=NOW)

        self.assertEqual(report.verdict, Verdict.VALID)
        self.assertTrue(report.usable)
        self.assertEqual(report.error_count, 0)
        self.assertEqual(report.warning_count, 0)
        infos = report.at(Level.INFO)
        self.assertEqual(len(infos), 1)
        self.assertIn("unverifiable", infos[0].message)
        self.assertIn("no authority key configured", infos[0].message)

    def test_expired_certificate(self):
        fields = pad_to(make_fields(e=NOW - 3600, r=0x07), 200)

        report = inspect_certificate(make_certificate(fields), now=NOW)

        self.assertEqual(report.verdict, Verdict.INVALID)
        self.assertFalse(report.usable)
        errors = report.at(Level.ERROR)
        self.assertEqual(len(errors), 1)
        self.assertIn("expired", errors[0].message)
        self.assertIn("3600 s", errors[0].message)

    def test_warnings_only(self):
        report = inspect_certificate(make_certificate(make_fields(r=0x02)), now=NOW)

        self.assertEqual(report.verdict, Verdict.VALID_WITH_WARNINGS)
        self.assertTrue(report.usable)

    def test_signed_by_configured_authority(self):
        report = inspect_certificate(
            make_certificate(), authority_keys=[AUTHORITY_KEY.verify_key], now=NOW
        )

        self.assertEqual(report.verdict, Verdict.VALID)
        self.assertEqual(len(report.at(Level.SUCCESS)), 1)
        self.assertEqual(report.at(Level.INFO), [])

    def test_forged_signature(self):
        report = inspect_certificate(
            make_certificate(signing_key=None), authority_keys=[AUTHORITY_KEY.verify_key], now=NOW
        )

        self.assertEqual(report.verdict, Verdict.INVALID)
        self.assertIn("invalid against all configured keys", report.at(Level.ERROR)[0].message)

    def test_missing_fields_continue_to_completion(self):
        report = inspect_certificate(make_certificate(make_fields(i=None, u=None)), now=NOW)

        self.assertIsNone(report.halt)
        self.assertEqual(report.error_count, 2)
        self.assertTrue(report.fields)

    def test_every_check_requested(self):
        inventory = [
            DeviceRecord(
                device_id=5, name="Mine", frame_number=FRAME_SERIAL, module_serial=MODULE_SERIAL
            )
        ]

        report = inspect_certificate(
            make_certificate(),
            expected_public_key=b64(b"\x00" + HOLDER_PUBLIC_KEY),
            target_device_id="5",
            expected_owner_id=USER_UUID,
            inventory=inventory,
            now=NOW,
        )

        self.assertEqual(report.verdict, Verdict.VALID)
        sections = [f.section for f in report.findings if f.level == Level.SUCCESS]
        self.assertEqual(
            sections, [Section.INVENTORY, Section.TARGET, Section.PUBLIC_KEY, Section.OWNER]
        )

    def test_findings_are_in_section_order(self):
        report = inspect_certificate(
            make_certificate(make_fields(r=0x02)),
            expected_public_key=b64(b"\x09" * 32),
            target_device_id="5",
            expected_owner_id="00000000-0000-4000-8000-000000000000",
            now=NOW,
        )

        sections = [f.section for f in report.findings]
        self.assertEqual(sections, sorted(sections))

    def test_mismatches_are_errors(self):
        report = inspect_certificate(
            make_certificate(),
            expected_public_key=b64(b"\x09" * 32),
            expected_owner_id="00000000-0000-4000-8000-000000000000",
            now=NOW,
        )

        self.assertEqual(report.error_count, 2)
        self.assertEqual(report.verdict, Verdict.INVALID)

    def test_numeric_target_without_inventory_is_not_counted(self):
        report = inspect_certificate(make_certificate(), target_device_id="5", now=NOW)

        self.assertEqual(report.verdict, Verdict.VALID)
        self.assertEqual(report.warning_count, 0)
        self.assertIn("Cannot verify", report.at(Level.INFO)[-1].message)

    def test_numeric_target_too_long_to_convert(self):
        report = inspect_certificate(
            make_certificate(),
            target_device_id="9" * 5000,
            inventory=[DeviceRecord(device_id=1)],
            now=NOW,
        )

        self.assertIsNone(report.halt)
        self.assertEqual(report.verdict, Verdict.INVALID)
        self.assertEqual(report.at(Level.ERROR)[0].section, Section.TARGET)

    @parameterized.expand([("lf", "\n"), ("crlf", "\r\n")])
    def test_line_wrapped_certificate(self, _name, newline):
        encoded = make_certificate()
        wrapped = newline.join(encoded[i : i + 76] for i in range(0, len(encoded), 76))
        self.assertIn(newline, wrapped)

        report = inspect_certificate(wrapped, now=NOW)

        self.assertIsNone(report.halt)
        self.assertEqual(report.verdict, Verdict.VALID)


class TestHalts(unittest.TestCase):
    @parameterized.expand([(0,), (1,), (64,), (133,)])
    def test_too_short(self, length):
        report = inspect_certificate(b64(os.urandom(length)) if length else "AA==", now=NOW)

        self.assertEqual(report.halt, "too_short")
        self.assertEqual(report.verdict, Verdict.INVALID)
        self.assertEqual(report.fields, [])
        self.assertEqual(len(report.findings), 1)
        self.assertIn("too short", report.findings[0].message)

    @parameterized.expand([("empty", ""), ("bad", "%%%"), ("padding", "YWJ")])
    def test_malformed_input(self, _name, text):
        report = inspect_certificate(text)

        self.assertEqual(report.halt, "malformed_input")
        self.assertEqual(report.error_count, 1)
        self.assertEqual(report.fields, [])

    def test_decode_error_keeps_earlier_findings(self):
        payload = cbor2.dumps([1, 2, 3]) + b"\x00" * 80

        report = inspect_certificate(make_certificate(payload=payload), now=NOW)

        self.assertEqual(report.halt, "decode_error")
        self.assertEqual([f.level for f in report.findings], [Level.INFO, Level.ERROR])
        self.assertEqual(report.fields, [])

    @parameterized.expand([(seed,) for seed in range(8)])
    def test_random_input_never_raises(self, seed):
        raw = bytes((seed * 31 + i * 7) % 256 for i in range(64 + 40 * seed))

        report = inspect_certificate(
            b64(raw),
            expected_public_key=b64(HOLDER_PUBLIC_KEY),
            target_device_id="1",
            expected_owner_id=USER_UUID,
            authority_keys=[AUTHORITY_KEY.verify_key],
            verbose=True,
            allow_legacy_layout=True,
        )

        self.assertIsNotNone(report.verdict)
        self.assertTrue(report.render())


class TestLegacyLayout(unittest.TestCase):
    def test_decode_error_without_fallback(self):
        report = inspect_certificate(make_certificate(payload=legacy_payload()), now=NOW)

        self.assertEqual(report.halt, "decode_error")

    def test_fallback(self):
        report = inspect_certificate(
            make_certificate(payload=legacy_payload()), allow_legacy_layout=True, now=NOW
        )

        self.assertIsNone(report.halt)
        self.assertEqual(report.error_count, 0)
        warnings = report.at(Level.WARNING)
        self.assertEqual(len(warnings), 1)
        self.assertIn("legacy", warnings[0].message)
        self.assertEqual(report.verdict, Verdict.VALID_WITH_WARNINGS)


class TestVerbose(unittest.TestCase):
    def test_verbose_adds_only_info(self):
        encoded = make_certificate(make_fields(x=1))

        quiet = inspect_certificate(encoded, now=NOW)
        loud = inspect_certificate(encoded, verbose=True, now=NOW)

        self.assertEqual(quiet.error_count, loud.error_count)
        self.assertEqual(quiet.warning_count, loud.warning_count)
        self.assertEqual(quiet.verdict, loud.verdict)
        self.assertGreater(len(loud.at(Level.INFO)), len(quiet.at(Level.INFO)))
        messages = [f.message for f in loud.at(Level.INFO)]
        self.assertIn("Unknown field in certificate: 'x' = 1", messages)
        self.assertTrue(any(m.startswith("Total certificate length") for m in messages))
        self.assertTrue(any(m.startswith("Raw CBOR map") for m in messages))


class TestFieldDisplay(unittest.TestCase):
    def test_rows(self):
        inventory = [DeviceRecord(device_id=5, frame_number=FRAME_SERIAL)]

        report = inspect_certificate(make_certificate(), inventory=inventory, now=NOW)

        rows = {row.label: row for row in report.fields}
        self.assertEqual(rows["Certificate ID"].value, "42")
        self.assertEqual(rows["AFM (Authorized Frame Module)"].note, "(matches inventory)")
        self.assertEqual(rows["ABM (Authorized Device Module)"].note, "(not found in inventory)")
        self.assertEqual(rows["Access Level"].value, "Owner (Full Control)")
        self.assertEqual(rows["User ID"].value, USER_UUID)
        self.assertEqual(rows["User ID"].note, "(valid UUID v4)")
        self.assertEqual(rows["Embedded Public Key (Base64)"].value, b64(HOLDER_PUBLIC_KEY))
        self.assertIn("(Unix: 1760086400)", rows["Certificate Expiry"].value)

    def test_missing_values(self):
        report = inspect_certificate(make_certificate(make_fields(r=None, p=None)), now=NOW)

        rows = {row.label: row.value for row in report.fields}
        self.assertEqual(rows["Access Level"], "(missing)")
        self.assertEqual(rows["Embedded Public Key (Base64)"], "(missing)")


class TestLibraryOutput(unittest.TestCase):
    @parameterized.expand([("complete", make_certificate()), ("halted", "AA==")])
    def test_nothing_written_to_stdout(self, _name, encoded):
        out = io.StringIO()

        with contextlib.redirect_stdout(out):
            inspect_certificate(encoded, verbose=True, now=NOW)

        self.assertEqual(out.getvalue(), "")
