import base64
import unittest

import pytest
from parameterized import parameterized

from bikecert.envelope import Envelope, decode_certificate_text, split_envelope
from bikecert.errors import CertificateError, MalformedInputError, TooShortError


class TestDecodeCertificateText(unittest.TestCase):
    def test_decodes_standard_base64(self):
        self.assertEqual(decode_certificate_text(base64.b64encode(b"abc").decode()), b"abc")

    def test_ignores_surrounding_whitespace(self):
        self.assertEqual(decode_certificate_text("  YWJj\n"), b"abc")

    @parameterized.expand([("lf", "YWJj\nZGVm"), ("crlf", "YWJj\r\nZGVm\r\n")])
    def test_skips_line_breaks(self, _name, text):
        self.assertEqual(decode_certificate_text(text), b"abcdef")

    @parameterized.expand(
        [
            ("empty", ""),
            ("blank", "   "),
            ("bad_alphabet", "not*base64!"),
            ("bad_padding", "YWJ"),
            ("non_ascii", "YWJjé"),
            ("inner_space", "YWJj ZGVm"),
        ]
    )
    def test_rejects_malformed_text(self, _name, text):
        with pytest.raises(MalformedInputError):
            decode_certificate_text(text)

    def test_malformed_input_is_a_certificate_error(self):
        with pytest.raises(CertificateError):
            decode_certificate_text("")


class TestSplitEnvelope(unittest.TestCase):
    @parameterized.expand([(0,), (1,), (63,), (64,), (100,), (133,)])
    def test_too_short(self, length):
        with pytest.raises(TooShortError) as exc:
            split_envelope(b"\x00" * length)

        self.assertEqual(exc.value.length, length)
        self.assertEqual(exc.value.minimum, 134)
        self.assertIn("too short", str(exc.value))

    def test_minimum_length_is_accepted(self):
        raw = bytes(range(64)) + b"\xaa" * 70

        envelope = split_envelope(raw)

        self.assertIsInstance(envelope, Envelope)
        self.assertEqual(envelope.signature, bytes(range(64)))
        self.assertEqual(envelope.payload, b"\xaa" * 70)
        self.assertEqual(envelope.size, 134)

    def test_payload_is_everything_after_the_signature(self):
        raw = b"\x01" * 64 + b"\x02" * 200

        envelope = split_envelope(raw)

        self.assertEqual(len(envelope.signature), 64)
        self.assertEqual(len(envelope.payload), 200)
        self.assertEqual(envelope.signature + envelope.payload, raw)
