import binascii

from pydantic import BaseModel, ConfigDict

from bikecert.constants import MIN_CERTIFICATE_SIZE, SIGNATURE_SIZE
from bikecert.crypto_utils import b64decode_strict
from bikecert.errors import MalformedInputError, TooShortError


class Envelope(BaseModel):
    signature: bytes
    payload: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def size(self) -> int:
        return len(self.signature) + len(self.payload)


def decode_certificate_text(text: str) -> bytes:
    if not text or not text.strip():
        raise MalformedInputError("Certificate string is empty")
    try:
        return b64decode_strict(text)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(f"Certificate is not valid base64: {e}") from e


def split_envelope(raw: bytes) -> Envelope:
    if len(raw) < MIN_CERTIFICATE_SIZE:
        raise TooShortError(len(raw), MIN_CERTIFICATE_SIZE)
    return Envelope(signature=raw[:SIGNATURE_SIZE], payload=raw[SIGNATURE_SIZE:])
