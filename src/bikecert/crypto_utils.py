import base64
import binascii
from typing import TypeAlias

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from bikecert.constants import PUBLIC_KEY_SIZE, SIGNATURE_SIZE

PublicKeyBytes: TypeAlias = bytes
Signature: TypeAlias = bytes
AuthorityKey: TypeAlias = VerifyKey | bytes | str


def b64decode_strict(text: str) -> bytes:
    """Standard alphabet, padding required. Line breaks are skipped."""
    return base64.b64decode(text.strip().replace("\r", "").replace("\n", ""), validate=True)


def strip_key_prefix(key: bytes) -> PublicKeyBytes:
    """Some clients prepend a single 0x00 byte to the raw Ed25519 public key."""
    if len(key) == PUBLIC_KEY_SIZE:
        return key
    if len(key) == PUBLIC_KEY_SIZE + 1 and key[0] == 0x00:
        return key[1:]
    raise ValueError(
        f"Expected a {PUBLIC_KEY_SIZE} byte Ed25519 public key "
        f"(or {PUBLIC_KEY_SIZE + 1} bytes with a 0x00 prefix), got {len(key)} bytes"
    )


def parse_public_key_b64(text: str) -> PublicKeyBytes:
    try:
        raw = b64decode_strict(text)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Public key is not valid base64: {e}") from e
    return strip_key_prefix(raw)


def is_valid_public_key_b64(text: str) -> bool:
    try:
        parse_public_key_b64(text)
        return True
    except ValueError:
        return False


def load_verify_key(key: AuthorityKey) -> VerifyKey:
    """Accepts a VerifyKey, 32 raw bytes, 64 hex characters or base64 text."""
    if isinstance(key, VerifyKey):
        return key
    if isinstance(key, bytes):
        return VerifyKey(strip_key_prefix(key))

    text = key.strip()
    if len(text) == PUBLIC_KEY_SIZE * 2:
        try:
            return VerifyKey(bytes.fromhex(text))
        except ValueError:
            pass
    return VerifyKey(parse_public_key_b64(text))


def verify_signature(verify_key: VerifyKey, payload: bytes, signature: Signature) -> bool:
    if len(signature) != SIGNATURE_SIZE:
        return False
    try:
        verify_key.verify(payload, signature)
        return True
    except (BadSignatureError, CryptoError):
        return False


def generate_keypair() -> tuple[str, str]:
    """Returns (private, public) base64 keys, the private one in the 64 byte seed||public form."""
    signing_key = SigningKey.generate()
    verify_key = signing_key.verify_key
    private = signing_key.encode() + verify_key.encode()
    return base64.b64encode(private).decode(), base64.b64encode(verify_key.encode()).decode()
