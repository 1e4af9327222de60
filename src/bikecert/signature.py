from collections.abc import Sequence

from nacl.exceptions import CryptoError

from bikecert.constants import SIGNATURE_SIZE
from bikecert.crypto_utils import AuthorityKey, load_verify_key, verify_signature
from bikecert.logging import get_logger
from bikecert.report import Finding, Level, Section

logger = get_logger("bikecert.signature")


def _finding(level: Level, message: str, *details: str) -> Finding:
    return Finding(level=level, section=Section.STRUCTURE, message=message, details=list(details))


def check_signature(
    signature: bytes, payload: bytes, authority_keys: Sequence[AuthorityKey] = ()
) -> list[Finding]:
    """
    Verifies the envelope signature over the payload bytes against each configured
    authority key in order. With no keys configured the signature can only be
    described, never accepted.
    """
    if len(signature) != SIGNATURE_SIZE:
        return [_finding(Level.ERROR, f"Signature is {len(signature)} bytes, expected {SIGNATURE_SIZE}")]

    if not authority_keys:
        return [
            _finding(
                Level.INFO,
                "Signature unverifiable, no authority key configured",
                f"The signature is a well-formed {SIGNATURE_SIZE} byte Ed25519 signature",
            )
        ]

    findings: list[Finding] = []
    for index, key in enumerate(authority_keys, start=1):
        try:
            verify_key = load_verify_key(key)
        except (ValueError, TypeError, CryptoError) as e:
            findings.append(_finding(Level.WARNING, f"Authority key {index}: invalid format ({e})"))
            continue

        if verify_signature(verify_key, payload, signature):
            logger.debug("signature_verified", key_index=index)
            findings.append(
                _finding(
                    Level.SUCCESS,
                    f"Signature VALID with authority key {index}",
                    f"Authority public key: {verify_key.encode().hex()}",
                )
            )
            return findings

    logger.debug("signature_rejected", keys=len(authority_keys))
    findings.append(_finding(Level.ERROR, "Signature invalid against all configured keys"))
    return findings
