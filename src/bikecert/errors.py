class CertificateError(ValueError):
    """Base class for failures that stop a certificate from being inspected at all."""


class MalformedInputError(CertificateError):
    pass


class TooShortError(CertificateError):
    def __init__(self, length: int, minimum: int) -> None:
        super().__init__(f"Certificate is too short ({length} bytes, need at least {minimum})")
        self.length = length
        self.minimum = minimum


class PayloadDecodeError(CertificateError):
    pass
