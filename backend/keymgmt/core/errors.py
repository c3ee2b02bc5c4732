"""Key management exceptions.

Every failure is terminal for the request that raised it. Nothing is
retried here; retry policy belongs to the caller.
"""


class JOSEError(Exception):
    """Base JOSE key management exception."""

    def __init__(self, message: str, alg: str | None = None):
        super().__init__(message)
        self.alg = alg


class AlgorithmNotAllowedError(JOSEError):
    """A collaborator the algorithm needs (e.g. a KMS accessor) is missing."""

    pass


class UnsupportedAlgorithmError(JOSEError):
    """Algorithm not recognized, or not supported with the given key."""

    pass


class KeyTypeMismatchError(JOSEError):
    """Key type or usage is incompatible with the algorithm."""

    pass


class InvalidParameterError(JOSEError):
    """A key management parameter or CEK override is malformed."""

    pass


class KeyEncryptionError(JOSEError):
    """The underlying primitive failed to encrypt the CEK."""

    pass


class KeyDecryptionError(JOSEError):
    """The underlying primitive failed to recover the CEK."""

    pass


class KMSError(JOSEError):
    """The external key service call failed."""

    pass


class KMSContractError(KMSError):
    """The external key service returned a malformed response."""

    def __init__(self, message: str, field: str, alg: str | None = None):
        super().__init__(message, alg=alg)
        self.field = field
