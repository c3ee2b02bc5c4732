"""Key references and key-type compatibility checks.

A key reference takes one of three shapes:
- KeyMaterial: an in-memory RSA, EC, X25519 or X448 key object
- SecretKey: raw secret bytes (symmetric key or PBES2 password)
- ExternalKeyRef: opaque key-service identifier, e.g. a KMS key ARN
"""

from dataclasses import dataclass
from typing import Literal, Union

from cryptography.hazmat.primitives.asymmetric import ec, rsa, x25519, x448

from keymgmt.core.algorithms import (
    AES_GCM_KW_ALGORITHMS,
    AES_KW_ALGORITHMS,
    ECDH_ALGORITHMS,
    PBES2_ALGORITHMS,
    RSA_ALGORITHMS,
    JWEAlgorithm,
    wrap_bit_length,
)
from keymgmt.core.errors import KeyTypeMismatchError, UnsupportedAlgorithmError

KeyUsage = Literal["encrypt", "decrypt"]

PUBLIC_KEY_TYPES = (
    rsa.RSAPublicKey,
    ec.EllipticCurvePublicKey,
    x25519.X25519PublicKey,
    x448.X448PublicKey,
)

PRIVATE_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    x25519.X25519PrivateKey,
    x448.X448PrivateKey,
)

ECDH_KEY_TYPES = (
    ec.EllipticCurvePublicKey,
    ec.EllipticCurvePrivateKey,
    x25519.X25519PublicKey,
    x25519.X25519PrivateKey,
    x448.X448PublicKey,
    x448.X448PrivateKey,
)

RSA_KEY_TYPES = (rsa.RSAPublicKey, rsa.RSAPrivateKey)

SYMMETRIC_ALGORITHMS = (
    {JWEAlgorithm.DIR} | AES_KW_ALGORITHMS | AES_GCM_KW_ALGORITHMS | PBES2_ALGORITHMS
)


@dataclass(frozen=True)
class KeyMaterial:
    """In-memory asymmetric key."""

    key: object

    @property
    def is_private(self) -> bool:
        return isinstance(self.key, PRIVATE_KEY_TYPES)


@dataclass(frozen=True)
class SecretKey:
    """Raw symmetric secret or password."""

    secret: bytes

    def __repr__(self) -> str:
        return f"SecretKey(<{len(self.secret)} bytes>)"


@dataclass(frozen=True)
class ExternalKeyRef:
    """Opaque reference to a key held by an external key service."""

    key_id: str


KeyReference = Union[KeyMaterial, SecretKey, ExternalKeyRef]


def as_key_reference(key, alg: str | None = None) -> KeyReference:
    """Normalize a plain key value into a KeyReference.

    str becomes an ExternalKeyRef, bytes a SecretKey, and a cryptography
    key object a KeyMaterial. KeyReference values pass through.
    """
    if isinstance(key, (KeyMaterial, SecretKey, ExternalKeyRef)):
        return key
    if isinstance(key, str):
        return ExternalKeyRef(key)
    if isinstance(key, (bytes, bytearray, memoryview)):
        return SecretKey(bytes(key))
    if isinstance(key, PUBLIC_KEY_TYPES + PRIVATE_KEY_TYPES):
        return KeyMaterial(key)
    raise KeyTypeMismatchError(f"Unsupported key type: {type(key).__name__}", alg=alg)


def _symmetric_check(alg: JWEAlgorithm, key: KeyReference) -> None:
    if not isinstance(key, SecretKey):
        raise KeyTypeMismatchError(
            f"{alg.value} requires a symmetric key (bytes)", alg=alg.value
        )
    if alg in AES_KW_ALGORITHMS or alg in AES_GCM_KW_ALGORITHMS:
        expected = wrap_bit_length(alg) // 8
        if len(key.secret) != expected:
            raise KeyTypeMismatchError(
                f"{alg.value} requires a {expected}-byte key", alg=alg.value
            )
    if alg in PBES2_ALGORITHMS and not key.secret:
        raise KeyTypeMismatchError(f"{alg.value} requires a non-empty password", alg=alg.value)


def _asymmetric_check(
    alg: JWEAlgorithm,
    key: KeyReference,
    usage: KeyUsage,
    allowed: tuple,
    family: str,
) -> None:
    if not isinstance(key, KeyMaterial) or not isinstance(key.key, allowed):
        raise KeyTypeMismatchError(f"{alg.value} requires {family} key", alg=alg.value)
    if usage == "encrypt" and key.is_private:
        raise KeyTypeMismatchError(
            f'{alg.value} with "encrypt" usage requires a public key', alg=alg.value
        )
    if usage == "decrypt" and not key.is_private:
        raise KeyTypeMismatchError(
            f'{alg.value} with "decrypt" usage requires a private key', alg=alg.value
        )


def check_key_type(alg: JWEAlgorithm, key: KeyReference, usage: KeyUsage) -> None:
    """Validate that a key can be used with an algorithm for a usage.

    Raises:
        KeyTypeMismatchError: Key type, size or usage does not fit the algorithm
        UnsupportedAlgorithmError: Algorithm has no in-memory key rule
    """
    if alg in SYMMETRIC_ALGORITHMS:
        _symmetric_check(alg, key)
    elif alg in RSA_ALGORITHMS:
        _asymmetric_check(alg, key, usage, RSA_KEY_TYPES, "an RSA")
    elif alg in ECDH_ALGORITHMS:
        _asymmetric_check(alg, key, usage, ECDH_KEY_TYPES, "an EC, X25519 or X448")
    else:
        raise UnsupportedAlgorithmError(
            'Invalid or unsupported "alg" (JWE Algorithm) header value', alg=alg.value
        )
