"""JWE algorithm identifiers and CEK generation (RFC 7518).

Key management algorithms:
- Direct: dir
- Key Agreement: ECDH-ES, ECDH-ES+A128KW, ECDH-ES+A192KW, ECDH-ES+A256KW
- Key Encryption: RSA1_5, RSA-OAEP, RSA-OAEP-256, RSA-OAEP-384, RSA-OAEP-512
- Password Based: PBES2-HS256+A128KW, PBES2-HS384+A192KW, PBES2-HS512+A256KW
- Key Wrapping: A128KW, A192KW, A256KW, A128GCMKW, A192GCMKW, A256GCMKW
- Delegated: SYMMETRIC_DEFAULT (CEK generated by an external key service)

Content encryption:
- A128GCM, A192GCM, A256GCM (AES-GCM)
- A128CBC-HS256, A192CBC-HS384, A256CBC-HS512 (AES-CBC with HMAC)
"""

import os
from enum import Enum

from keymgmt.core.errors import UnsupportedAlgorithmError, InvalidParameterError


# JWE Algorithms
class JWEAlgorithm(str, Enum):
    """Supported JWE key management algorithms."""

    DIR = "dir"  # Direct encryption
    ECDH_ES = "ECDH-ES"  # ECDH Ephemeral Static
    ECDH_ES_A128KW = "ECDH-ES+A128KW"
    ECDH_ES_A192KW = "ECDH-ES+A192KW"
    ECDH_ES_A256KW = "ECDH-ES+A256KW"
    RSA1_5 = "RSA1_5"  # RSAES-PKCS1-v1_5
    RSA_OAEP = "RSA-OAEP"  # RSAES OAEP, SHA-1
    RSA_OAEP_256 = "RSA-OAEP-256"
    RSA_OAEP_384 = "RSA-OAEP-384"
    RSA_OAEP_512 = "RSA-OAEP-512"
    PBES2_HS256_A128KW = "PBES2-HS256+A128KW"
    PBES2_HS384_A192KW = "PBES2-HS384+A192KW"
    PBES2_HS512_A256KW = "PBES2-HS512+A256KW"
    A128KW = "A128KW"  # AES-128 Key Wrap
    A192KW = "A192KW"
    A256KW = "A256KW"
    A128GCMKW = "A128GCMKW"  # AES-128-GCM Key Wrap
    A192GCMKW = "A192GCMKW"
    A256GCMKW = "A256GCMKW"
    SYMMETRIC_DEFAULT = "SYMMETRIC_DEFAULT"  # External key service


class JWEEncryption(str, Enum):
    """Supported JWE content encryption algorithms."""

    A128GCM = "A128GCM"  # AES-128-GCM
    A192GCM = "A192GCM"
    A256GCM = "A256GCM"  # AES-256-GCM
    A128CBC_HS256 = "A128CBC-HS256"  # AES-128-CBC + HMAC-SHA-256
    A192CBC_HS384 = "A192CBC-HS384"
    A256CBC_HS512 = "A256CBC-HS512"  # AES-256-CBC + HMAC-SHA-512


ECDH_ALGORITHMS = frozenset({
    JWEAlgorithm.ECDH_ES,
    JWEAlgorithm.ECDH_ES_A128KW,
    JWEAlgorithm.ECDH_ES_A192KW,
    JWEAlgorithm.ECDH_ES_A256KW,
})

RSA_ALGORITHMS = frozenset({
    JWEAlgorithm.RSA1_5,
    JWEAlgorithm.RSA_OAEP,
    JWEAlgorithm.RSA_OAEP_256,
    JWEAlgorithm.RSA_OAEP_384,
    JWEAlgorithm.RSA_OAEP_512,
})

PBES2_ALGORITHMS = frozenset({
    JWEAlgorithm.PBES2_HS256_A128KW,
    JWEAlgorithm.PBES2_HS384_A192KW,
    JWEAlgorithm.PBES2_HS512_A256KW,
})

AES_KW_ALGORITHMS = frozenset({
    JWEAlgorithm.A128KW,
    JWEAlgorithm.A192KW,
    JWEAlgorithm.A256KW,
})

AES_GCM_KW_ALGORITHMS = frozenset({
    JWEAlgorithm.A128GCMKW,
    JWEAlgorithm.A192GCMKW,
    JWEAlgorithm.A256GCMKW,
})

# CEK sizes in bytes
CEK_SIZES = {
    JWEEncryption.A128GCM: 16,
    JWEEncryption.A192GCM: 24,
    JWEEncryption.A256GCM: 32,
    JWEEncryption.A128CBC_HS256: 32,  # 16 enc + 16 mac
    JWEEncryption.A192CBC_HS384: 48,  # 24 enc + 24 mac
    JWEEncryption.A256CBC_HS512: 64,  # 32 enc + 32 mac
}


def parse_algorithm(alg: "str | JWEAlgorithm") -> JWEAlgorithm:
    """Resolve an "alg" header value, case-sensitively."""
    try:
        return JWEAlgorithm(alg)
    except ValueError:
        raise UnsupportedAlgorithmError(
            'Invalid or unsupported "alg" (JWE Algorithm) header value', alg=str(alg)
        )


def parse_encryption(enc: "str | JWEEncryption", alg: str | None = None) -> JWEEncryption:
    """Resolve an "enc" header value, case-sensitively."""
    try:
        return JWEEncryption(enc)
    except ValueError:
        raise UnsupportedAlgorithmError(
            'Invalid or unsupported "enc" (Content Encryption Algorithm) header value',
            alg=alg,
        )


def cek_bit_length(enc: JWEEncryption) -> int:
    """CEK length in bits required by a content encryption algorithm."""
    return CEK_SIZES[enc] * 8


def generate_cek(enc: JWEEncryption) -> bytes:
    """Generate a fresh random CEK for a content encryption algorithm."""
    return os.urandom(CEK_SIZES[enc])


def check_cek_length(enc: JWEEncryption, cek: bytes) -> bytes:
    """Ensure a CEK has the length the content encryption algorithm requires."""
    if len(cek) != CEK_SIZES[enc]:
        raise InvalidParameterError(
            f"Invalid Content Encryption Key length: {enc.value} requires "
            f"{cek_bit_length(enc)} bits, got {len(cek) * 8}"
        )
    return cek


def wrap_bit_length(alg: JWEAlgorithm) -> int:
    """Key-wrap strength parsed from the algorithm name (128, 192 or 256).

    Works for A128KW, A128GCMKW, ECDH-ES+A128KW and PBES2-HS256+A128KW.
    """
    name = alg.value
    start = name.rindex("A") + 1
    return int(name[start:start + 3])
