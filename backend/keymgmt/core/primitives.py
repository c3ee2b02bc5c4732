"""Low-level primitives shared by the key management strategies.

Thin wrappers over cryptography's hazmat layer:
- AES Key Wrap (RFC 3394)
- ECDH + Concat KDF (RFC 7518 Section 4.6.2)
- RSAES-PKCS1-v1_5 and RSAES-OAEP
- PBKDF2 for PBES2 (RFC 7518 Section 4.8)
- AES-GCM key wrapping (RFC 7518 Section 4.7)
"""

import base64
import struct

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, x25519, x448
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.concatkdf import ConcatKDFHash
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.keywrap import aes_key_unwrap, aes_key_wrap
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from keymgmt.core.algorithms import JWEAlgorithm
from keymgmt.core.errors import InvalidParameterError, UnsupportedAlgorithmError

GCM_IV_SIZE = 12
GCM_TAG_SIZE = 16
PBES2_MIN_SALT_SIZE = 8

# cryptography curve name -> (JWK crv, coordinate size in bytes)
EC_CURVES = {
    "secp256r1": ("P-256", 32),
    "secp384r1": ("P-384", 48),
    "secp521r1": ("P-521", 66),
}

JWK_CURVES = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}

RSA_PADDING = {
    JWEAlgorithm.RSA1_5: lambda: padding.PKCS1v15(),
    JWEAlgorithm.RSA_OAEP: lambda: _oaep(hashes.SHA1()),
    JWEAlgorithm.RSA_OAEP_256: lambda: _oaep(hashes.SHA256()),
    JWEAlgorithm.RSA_OAEP_384: lambda: _oaep(hashes.SHA384()),
    JWEAlgorithm.RSA_OAEP_512: lambda: _oaep(hashes.SHA512()),
}

PBES2_HASHES = {
    JWEAlgorithm.PBES2_HS256_A128KW: hashes.SHA256,
    JWEAlgorithm.PBES2_HS384_A192KW: hashes.SHA384,
    JWEAlgorithm.PBES2_HS512_A256KW: hashes.SHA512,
}


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Base64url decode with padding restoration."""
    padding_len = 4 - len(data) % 4
    if padding_len != 4:
        data += "=" * padding_len
    return base64.urlsafe_b64decode(data)


def _oaep(hash_alg: hashes.HashAlgorithm) -> padding.OAEP:
    return padding.OAEP(mgf=padding.MGF1(algorithm=hash_alg), algorithm=hash_alg, label=None)


# ==================== AES Key Wrap ====================

def aes_kw_wrap(kek: bytes, cek: bytes) -> bytes:
    return aes_key_wrap(kek, cek)


def aes_kw_unwrap(kek: bytes, encrypted_key: bytes) -> bytes:
    return aes_key_unwrap(kek, encrypted_key)


# ==================== ECDH-ES ====================

def ecdh_allowed(key) -> bool:
    """Whether ECDH is supported with the curve of this key."""
    if isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return key.curve.name in EC_CURVES
    return isinstance(
        key,
        (x25519.X25519PublicKey, x25519.X25519PrivateKey, x448.X448PublicKey, x448.X448PrivateKey),
    )


def generate_epk(key):
    """Generate an ephemeral private key on the same curve as `key`."""
    if isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return ec.generate_private_key(key.curve)
    if isinstance(key, (x25519.X25519PublicKey, x25519.X25519PrivateKey)):
        return x25519.X25519PrivateKey.generate()
    if isinstance(key, (x448.X448PublicKey, x448.X448PrivateKey)):
        return x448.X448PrivateKey.generate()
    raise UnsupportedAlgorithmError(f"Unsupported key type for ECDH: {type(key).__name__}")


def same_curve(a, b) -> bool:
    """Whether two ECDH keys (public or private) live on the same curve."""
    if isinstance(a, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return (
            isinstance(b, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey))
            and a.curve.name == b.curve.name
        )
    for family in ((x25519.X25519PublicKey, x25519.X25519PrivateKey),
                   (x448.X448PublicKey, x448.X448PrivateKey)):
        if isinstance(a, family):
            return isinstance(b, family)
    return False


def ecdh_shared_secret(private_key, public_key) -> bytes:
    """Raw ECDH shared secret Z."""
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return private_key.exchange(ec.ECDH(), public_key)
    return private_key.exchange(public_key)


def _length_prefixed(data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + data


def concat_kdf(
    shared_secret: bytes,
    algorithm_id: str,
    key_bits: int,
    apu: bytes | None = None,
    apv: bytes | None = None,
) -> bytes:
    """Concat KDF with SHA-256 (RFC 7518 Section 4.6.2)."""
    # AlgorithmID || PartyUInfo || PartyVInfo || SuppPubInfo
    other_info = (
        _length_prefixed(algorithm_id.encode())
        + _length_prefixed(apu or b"")
        + _length_prefixed(apv or b"")
        + struct.pack(">I", key_bits)
    )
    ckdf = ConcatKDFHash(
        algorithm=hashes.SHA256(),
        length=key_bits // 8,
        otherinfo=other_info,
    )
    return ckdf.derive(shared_secret)


def public_jwk(key) -> dict:
    """Export the public half of an ECDH key as JWK members (kty, crv, x, y)."""
    if isinstance(key, (ec.EllipticCurvePrivateKey, x25519.X25519PrivateKey, x448.X448PrivateKey)):
        key = key.public_key()

    if isinstance(key, ec.EllipticCurvePublicKey):
        crv, size = EC_CURVES[key.curve.name]
        numbers = key.public_numbers()
        return {
            "kty": "EC",
            "crv": crv,
            "x": b64url_encode(numbers.x.to_bytes(size, "big")),
            "y": b64url_encode(numbers.y.to_bytes(size, "big")),
        }

    crv = "X25519" if isinstance(key, x25519.X25519PublicKey) else "X448"
    raw = key.public_bytes(encoding=Encoding.Raw, format=PublicFormat.Raw)
    return {"kty": "OKP", "crv": crv, "x": b64url_encode(raw)}


def public_key_from_jwk(jwk: dict):
    """Rebuild an ECDH public key from an "epk" header value."""
    kty = jwk.get("kty")
    crv = jwk.get("crv")
    try:
        if kty == "EC" and crv in JWK_CURVES:
            x = int.from_bytes(b64url_decode(jwk["x"]), "big")
            y = int.from_bytes(b64url_decode(jwk["y"]), "big")
            return ec.EllipticCurvePublicNumbers(x, y, JWK_CURVES[crv]()).public_key()
        if kty == "OKP" and crv == "X25519":
            return x25519.X25519PublicKey.from_public_bytes(b64url_decode(jwk["x"]))
        if kty == "OKP" and crv == "X448":
            return x448.X448PublicKey.from_public_bytes(b64url_decode(jwk["x"]))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidParameterError(f'Invalid "epk" (Ephemeral Public Key) header: {e}') from e
    raise UnsupportedAlgorithmError(f"Unsupported epk key type/curve: {kty}/{crv}")


# ==================== RSA ====================

def rsa_encrypt(alg: JWEAlgorithm, public_key, cek: bytes) -> bytes:
    return public_key.encrypt(cek, RSA_PADDING[alg]())


def rsa_decrypt(alg: JWEAlgorithm, private_key, encrypted_key: bytes) -> bytes:
    return private_key.decrypt(encrypted_key, RSA_PADDING[alg]())


# ==================== PBES2 ====================

def check_p2s(p2s: bytes) -> bytes:
    if len(p2s) < PBES2_MIN_SALT_SIZE:
        raise InvalidParameterError(
            f"PBES2 Salt Input (p2s) must be {PBES2_MIN_SALT_SIZE} or more octets"
        )
    return p2s


def check_p2c(p2c) -> int:
    if isinstance(p2c, bool) or not isinstance(p2c, int) or p2c < 1:
        raise InvalidParameterError("PBES2 Count (p2c) must be a positive integer")
    return p2c


def pbes2_derive(alg: JWEAlgorithm, password: bytes, p2s: bytes, p2c: int, key_size: int) -> bytes:
    """Derive the PBES2 wrapping key.

    The PBKDF2 salt is the UTF-8 algorithm name, a zero octet, then p2s.
    """
    kdf = PBKDF2HMAC(
        algorithm=PBES2_HASHES[alg](),
        length=key_size,
        salt=alg.value.encode() + b"\x00" + p2s,
        iterations=p2c,
    )
    return kdf.derive(password)


# ==================== AES-GCM Key Wrap ====================

def check_iv(iv: bytes) -> bytes:
    if len(iv) != GCM_IV_SIZE:
        raise InvalidParameterError("AES-GCM key wrap requires a 96-bit Initialization Vector (iv)")
    return iv


def aes_gcm_wrap(key: bytes, cek: bytes, iv: bytes) -> tuple[bytes, bytes]:
    """Encrypt a CEK with AES-GCM and an empty AAD.

    Returns:
        Tuple of (encrypted_key, tag)
    """
    ciphertext_and_tag = AESGCM(key).encrypt(iv, cek, None)
    return ciphertext_and_tag[:-GCM_TAG_SIZE], ciphertext_and_tag[-GCM_TAG_SIZE:]


def aes_gcm_unwrap(key: bytes, encrypted_key: bytes, iv: bytes, tag: bytes) -> bytes:
    return AESGCM(key).decrypt(iv, encrypted_key + tag, None)
