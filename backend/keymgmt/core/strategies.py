"""Key management family strategies.

Each strategy serves a closed set of JWE algorithms and knows how to
produce a CEK (and, where the family wraps, the encrypted key plus the
header parameters the recipient needs), and how to reverse that.

Families:
- Direct (dir)
- ECDH-ES, with optional AES key wrapping (ECDH-ES+AxxxKW)
- RSA key encryption (RSA1_5, RSA-OAEP*)
- Password based (PBES2-HSxxx+AxxxKW)
- AES key wrap (AxxxKW)
- AES-GCM key wrap (AxxxGCMKW)
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.keywrap import InvalidUnwrap

from keymgmt.config import get_settings
from keymgmt.core import primitives
from keymgmt.core.algorithms import (
    AES_GCM_KW_ALGORITHMS,
    AES_KW_ALGORITHMS,
    CEK_SIZES,
    ECDH_ALGORITHMS,
    PBES2_ALGORITHMS,
    RSA_ALGORITHMS,
    JWEAlgorithm,
    JWEEncryption,
    cek_bit_length,
    check_cek_length,
    generate_cek,
    wrap_bit_length,
)
from keymgmt.core.errors import (
    InvalidParameterError,
    KeyDecryptionError,
    KeyEncryptionError,
    KeyTypeMismatchError,
    UnsupportedAlgorithmError,
)
from keymgmt.core.key_types import PRIVATE_KEY_TYPES, KeyReference

logger = logging.getLogger(__name__)


# Data classes
@dataclass
class KeyManagementParameters:
    """Optional per-algorithm inputs.

    Attributes:
        epk: Ephemeral private key (ECDH-ES family). Generated if absent.
        apu: Agreement PartyUInfo (ECDH-ES family)
        apv: Agreement PartyVInfo (ECDH-ES family)
        p2c: PBES2 iteration count. Defaults to settings if absent.
        p2s: PBES2 salt input, at least 8 bytes. Generated if absent.
        iv: 96-bit AES-GCM key wrap IV. Generated if absent.
    """

    epk: object | None = None
    apu: bytes | None = None
    apv: bytes | None = None
    p2c: int | None = None
    p2s: bytes | None = None
    iv: bytes | None = None


@dataclass
class KeyManagementResult:
    """Result of JWE key management for one recipient."""

    cek: bytes
    encrypted_key: bytes | None = None
    parameters: dict | None = None  # Protected header parameters to merge

    def merge_into(self, header: dict) -> dict:
        """Merge the emitted parameters into a protected header.

        Algorithm-mandated parameters win over caller fields of the same name.
        """
        merged = dict(header)
        if self.parameters:
            merged.update(self.parameters)
        return merged


def _cek_or_generate(enc: JWEEncryption, cek: bytes | None) -> bytes:
    if cek is None:
        return generate_cek(enc)
    return check_cek_length(enc, cek)


def _header_bytes(header: dict, name: str, alg: JWEAlgorithm) -> bytes:
    value = header.get(name)
    if not isinstance(value, str):
        raise InvalidParameterError(f'JOSE Header "{name}" missing or invalid', alg=alg.value)
    try:
        return primitives.b64url_decode(value)
    except ValueError as e:
        raise InvalidParameterError(f'Failed to base64url decode "{name}"', alg=alg.value) from e


class KeyManagementStrategy(ABC):
    """A family of JWE key management algorithms."""

    algorithms: frozenset = frozenset()

    @abstractmethod
    async def wrap(
        self,
        alg: JWEAlgorithm,
        enc: JWEEncryption,
        key: KeyReference,
        cek: bytes | None,
        parameters: KeyManagementParameters,
    ) -> KeyManagementResult:
        """Produce the CEK and, if the family wraps, the encrypted key."""
        pass

    @abstractmethod
    async def unwrap(
        self,
        alg: JWEAlgorithm,
        enc: JWEEncryption,
        key: KeyReference,
        encrypted_key: bytes | None,
        header: dict,
    ) -> bytes:
        """Recover the CEK from the encrypted key and protected header."""
        pass


class DirectStrategy(KeyManagementStrategy):
    """dir: the shared symmetric key is the CEK."""

    algorithms = frozenset({JWEAlgorithm.DIR})

    def _check(self, enc: JWEEncryption, key: KeyReference) -> bytes:
        if len(key.secret) != CEK_SIZES[enc]:
            raise KeyTypeMismatchError(
                f"Direct encryption with {enc.value} requires a {CEK_SIZES[enc]}-byte key",
                alg=JWEAlgorithm.DIR.value,
            )
        return key.secret

    async def wrap(self, alg, enc, key, cek, parameters):
        return KeyManagementResult(cek=self._check(enc, key))

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        if encrypted_key:
            raise InvalidParameterError("Encountered unexpected JWE Encrypted Key", alg=alg.value)
        return self._check(enc, key)


class EcdhEsStrategy(KeyManagementStrategy):
    """ECDH-ES direct key agreement, or agreement followed by AES key wrap."""

    algorithms = ECDH_ALGORITHMS

    @staticmethod
    def _kdf_inputs(alg: JWEAlgorithm, enc: JWEEncryption) -> tuple[str, int]:
        if alg == JWEAlgorithm.ECDH_ES:
            return enc.value, cek_bit_length(enc)
        return alg.value, wrap_bit_length(alg)

    @staticmethod
    def _check_allowed(alg: JWEAlgorithm, key) -> None:
        if not primitives.ecdh_allowed(key):
            raise UnsupportedAlgorithmError(
                "ECDH with the provided key is not allowed or not supported",
                alg=alg.value,
            )

    async def wrap(self, alg, enc, key, cek, parameters):
        static_key = key.key
        self._check_allowed(alg, static_key)

        ephemeral_key = parameters.epk
        if ephemeral_key is None:
            ephemeral_key = primitives.generate_epk(static_key)
        elif not (
            isinstance(ephemeral_key, PRIVATE_KEY_TYPES)
            and primitives.ecdh_allowed(ephemeral_key)
            and primitives.same_curve(ephemeral_key, static_key)
        ):
            raise KeyTypeMismatchError(
                "Ephemeral key must be a private key on the recipient key's curve",
                alg=alg.value,
            )

        algorithm_id, key_bits = self._kdf_inputs(alg, enc)
        try:
            shared_secret = primitives.concat_kdf(
                primitives.ecdh_shared_secret(ephemeral_key, static_key),
                algorithm_id,
                key_bits,
                parameters.apu,
                parameters.apv,
            )
        except ValueError as e:
            raise KeyEncryptionError(f"ECDH key agreement failed: {e}", alg=alg.value) from e

        jwk = primitives.public_jwk(ephemeral_key)
        epk = {"x": jwk["x"], "crv": jwk["crv"], "kty": jwk["kty"]}
        if jwk["kty"] == "EC":
            epk["y"] = jwk["y"]
        header_params: dict = {"epk": epk}
        if parameters.apu is not None:
            header_params["apu"] = primitives.b64url_encode(parameters.apu)
        if parameters.apv is not None:
            header_params["apv"] = primitives.b64url_encode(parameters.apv)

        if alg == JWEAlgorithm.ECDH_ES:
            return KeyManagementResult(cek=shared_secret, parameters=header_params)

        # Key Agreement with Key Wrapping
        cek = _cek_or_generate(enc, cek)
        encrypted_key = primitives.aes_kw_wrap(shared_secret, cek)
        return KeyManagementResult(cek=cek, encrypted_key=encrypted_key, parameters=header_params)

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        private_key = key.key
        self._check_allowed(alg, private_key)

        epk = header.get("epk")
        if not isinstance(epk, dict):
            raise InvalidParameterError('JOSE Header "epk" (Ephemeral Public Key) missing', alg=alg.value)
        ephemeral_public = primitives.public_key_from_jwk(epk)
        if not primitives.same_curve(ephemeral_public, private_key):
            raise InvalidParameterError("Ephemeral key curve does not match the recipient key", alg=alg.value)

        apu = _header_bytes(header, "apu", alg) if "apu" in header else None
        apv = _header_bytes(header, "apv", alg) if "apv" in header else None

        algorithm_id, key_bits = self._kdf_inputs(alg, enc)
        try:
            shared_secret = primitives.concat_kdf(
                primitives.ecdh_shared_secret(private_key, ephemeral_public),
                algorithm_id,
                key_bits,
                apu,
                apv,
            )
        except ValueError as e:
            raise KeyDecryptionError(f"ECDH key agreement failed: {e}", alg=alg.value) from e

        if alg == JWEAlgorithm.ECDH_ES:
            if encrypted_key:
                raise InvalidParameterError("Encountered unexpected JWE Encrypted Key", alg=alg.value)
            return shared_secret

        if not encrypted_key:
            raise InvalidParameterError("JWE Encrypted Key missing", alg=alg.value)
        try:
            return primitives.aes_kw_unwrap(shared_secret, encrypted_key)
        except InvalidUnwrap as e:
            raise KeyDecryptionError("AES key unwrap failed", alg=alg.value) from e


class RsaStrategy(KeyManagementStrategy):
    """RSAES-PKCS1-v1_5 and RSAES-OAEP key encryption."""

    algorithms = RSA_ALGORITHMS

    async def wrap(self, alg, enc, key, cek, parameters):
        cek = _cek_or_generate(enc, cek)
        try:
            encrypted_key = primitives.rsa_encrypt(alg, key.key, cek)
        except ValueError as e:
            raise KeyEncryptionError(f"RSA key encryption failed: {e}", alg=alg.value) from e
        return KeyManagementResult(cek=cek, encrypted_key=encrypted_key)

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        if not encrypted_key:
            raise InvalidParameterError("JWE Encrypted Key missing", alg=alg.value)
        try:
            return primitives.rsa_decrypt(alg, key.key, encrypted_key)
        except ValueError as e:
            raise KeyDecryptionError("RSA key decryption failed", alg=alg.value) from e


class Pbes2Strategy(KeyManagementStrategy):
    """PBES2 password based key wrapping.

    p2c and p2s are generated when absent and always echoed back in the
    header, since the recipient needs both to derive the wrapping key.
    """

    algorithms = PBES2_ALGORITHMS

    async def _derive(self, alg: JWEAlgorithm, password: bytes, p2s: bytes, p2c: int) -> bytes:
        # PBKDF2 is the slow part; keep it off the event loop
        return await asyncio.to_thread(
            primitives.pbes2_derive, alg, password, p2s, p2c, wrap_bit_length(alg) // 8
        )

    async def wrap(self, alg, enc, key, cek, parameters):
        settings = get_settings()
        cek = _cek_or_generate(enc, cek)

        if parameters.p2c is None:
            p2c = settings.pbes2_default_iterations
        else:
            p2c = primitives.check_p2c(parameters.p2c)
        if parameters.p2s is None:
            p2s = os.urandom(settings.pbes2_salt_size)
            logger.debug("Generated PBES2 salt input for %s", alg.value)
        else:
            p2s = primitives.check_p2s(parameters.p2s)

        kek = await self._derive(alg, key.secret, p2s, p2c)
        encrypted_key = primitives.aes_kw_wrap(kek, cek)
        return KeyManagementResult(
            cek=cek,
            encrypted_key=encrypted_key,
            parameters={"p2c": p2c, "p2s": primitives.b64url_encode(p2s)},
        )

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        settings = get_settings()
        if not encrypted_key:
            raise InvalidParameterError("JWE Encrypted Key missing", alg=alg.value)

        p2c = header.get("p2c")
        if p2c is None:
            raise InvalidParameterError('JOSE Header "p2c" (PBES2 Count) missing', alg=alg.value)
        p2c = primitives.check_p2c(p2c)
        if p2c > settings.pbes2_max_iterations:
            raise InvalidParameterError(
                'JOSE Header "p2c" (PBES2 Count) exceeds the allowed maximum', alg=alg.value
            )
        p2s = primitives.check_p2s(_header_bytes(header, "p2s", alg))

        kek = await self._derive(alg, key.secret, p2s, p2c)
        try:
            return primitives.aes_kw_unwrap(kek, encrypted_key)
        except InvalidUnwrap as e:
            raise KeyDecryptionError("PBES2 key unwrap failed", alg=alg.value) from e


class AesKwStrategy(KeyManagementStrategy):
    """AES Key Wrap (RFC 3394) directly under the shared key."""

    algorithms = AES_KW_ALGORITHMS

    async def wrap(self, alg, enc, key, cek, parameters):
        cek = _cek_or_generate(enc, cek)
        return KeyManagementResult(cek=cek, encrypted_key=primitives.aes_kw_wrap(key.secret, cek))

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        if not encrypted_key:
            raise InvalidParameterError("JWE Encrypted Key missing", alg=alg.value)
        try:
            return primitives.aes_kw_unwrap(key.secret, encrypted_key)
        except InvalidUnwrap as e:
            raise KeyDecryptionError("AES key unwrap failed", alg=alg.value) from e


class AesGcmKwStrategy(KeyManagementStrategy):
    """AES-GCM key wrapping; iv and tag travel in the header."""

    algorithms = AES_GCM_KW_ALGORITHMS

    async def wrap(self, alg, enc, key, cek, parameters):
        cek = _cek_or_generate(enc, cek)
        if parameters.iv is None:
            iv = os.urandom(primitives.GCM_IV_SIZE)
        else:
            iv = primitives.check_iv(parameters.iv)

        encrypted_key, tag = primitives.aes_gcm_wrap(key.secret, cek, iv)
        return KeyManagementResult(
            cek=cek,
            encrypted_key=encrypted_key,
            parameters={
                "iv": primitives.b64url_encode(iv),
                "tag": primitives.b64url_encode(tag),
            },
        )

    async def unwrap(self, alg, enc, key, encrypted_key, header):
        if not encrypted_key:
            raise InvalidParameterError("JWE Encrypted Key missing", alg=alg.value)
        iv = primitives.check_iv(_header_bytes(header, "iv", alg))
        tag = _header_bytes(header, "tag", alg)
        try:
            return primitives.aes_gcm_unwrap(key.secret, encrypted_key, iv, tag)
        except InvalidTag as e:
            raise KeyDecryptionError("AES-GCM key unwrap failed", alg=alg.value) from e


def _build_registry(*strategies: KeyManagementStrategy) -> dict[JWEAlgorithm, KeyManagementStrategy]:
    registry: dict[JWEAlgorithm, KeyManagementStrategy] = {}
    for strategy in strategies:
        for alg in strategy.algorithms:
            if alg in registry:
                raise RuntimeError(f"Algorithm {alg.value} registered twice")
            registry[alg] = strategy

    # Every in-memory algorithm has exactly one strategy
    missing = set(JWEAlgorithm) - set(registry) - {JWEAlgorithm.SYMMETRIC_DEFAULT}
    if missing:
        raise RuntimeError(f"No strategy for: {sorted(a.value for a in missing)}")
    return registry


STRATEGIES = _build_registry(
    DirectStrategy(),
    EcdhEsStrategy(),
    RsaStrategy(),
    Pbes2Strategy(),
    AesKwStrategy(),
    AesGcmKwStrategy(),
)
