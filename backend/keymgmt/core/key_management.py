"""JWE key management dispatcher.

Single decision point between the JWE encryption orchestrator and the
key management families. Given "alg", "enc" and a recipient key it
returns the CEK, the JWE Encrypted Key (when the algorithm wraps) and
the header parameters the algorithm mandates.

Routing, first match wins:
1. External key reference: only SYMMETRIC_DEFAULT, delegated to the
   injected KMS accessor.
2. Anything else: key type check, then exactly one family strategy.

The dispatcher holds no per-request state and is safe to share across
concurrent requests.
"""

import logging

from keymgmt.core.algorithms import (
    JWEAlgorithm,
    JWEEncryption,
    check_cek_length,
    parse_algorithm,
    parse_encryption,
)
from keymgmt.core.errors import AlgorithmNotAllowedError, UnsupportedAlgorithmError
from keymgmt.core.key_types import ExternalKeyRef, as_key_reference, check_key_type
from keymgmt.core.kms.base import KmsAccessor, check_data_key_length
from keymgmt.core.strategies import (
    STRATEGIES,
    KeyManagementParameters,
    KeyManagementResult,
    KeyManagementStrategy,
)

logger = logging.getLogger(__name__)


class KeyManagementDispatcher:
    """Routes JWE key management requests to the right strategy."""

    def __init__(self, kms_accessor: KmsAccessor | None = None):
        self.kms_accessor = kms_accessor

    def _require_accessor(self, alg) -> KmsAccessor:
        if alg != JWEAlgorithm.SYMMETRIC_DEFAULT:
            raise UnsupportedAlgorithmError(
                'Invalid or unsupported "alg" (JWE Algorithm) header value', alg=str(alg)
            )
        if self.kms_accessor is None:
            raise AlgorithmNotAllowedError(
                f"KMS accessor is required with alg: {JWEAlgorithm.SYMMETRIC_DEFAULT.value}",
                alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value,
            )
        return self.kms_accessor

    @staticmethod
    def _strategy(alg: JWEAlgorithm) -> KeyManagementStrategy:
        strategy = STRATEGIES.get(alg)
        if strategy is None:
            raise UnsupportedAlgorithmError(
                'Invalid or unsupported "alg" (JWE Algorithm) header value', alg=alg.value
            )
        return strategy

    async def encrypt(
        self,
        alg: str | JWEAlgorithm,
        enc: str | JWEEncryption,
        key,
        cek: bytes | None = None,
        parameters: KeyManagementParameters | None = None,
    ) -> KeyManagementResult:
        """Produce the CEK and encrypted key for one recipient.

        Args:
            alg: Key management algorithm ("alg" header)
            enc: Content encryption algorithm ("enc" header)
            key: Recipient key: a KeyReference, a cryptography key object,
                secret bytes, or a key service reference string
            cek: Optional CEK to use instead of generating one. Ignored by
                dir and ECDH-ES, which determine the CEK themselves.
            parameters: Optional per-algorithm inputs

        Returns:
            KeyManagementResult with the CEK, encrypted key and header
            parameters

        Raises:
            UnsupportedAlgorithmError: Unknown alg/enc, or unsupported curve
            AlgorithmNotAllowedError: SYMMETRIC_DEFAULT without a KMS accessor
            KeyTypeMismatchError: Key does not fit the algorithm
            KeyEncryptionError: The primitive failed, e.g. a degenerate ECDH key
            KMSContractError: Key service response is malformed
        """
        if isinstance(key, (str, ExternalKeyRef)):
            key_ref = as_key_reference(key)
            accessor = self._require_accessor(alg)
            enc = parse_encryption(enc, alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value)
            logger.debug("Delegating CEK generation for %s to the key service", enc.value)
            data_key = await accessor.generate_data_key(key_ref.key_id, enc)
            return KeyManagementResult(cek=data_key.cek, encrypted_key=data_key.encrypted_key)

        alg = parse_algorithm(alg)
        enc = parse_encryption(enc, alg=alg.value)
        key_ref = as_key_reference(key, alg=alg.value)
        check_key_type(alg, key_ref, "encrypt")

        strategy = self._strategy(alg)
        logger.debug(
            "Key management alg=%s enc=%s strategy=%s",
            alg.value,
            enc.value,
            type(strategy).__name__,
        )
        return await strategy.wrap(alg, enc, key_ref, cek, parameters or KeyManagementParameters())

    async def decrypt(
        self,
        alg: str | JWEAlgorithm,
        enc: str | JWEEncryption,
        key,
        encrypted_key: bytes | None,
        header: dict | None = None,
    ) -> bytes:
        """Recover the CEK for one recipient.

        Args:
            alg: Key management algorithm ("alg" header)
            enc: Content encryption algorithm ("enc" header)
            key: Recipient key (private key, secret bytes, or key service
                reference string)
            encrypted_key: JWE Encrypted Key, empty for dir and ECDH-ES
            header: Protected header carrying epk, apu, apv, p2c, p2s, iv, tag

        Returns:
            The CEK

        Raises:
            KeyDecryptionError: The encrypted key does not unwrap under the key
            InvalidParameterError: Header parameters missing or malformed
            KMSContractError: Key service returned a data key of the wrong length
        """
        header = header or {}

        if isinstance(key, (str, ExternalKeyRef)):
            key_ref = as_key_reference(key)
            accessor = self._require_accessor(alg)
            enc = parse_encryption(enc, alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value)
            cek = await accessor.decrypt_data_key(key_ref.key_id, encrypted_key or b"", enc)
            return check_data_key_length(cek, enc)

        alg = parse_algorithm(alg)
        enc = parse_encryption(enc, alg=alg.value)
        key_ref = as_key_reference(key, alg=alg.value)
        check_key_type(alg, key_ref, "decrypt")

        cek = await self._strategy(alg).unwrap(alg, enc, key_ref, encrypted_key, header)
        return check_cek_length(enc, cek)


async def encrypt_key_management(
    alg: str | JWEAlgorithm,
    enc: str | JWEEncryption,
    key,
    cek: bytes | None = None,
    parameters: KeyManagementParameters | None = None,
    kms_accessor: KmsAccessor | None = None,
) -> KeyManagementResult:
    """Run JWE key management for one recipient. See KeyManagementDispatcher.encrypt."""
    return await KeyManagementDispatcher(kms_accessor).encrypt(alg, enc, key, cek, parameters)


async def decrypt_key_management(
    alg: str | JWEAlgorithm,
    enc: str | JWEEncryption,
    key,
    encrypted_key: bytes | None,
    header: dict | None = None,
    kms_accessor: KmsAccessor | None = None,
) -> bytes:
    """Recover the CEK for one recipient. See KeyManagementDispatcher.decrypt."""
    return await KeyManagementDispatcher(kms_accessor).decrypt(alg, enc, key, encrypted_key, header)
