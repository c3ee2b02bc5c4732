"""Base external key service interface.

A key service holds the master key and hands out data keys: a fresh
plaintext CEK plus the same CEK encrypted under the master key. The
master key never leaves the service.

The accessor is injected into the key management dispatcher, so any
service (AWS KMS, a local development service, ...) can back the
delegated SYMMETRIC_DEFAULT algorithm.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from keymgmt.core.algorithms import CEK_SIZES, JWEAlgorithm, JWEEncryption
from keymgmt.core.errors import KMSContractError

# enc -> AWS KMS KeySpec. Other content encryption algorithms request
# NumberOfBytes equal to their CEK size.
DATA_KEY_SPECS = {
    JWEEncryption.A128GCM: "AES_128",
    JWEEncryption.A256GCM: "AES_256",
}


@dataclass
class DataKey:
    """A data key generated by an external key service."""

    cek: bytes
    encrypted_key: bytes

    def __repr__(self) -> str:
        return f"DataKey(cek=<{len(self.cek)} bytes>, encrypted_key=<{len(self.encrypted_key)} bytes>)"


def data_key_spec(enc: JWEEncryption) -> dict[str, Any]:
    """Key specification arguments for a GenerateDataKey request."""
    key_spec = DATA_KEY_SPECS.get(enc)
    if key_spec:
        return {"KeySpec": key_spec}
    return {"NumberOfBytes": CEK_SIZES[enc]}


def check_data_key_length(plaintext: bytes, enc: JWEEncryption) -> bytes:
    """Ensure a plaintext data key from the service has the CEK length enc requires."""
    if len(plaintext) != CEK_SIZES[enc]:
        raise KMSContractError(
            f"Invalid output from KMS: Plaintext is {len(plaintext) * 8} bits, "
            f"{enc.value} requires {CEK_SIZES[enc] * 8}",
            field="Plaintext",
            alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value,
        )
    return bytes(plaintext)


def data_key_from_response(response: dict, enc: JWEEncryption) -> DataKey:
    """Validate a GenerateDataKey response and extract the data key.

    Raises:
        KMSContractError: Plaintext or CiphertextBlob missing, or the
            plaintext does not have the CEK length enc requires
    """
    alg = JWEAlgorithm.SYMMETRIC_DEFAULT.value
    plaintext = response.get("Plaintext")
    ciphertext = response.get("CiphertextBlob")

    if not plaintext:
        raise KMSContractError("Invalid output from KMS: Plaintext missing", field="Plaintext", alg=alg)
    if not ciphertext:
        raise KMSContractError(
            "Invalid output from KMS: CiphertextBlob missing", field="CiphertextBlob", alg=alg
        )
    return DataKey(cek=check_data_key_length(plaintext, enc), encrypted_key=bytes(ciphertext))


class KmsAccessor(ABC):
    """Abstract base class for external key service accessors.

    Implementations must not cache: every call is a fresh round trip,
    and failures are raised to the caller without retrying.
    """

    @abstractmethod
    async def generate_data_key(self, key_id: str, enc: JWEEncryption) -> DataKey:
        """Generate a data key for a content encryption algorithm.

        Args:
            key_id: Opaque key reference, e.g. a KMS key ARN
            enc: Content encryption algorithm the data key is for

        Returns:
            DataKey with the plaintext CEK and its encrypted form

        Raises:
            KMSContractError: Service response is malformed
            KMSError: Service call failed
        """
        pass

    @abstractmethod
    async def decrypt_data_key(
        self,
        key_id: str,
        encrypted_key: bytes,
        enc: JWEEncryption,
    ) -> bytes:
        """Decrypt a data key previously returned by generate_data_key.

        Raises:
            KMSContractError: Service response is malformed
            KMSError: Service call failed
        """
        pass
