"""Local key service accessor for development.

WARNING: This accessor is for DEVELOPMENT and TESTS only.
In production, use a real key service (AWS KMS).

The local accessor:
- Keeps master keys in process memory
- Derives a per-key KEK with HKDF and encrypts data keys with AES-GCM
- Does not provide HSM protection
"""

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from keymgmt.core.algorithms import CEK_SIZES, JWEAlgorithm, JWEEncryption
from keymgmt.core.errors import KMSError

from .base import DataKey, KmsAccessor, data_key_from_response

logger = logging.getLogger(__name__)

NONCE_SIZE = 12


class LocalKmsAccessor(KmsAccessor):
    """In-process key service.

    Encrypted data keys are nonce || AES-GCM(kek, data key), with the key
    id as associated data, so a blob only decrypts under the key that
    produced it.
    """

    def __init__(self, salt: bytes = b"keymgmt-local-kms"):
        self._master_keys: dict[str, bytes] = {}
        self._salt = salt

    def create_key(self, key_id: str | None = None) -> str:
        """Create a master key and return its id."""
        key_id = key_id or f"local-key-{secrets.token_hex(8)}"
        self._master_keys[key_id] = secrets.token_bytes(32)
        logger.info("Local KMS created key %s", key_id)
        return key_id

    def _derive_kek(self, key_id: str) -> bytes:
        master_key = self._master_keys.get(key_id)
        if master_key is None:
            raise KMSError(f"Key not found: {key_id}", alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value)

        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,  # KEK is always 256-bit
            salt=self._salt,
            info=f"kek:{key_id}".encode(),
        )
        return hkdf.derive(master_key)

    async def generate_data_key(self, key_id: str, enc: JWEEncryption) -> DataKey:
        """Generate a new data key."""
        kek = self._derive_kek(key_id)

        plaintext = secrets.token_bytes(CEK_SIZES[enc])
        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = nonce + AESGCM(kek).encrypt(nonce, plaintext, key_id.encode())

        # Same response shape and checks as a remote service
        return data_key_from_response({"Plaintext": plaintext, "CiphertextBlob": ciphertext}, enc)

    async def decrypt_data_key(
        self,
        key_id: str,
        encrypted_key: bytes,
        enc: JWEEncryption,
    ) -> bytes:
        """Decrypt a data key."""
        kek = self._derive_kek(key_id)

        if len(encrypted_key) < NONCE_SIZE:
            raise KMSError("Invalid encrypted data key: too short", alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value)

        nonce = encrypted_key[:NONCE_SIZE]
        try:
            return AESGCM(kek).decrypt(nonce, encrypted_key[NONCE_SIZE:], key_id.encode())
        except InvalidTag as e:
            raise KMSError(
                "Failed to decrypt data key", alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value
            ) from e
