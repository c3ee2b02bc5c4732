"""AWS KMS key service accessor.

Generates data keys with GenerateDataKey and recovers them with Decrypt.
The KMS key (CMK) never leaves AWS.

Requirements:
- boto3 library
- AWS credentials (IAM role, access keys, or instance profile)
- kms:GenerateDataKey and kms:Decrypt on the referenced key

Environment variables:
    KEYMGMT_KMS_REGION: AWS region (e.g., eu-west-1)
    KEYMGMT_KMS_ENDPOINT: Custom endpoint (local testing or private endpoints)
"""

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from keymgmt.config import Settings, get_settings
from keymgmt.core.algorithms import JWEAlgorithm, JWEEncryption
from keymgmt.core.errors import KMSContractError, KMSError

from .base import DataKey, KmsAccessor, data_key_from_response, data_key_spec

logger = logging.getLogger(__name__)


class AWSKmsAccessor(KmsAccessor):
    """Key service accessor backed by AWS KMS.

    The boto3 client is injected; calls are blocking, so they run in a
    worker thread to keep the event loop free.
    """

    def __init__(self, client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AWSKmsAccessor":
        """Build an accessor with a boto3 KMS client configured from settings."""
        settings = settings or get_settings()

        client_kwargs: dict[str, Any] = {"service_name": "kms"}
        if settings.kms_region:
            client_kwargs["region_name"] = settings.kms_region
        if settings.kms_endpoint:
            client_kwargs["endpoint_url"] = settings.kms_endpoint

        return cls(boto3.client(**client_kwargs))

    async def generate_data_key(self, key_id: str, enc: JWEEncryption) -> DataKey:
        """Generate a data key using AWS KMS GenerateDataKey."""
        kwargs: dict[str, Any] = {"KeyId": key_id, **data_key_spec(enc)}

        try:
            response = await asyncio.to_thread(self._client.generate_data_key, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise KMSError(
                f"Failed to generate data key: {e}", alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value
            ) from e

        logger.debug("KMS generated data key for %s (%s)", enc.value, response.get("KeyId", key_id))
        return data_key_from_response(response, enc)

    async def decrypt_data_key(
        self,
        key_id: str,
        encrypted_key: bytes,
        enc: JWEEncryption,
    ) -> bytes:
        """Decrypt a data key using AWS KMS Decrypt."""
        try:
            response = await asyncio.to_thread(
                self._client.decrypt,
                KeyId=key_id,
                CiphertextBlob=encrypted_key,
            )
        except (ClientError, BotoCoreError) as e:
            raise KMSError(
                f"Failed to decrypt data key: {e}", alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value
            ) from e

        plaintext = response.get("Plaintext")
        if not plaintext:
            raise KMSContractError(
                "Invalid output from KMS: Plaintext missing",
                field="Plaintext",
                alg=JWEAlgorithm.SYMMETRIC_DEFAULT.value,
            )
        return bytes(plaintext)
