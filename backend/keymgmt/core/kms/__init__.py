"""External key service accessors.

Backs the delegated SYMMETRIC_DEFAULT key management algorithm:
- AWS KMS: GenerateDataKey / Decrypt over an injected boto3 client
- Local: in-process service for development and tests
"""

from .base import DataKey, KmsAccessor
from .aws import AWSKmsAccessor
from .local import LocalKmsAccessor

__all__ = [
    "DataKey",
    "KmsAccessor",
    "AWSKmsAccessor",
    "LocalKmsAccessor",
]
