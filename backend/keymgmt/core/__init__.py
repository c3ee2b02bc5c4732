"""Core key management logic."""

from keymgmt.core.key_management import (
    KeyManagementDispatcher,
    decrypt_key_management,
    encrypt_key_management,
)
from keymgmt.core.strategies import KeyManagementParameters, KeyManagementResult

__all__ = [
    "KeyManagementDispatcher",
    "KeyManagementParameters",
    "KeyManagementResult",
    "decrypt_key_management",
    "encrypt_key_management",
]
