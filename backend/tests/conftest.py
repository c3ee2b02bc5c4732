"""Test configuration and fixtures."""

import os

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa, x25519

from keymgmt.config import get_settings


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset cached settings so tests can change the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_public_key(rsa_private_key):
    return rsa_private_key.public_key()


@pytest.fixture(scope="session")
def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_public_key(ec_private_key):
    return ec_private_key.public_key()


@pytest.fixture(scope="session")
def x25519_private_key():
    return x25519.X25519PrivateKey.generate()


@pytest.fixture
def aes256_key():
    return os.urandom(32)
