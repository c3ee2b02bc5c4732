"""Tests for key references and key type compatibility."""

import os

import pytest

from keymgmt.core.algorithms import JWEAlgorithm
from keymgmt.core.errors import KeyTypeMismatchError, UnsupportedAlgorithmError
from keymgmt.core.key_types import (
    ExternalKeyRef,
    KeyMaterial,
    SecretKey,
    as_key_reference,
    check_key_type,
)


class TestKeyReference:
    """Tests for key reference normalization."""

    def test_string_is_external(self):
        ref = as_key_reference("arn:aws:kms:eu-west-1:111122223333:key/abc")

        assert isinstance(ref, ExternalKeyRef)
        assert ref.key_id.endswith("key/abc")

    def test_bytes_is_secret(self):
        secret = os.urandom(16)

        ref = as_key_reference(bytearray(secret))

        assert isinstance(ref, SecretKey)
        assert ref.secret == secret

    def test_key_object_is_material(self, ec_public_key):
        ref = as_key_reference(ec_public_key)

        assert isinstance(ref, KeyMaterial)
        assert not ref.is_private

    def test_reference_passes_through(self):
        ref = SecretKey(b"k" * 16)

        assert as_key_reference(ref) is ref

    def test_secret_repr_hides_bytes(self):
        assert "kkkk" not in repr(SecretKey(b"k" * 16))

    def test_unsupported_key(self):
        with pytest.raises(KeyTypeMismatchError):
            as_key_reference(12345)


class TestCheckKeyType:
    """Tests for the key type compatibility checker."""

    def test_symmetric_key_for_rsa(self):
        """Test a symmetric key is rejected for RSA-OAEP."""
        with pytest.raises(KeyTypeMismatchError) as exc_info:
            check_key_type(JWEAlgorithm.RSA_OAEP, SecretKey(os.urandom(32)), "encrypt")

        assert exc_info.value.alg == "RSA-OAEP"

    def test_rsa_key_for_aes_kw(self, rsa_public_key):
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.A256KW, KeyMaterial(rsa_public_key), "encrypt")

    def test_ec_key_for_rsa(self, ec_public_key):
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.RSA_OAEP_256, KeyMaterial(ec_public_key), "encrypt")

    def test_encrypt_requires_public_key(self, rsa_private_key, ec_private_key):
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.RSA_OAEP, KeyMaterial(rsa_private_key), "encrypt")
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.ECDH_ES, KeyMaterial(ec_private_key), "encrypt")

    def test_decrypt_requires_private_key(self, rsa_public_key):
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.RSA_OAEP, KeyMaterial(rsa_public_key), "decrypt")

    @pytest.mark.parametrize(
        "alg,size",
        [
            (JWEAlgorithm.A128KW, 16),
            (JWEAlgorithm.A192KW, 24),
            (JWEAlgorithm.A256GCMKW, 32),
        ],
    )
    def test_aes_key_size(self, alg, size):
        """Test AES key wrap keys must match the algorithm's key size."""
        check_key_type(alg, SecretKey(os.urandom(size)), "encrypt")

        with pytest.raises(KeyTypeMismatchError):
            check_key_type(alg, SecretKey(os.urandom(size + 8)), "encrypt")

    def test_pbes2_accepts_any_password(self):
        check_key_type(JWEAlgorithm.PBES2_HS256_A128KW, SecretKey(b"correct horse"), "encrypt")

    def test_pbes2_rejects_empty_password(self):
        with pytest.raises(KeyTypeMismatchError):
            check_key_type(JWEAlgorithm.PBES2_HS256_A128KW, SecretKey(b""), "encrypt")

    def test_delegated_algorithm_has_no_local_rule(self):
        """Test SYMMETRIC_DEFAULT never accepts in-memory keys."""
        with pytest.raises(UnsupportedAlgorithmError):
            check_key_type(JWEAlgorithm.SYMMETRIC_DEFAULT, SecretKey(os.urandom(32)), "encrypt")
