"""Tests for algorithm identifiers and CEK generation."""

import os

import pytest

from keymgmt.core.algorithms import (
    JWEAlgorithm,
    JWEEncryption,
    cek_bit_length,
    check_cek_length,
    generate_cek,
    parse_algorithm,
    parse_encryption,
    wrap_bit_length,
)
from keymgmt.core.errors import InvalidParameterError, UnsupportedAlgorithmError


class TestCEKGeneration:
    """Tests for the CEK generator."""

    @pytest.mark.parametrize(
        "enc,bits",
        [
            ("A128GCM", 128),
            ("A192GCM", 192),
            ("A256GCM", 256),
            ("A128CBC-HS256", 256),
            ("A192CBC-HS384", 384),
            ("A256CBC-HS512", 512),
        ],
    )
    def test_cek_length(self, enc, bits):
        """Test generated CEK length matches the content encryption algorithm."""
        encryption = JWEEncryption(enc)

        assert cek_bit_length(encryption) == bits
        assert len(generate_cek(encryption)) * 8 == bits

    def test_cek_is_fresh(self):
        """Test that two CEKs are never the same."""
        assert generate_cek(JWEEncryption.A256GCM) != generate_cek(JWEEncryption.A256GCM)

    def test_check_cek_length(self):
        """Test CEK override length validation."""
        cek = os.urandom(16)

        assert check_cek_length(JWEEncryption.A128GCM, cek) == cek
        with pytest.raises(InvalidParameterError):
            check_cek_length(JWEEncryption.A256GCM, cek)


class TestAlgorithmParsing:
    """Tests for alg/enc header value parsing."""

    def test_all_identifiers(self):
        """Test every documented identifier resolves."""
        for value in [
            "dir", "ECDH-ES", "ECDH-ES+A128KW", "ECDH-ES+A192KW", "ECDH-ES+A256KW",
            "RSA1_5", "RSA-OAEP", "RSA-OAEP-256", "RSA-OAEP-384", "RSA-OAEP-512",
            "PBES2-HS256+A128KW", "PBES2-HS384+A192KW", "PBES2-HS512+A256KW",
            "A128KW", "A192KW", "A256KW", "A128GCMKW", "A192GCMKW", "A256GCMKW",
            "SYMMETRIC_DEFAULT",
        ]:
            assert parse_algorithm(value).value == value

    def test_case_sensitive(self):
        """Test that identifiers are case-sensitive."""
        with pytest.raises(UnsupportedAlgorithmError) as exc_info:
            parse_algorithm("a256kw")

        assert exc_info.value.alg == "a256kw"

    def test_unknown_encryption(self):
        """Test unknown content encryption algorithm."""
        with pytest.raises(UnsupportedAlgorithmError) as exc_info:
            parse_encryption("C20P", alg="RSA-OAEP")

        assert exc_info.value.alg == "RSA-OAEP"

    @pytest.mark.parametrize(
        "alg,bits",
        [
            (JWEAlgorithm.A128KW, 128),
            (JWEAlgorithm.A192GCMKW, 192),
            (JWEAlgorithm.ECDH_ES_A256KW, 256),
            (JWEAlgorithm.PBES2_HS384_A192KW, 192),
        ],
    )
    def test_wrap_bit_length(self, alg, bits):
        """Test wrap strength parsed from the algorithm name."""
        assert wrap_bit_length(alg) == bits
