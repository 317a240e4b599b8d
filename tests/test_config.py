"""
Tests for signing options and hashing configuration.
"""

import pytest

from xmlseal.config import (
    HashingConfig,
    SignedXmlOptions,
    create_signed_xml_options,
)
from xmlseal.error_handling import ConfigurationError


class TestSignedXmlOptions:
    """Test SignedXmlOptions defaults and validation."""

    def test_default_values(self):
        """Test default option values."""
        options = SignedXmlOptions()

        assert options.algo is None
        assert options.write_indented is True
        assert options.allow_read_invalid is True
        assert options.indent == "  "
        assert options.digest_method == "sha256"
        assert options.canonicalization == "c14n"

    def test_key_is_not_copied(self, rsa_key):
        """Test the options reference the caller's key object."""
        assert SignedXmlOptions(algo=rsa_key).algo is rsa_key

    @pytest.mark.parametrize("digest_method", ["sha1", "sha384", "sha512"])
    def test_supported_digests(self, digest_method):
        assert SignedXmlOptions(digest_method=digest_method).digest_method == digest_method

    def test_invalid_digest(self):
        with pytest.raises(ConfigurationError, match="digest_method"):
            SignedXmlOptions(digest_method="md5")

    def test_invalid_canonicalization(self):
        with pytest.raises(ConfigurationError, match="canonicalization"):
            SignedXmlOptions(canonicalization="c14n11")

    def test_indent_must_be_whitespace(self):
        with pytest.raises(ConfigurationError, match="whitespace"):
            SignedXmlOptions(indent="--")

    def test_options_are_mutable(self):
        """Test callers may flip the policy between calls."""
        options = SignedXmlOptions()
        options.allow_read_invalid = False
        assert options.allow_read_invalid is False


class TestCreateSignedXmlOptions:
    """Test the options factory."""

    def test_with_key(self, rsa_key):
        options = create_signed_xml_options(key=rsa_key, write_indented=False)

        assert options.algo is rsa_key
        assert options.write_indented is False

    def test_with_key_file(self, rsa_key, pem_file):
        key_file = pem_file(rsa_key)
        options = create_signed_xml_options(key_file=key_file)

        assert options.algo.private_numbers() == rsa_key.private_numbers()

    def test_with_encrypted_key_file(self, ec_key, pem_file):
        key_file = pem_file(ec_key, password=b"pw")
        options = create_signed_xml_options(key_file=key_file, password=b"pw")

        assert options.algo.private_numbers() == ec_key.private_numbers()

    def test_key_and_key_file(self, rsa_key, tmp_path):
        with pytest.raises(ConfigurationError, match="not both"):
            create_signed_xml_options(key=rsa_key, key_file=tmp_path / "signing.pem")

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError, match="Unknown signing option"):
            create_signed_xml_options(compress=True)

    def test_algo_override_rejected(self, rsa_key):
        with pytest.raises(ConfigurationError):
            create_signed_xml_options(algo=rsa_key)


class TestHashingConfig:
    """Test HashingConfig defaults and validation."""

    def test_default_values(self):
        config = HashingConfig()

        assert config.default_algorithm == "sha256"
        assert config.salt_length == 32
        assert config.uppercase_hex is True

    def test_invalid_algorithm(self):
        with pytest.raises(ConfigurationError):
            HashingConfig(default_algorithm="crc32")

    @pytest.mark.parametrize("field", ["salt_length", "chunk_size"])
    def test_non_positive_sizes(self, field):
        with pytest.raises(ConfigurationError):
            HashingConfig(**{field: 0})
