"""
Configuration Management for xmlseal
====================================

This module provides the option objects shared by the signed document
reader and writer, and the configuration of the digest utility.

``SignedXmlOptions`` is owned by the caller and may be shared by any number
of readers and writers. The key object it references is used as-is: it is
never copied or cached, and it must not be replaced or mutated while a sign
or verify call using it is in flight (single writer, many readers).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from .error_handling import ConfigurationError

logger = logging.getLogger(__name__)

DIGEST_METHODS = ("sha1", "sha256", "sha384", "sha512")
CANONICALIZATIONS = ("c14n", "exc-c14n")
HASH_ALGORITHMS = (
    "md5",
    "sha1",
    "sha256",
    "sha384",
    "sha512",
    "xxh64",
    "xxh3_64",
    "xxh3_128",
    "custom",
)


@dataclass
class SignedXmlOptions:
    """Options for the SignedXmlReader and SignedXmlWriter."""

    # RSA/EC private key (sign and verify) or public key (verify only)
    algo: Optional[Any] = None
    write_indented: bool = True
    allow_read_invalid: bool = True
    indent: str = "  "
    digest_method: str = "sha256"
    canonicalization: str = "c14n"

    def __post_init__(self):
        """Validate signing options."""
        if self.digest_method not in DIGEST_METHODS:
            raise ConfigurationError(
                f"digest_method must be one of {DIGEST_METHODS}",
                {"digest_method": self.digest_method},
            )

        if self.canonicalization not in CANONICALIZATIONS:
            raise ConfigurationError(
                f"canonicalization must be one of {CANONICALIZATIONS}",
                {"canonicalization": self.canonicalization},
            )

        if self.indent.strip():
            raise ConfigurationError(
                "indent must only contain whitespace", {"indent": repr(self.indent)}
            )

        logger.debug(
            f"Signed XML options configured: key={'set' if self.algo is not None else 'missing'}, "
            f"indented={self.write_indented}, allow_read_invalid={self.allow_read_invalid}, "
            f"digest={self.digest_method}, c14n={self.canonicalization}"
        )


@dataclass
class HashingConfig:
    """Configuration for the digest utility."""

    default_algorithm: str = "sha256"
    salt_length: int = 32
    uppercase_hex: bool = True
    chunk_size: int = 8192

    def __post_init__(self):
        """Validate hashing configuration."""
        if self.default_algorithm not in HASH_ALGORITHMS:
            raise ConfigurationError(
                f"default_algorithm must be one of {HASH_ALGORITHMS}",
                {"default_algorithm": self.default_algorithm},
            )

        if self.salt_length <= 0:
            raise ConfigurationError("salt_length must be positive")

        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")

        logger.debug(
            f"Hashing configured: default={self.default_algorithm}, salt_length={self.salt_length}"
        )


def create_signed_xml_options(
    key: Optional[Any] = None,
    key_file: Optional[Union[str, Path]] = None,
    password: Optional[bytes] = None,
    **overrides,
) -> SignedXmlOptions:
    """
    Factory function for creating signing options.

    Args:
        key: In-memory private or public key
        key_file: PEM file holding a private key (used when ``key`` is None)
        password: Password of an encrypted PEM key file
        **overrides: Values for any other SignedXmlOptions field

    Returns:
        Configured SignedXmlOptions instance
    """
    if key is not None and key_file is not None:
        raise ConfigurationError("Pass either key or key_file, not both")

    if key_file is not None:
        from .keys import load_private_key

        key = load_private_key(key_file, password=password)

    unknown = set(overrides) - (set(SignedXmlOptions.__dataclass_fields__) - {"algo"})
    if unknown:
        raise ConfigurationError(
            f"Unknown signing option(s): {sorted(unknown)}", {"unknown": sorted(unknown)}
        )

    return SignedXmlOptions(algo=key, **overrides)
