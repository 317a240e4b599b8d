"""
Digest Utility
==============

Hex digests of text, bytes and binary streams, salted password-style
hashes, and random salts.

Supported algorithms: md5, sha1, sha256, sha384, sha512 (hashlib), xxh64,
xxh3_64, xxh3_128 (xxhash, non-cryptographic) and ``custom``. The custom
algorithm is supplied as a factory: a zero-argument callable returning a
fresh hashlib-style object (``update``/``digest``) every time a digest is
computed.

Usage:
    from xmlseal.hashing import Hashing, HashAlgorithm

    hashing = Hashing()
    hashing.generate_hash("hello", HashAlgorithm.SHA512)
    secured = hashing.generate_secure_hash("password")
    hashing.generate_secure_hash("password", secured.salt).value == secured.value
"""

import base64
import enum
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Union

import xxhash

from .config import HashingConfig
from .error_handling import ArgumentError, ConfigurationError

logger = logging.getLogger(__name__)


class HashAlgorithm(str, enum.Enum):
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"
    XXH64 = "xxh64"
    XXH3_64 = "xxh3_64"
    XXH3_128 = "xxh3_128"
    CUSTOM = "custom"


_FACTORIES = {
    HashAlgorithm.MD5: hashlib.md5,
    HashAlgorithm.SHA1: hashlib.sha1,
    HashAlgorithm.SHA256: hashlib.sha256,
    HashAlgorithm.SHA384: hashlib.sha384,
    HashAlgorithm.SHA512: hashlib.sha512,
    HashAlgorithm.XXH64: xxhash.xxh64,
    HashAlgorithm.XXH3_64: xxhash.xxh3_64,
    HashAlgorithm.XXH3_128: xxhash.xxh3_128,
}


@dataclass
class HashData:
    """A salted hash and the salt it was computed with."""

    value: str
    salt: bytes


HashInput = Union[str, bytes, bytearray, memoryview, BinaryIO]


class Hashing:
    """Computes digests with a selectable or custom algorithm."""

    def __init__(
        self,
        config: Optional[HashingConfig] = None,
        factory: Optional[Callable[[], object]] = None,
    ):
        self.config = config or HashingConfig()
        self._factory = None
        if factory is not None:
            self.set_custom_hashing_method(factory)

    def set_custom_hashing_method(self, factory: Callable[[], object]) -> None:
        """
        Register the factory used by the ``custom`` algorithm.

        Raises:
            ConfigurationError: If factory is None or not callable
        """
        if factory is None:
            raise ConfigurationError("The custom hashing factory cannot be None")
        if not callable(factory):
            raise ConfigurationError(
                "The custom hashing factory must be callable",
                {"factory_type": type(factory).__name__},
            )
        self._factory = factory
        logger.debug(f"Registered custom hashing factory {getattr(factory, '__name__', factory)!r}")

    def _new_hasher(self, algorithm: HashAlgorithm):
        if algorithm is not HashAlgorithm.CUSTOM:
            return _FACTORIES[algorithm]()

        if self._factory is None:
            raise ConfigurationError(
                "The custom hash algorithm is not set; call set_custom_hashing_method first"
            )
        hasher = self._factory()
        if hasher is None:
            raise ConfigurationError("The custom hashing factory returned None")
        return hasher

    def _hex(self, digest: bytes) -> str:
        text = digest.hex()
        return text.upper() if self.config.uppercase_hex else text

    def generate_hash(self, data: HashInput, algorithm: Optional[Union[HashAlgorithm, str]] = None) -> str:
        """
        Compute the hex digest of text (UTF-8), bytes or a binary stream.

        Streams are rewound to their start when seekable and read in chunks.

        Args:
            data: Input to hash
            algorithm: Algorithm to use (defaults to the configured one)

        Returns:
            Hex string of the digest
        """
        if data is None:
            raise ArgumentError("Data to hash cannot be None")

        try:
            algorithm = HashAlgorithm(algorithm or self.config.default_algorithm)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported hash algorithm: {algorithm}") from e

        hasher = self._new_hasher(algorithm)

        if isinstance(data, str):
            hasher.update(data.encode("utf-8"))
        elif isinstance(data, (bytes, bytearray, memoryview)):
            hasher.update(bytes(data))
        elif hasattr(data, "read"):
            if getattr(data, "seekable", lambda: False)():
                data.seek(0)
            while chunk := data.read(self.config.chunk_size):
                hasher.update(chunk)
        else:
            raise ArgumentError(
                f"Cannot hash value of type {type(data).__name__}",
                {"type": type(data).__name__},
            )

        return self._hex(hasher.digest())

    def generate_sha256_hash(self, data: HashInput) -> str:
        return self.generate_hash(data, HashAlgorithm.SHA256)

    def generate_sha384_hash(self, data: HashInput) -> str:
        return self.generate_hash(data, HashAlgorithm.SHA384)

    def generate_sha512_hash(self, data: HashInput) -> str:
        return self.generate_hash(data, HashAlgorithm.SHA512)

    def generate_md5_hash(self, data: HashInput) -> str:
        return self.generate_hash(data, HashAlgorithm.MD5)

    def generate_custom_hash(self, data: HashInput) -> str:
        return self.generate_hash(data, HashAlgorithm.CUSTOM)

    def generate_secure_hash(self, value: str, salt: Optional[bytes] = None) -> HashData:
        """
        Compute SHA-256 over ``value`` followed by the base64 encoded salt.

        Args:
            value: Text to hash
            salt: Salt to reuse (e.g. to check a stored hash); a new one is generated if omitted

        Returns:
            HashData with the hex hash and the salt used
        """
        if value is None:
            raise ArgumentError("Value to hash cannot be None")
        if salt is None:
            salt = self.generate_salt()

        salted = value + base64.b64encode(salt).decode("ascii")
        return HashData(self.generate_sha256_hash(salted), salt)

    def generate_salt(self, length: Optional[int] = None) -> bytes:
        """Generate ``length`` random non-zero bytes (defaults to the configured salt length)."""
        if length is None:
            length = self.config.salt_length
        if length <= 0:
            raise ArgumentError("Salt length must be positive", {"length": length})

        return bytes(secrets.choice(range(1, 256)) for _ in range(length))
