"""
Signing Keys
============

This module creates and loads the asymmetric keys used to sign and verify
documents. Issuing, storing and rotating keys is left to the application;
keys generated here live only in memory until the caller persists them.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from .error_handling import ConfigurationError, safe_file_operation

logger = logging.getLogger(__name__)

_CURVES = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}

PRIVATE_KEY_TYPES = (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)
PUBLIC_KEY_TYPES = (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)


def generate_key_pair(kind: str = "rsa", key_size: int = 2048, curve: str = "secp256r1"):
    """
    Generate a new private key.

    Args:
        kind: "rsa" or "ec"
        key_size: RSA modulus size in bits
        curve: Named curve for EC keys

    Returns:
        The private key; its public half is available via ``public_key()``
    """
    if kind == "rsa":
        if key_size < 1024:
            raise ConfigurationError("RSA keys must be at least 1024 bits", {"key_size": key_size})
        key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    elif kind == "ec":
        if curve not in _CURVES:
            raise ConfigurationError(
                f"Unsupported curve: {curve}", {"supported": sorted(_CURVES)}
            )
        key = ec.generate_private_key(_CURVES[curve]())
    else:
        raise ConfigurationError(f"Unsupported key kind: {kind}", {"kind": kind})

    logger.info(f"Generated new {kind} signing key")
    return key


def load_private_key(path: Union[str, Path], password: Optional[bytes] = None):
    """Load a PEM encoded private key."""
    path = Path(path)
    data = safe_file_operation("read private key", path, path.read_bytes)
    try:
        key = serialization.load_pem_private_key(data, password=password)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(
            f"Cannot load private key from {path}: {e}", {"key_file": str(path)}
        ) from e

    if not isinstance(key, PRIVATE_KEY_TYPES):
        raise ConfigurationError(
            f"Unsupported private key type: {type(key).__name__}", {"key_file": str(path)}
        )

    logger.debug(f"Loaded private key from {path}")
    return key


def load_public_key(path: Union[str, Path]):
    """Load a PEM encoded public key."""
    path = Path(path)
    data = safe_file_operation("read public key", path, path.read_bytes)
    try:
        key = serialization.load_pem_public_key(data)
    except ValueError as e:
        raise ConfigurationError(
            f"Cannot load public key from {path}: {e}", {"key_file": str(path)}
        ) from e

    if not isinstance(key, PUBLIC_KEY_TYPES):
        raise ConfigurationError(
            f"Unsupported public key type: {type(key).__name__}", {"key_file": str(path)}
        )

    logger.debug(f"Loaded public key from {path}")
    return key

