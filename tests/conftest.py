"""
Shared fixtures for signing and verification tests.

Key generation is comparatively slow, so the key pairs are session scoped.
Tests must not mutate them.
"""

import pytest
from cryptography.hazmat.primitives import serialization
from lxml import etree

from xmlseal import SignedXmlOptions, generate_key_pair


@pytest.fixture(scope="session")
def rsa_key():
    """RSA private key shared by the session."""
    return generate_key_pair("rsa", key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    """A second RSA key that did not sign anything."""
    return generate_key_pair("rsa", key_size=2048)


@pytest.fixture(scope="session")
def ec_key():
    """P-256 private key shared by the session."""
    return generate_key_pair("ec", curve="secp256r1")


@pytest.fixture
def options(rsa_key):
    """Default options (indented output, invalid documents readable)."""
    return SignedXmlOptions(algo=rsa_key)


@pytest.fixture
def strict_options(rsa_key):
    """Options that withhold the payload of invalid documents."""
    return SignedXmlOptions(algo=rsa_key, allow_read_invalid=False)


@pytest.fixture
def payload_tree():
    """The unsigned ``<Root><id>1</id><name>a</name></Root>`` document."""
    return etree.ElementTree(etree.fromstring("<Root><id>1</id><name>a</name></Root>"))


@pytest.fixture
def pem_file(tmp_path):
    """Write a key as PEM (private keys as PKCS#8) and return the path."""

    def write(key, name="signing.pem", password=None, public=False):
        if public:
            data = key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        else:
            encryption = (
                serialization.BestAvailableEncryption(password)
                if password
                else serialization.NoEncryption()
            )
            data = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=encryption,
            )
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return write
