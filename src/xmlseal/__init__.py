"""
xmlseal - Tamper-evident XML documents with enveloped signatures.

This library persists arbitrary structured data as signed XML documents and
later verifies and recovers that data, flagging or rejecting any document
whose content was altered after signing.

Key Features:
- Enveloped XML-DSig signatures (RSA and ECDSA, SHA-1/2 digests)
- Typed values, markup text, files and in-memory trees as inputs
- Configurable trust policy for reading documents with invalid signatures
- Indented or compact UTF-8 output
- Digest and random token helpers

Quick Start:
    >>> from xmlseal import SignedXmlOptions, SignedXmlReader, SignedXmlWriter, generate_key_pair
    >>>
    >>> options = SignedXmlOptions(algo=generate_key_pair())
    >>> SignedXmlWriter(options).write_object({"id": 1, "name": "a"}, "payload.xml")
    >>>
    >>> is_valid, data = SignedXmlReader(options).read_file("payload.xml", dict)
"""

from .codec import deserialize, parse_markup, serialize, to_tree
from .config import HashingConfig, SignedXmlOptions, create_signed_xml_options
from .error_handling import (
    ArgumentError,
    ConfigurationError,
    MalformedDocumentError,
    MappingError,
    StorageError,
    XmlSealError,
)
from .hashing import HashAlgorithm, HashData, Hashing
from .keys import generate_key_pair, load_private_key, load_public_key
from .reader import ReadResult, SignedXmlReader
from .signature import sign_document, verify_document
from .tokens import TokenGenerator, generate_token
from .writer import SignedXmlWriter

__version__ = "0.1.0"

__all__ = [
    # Reader / writer
    "SignedXmlOptions",
    "SignedXmlReader",
    "SignedXmlWriter",
    "ReadResult",
    "create_signed_xml_options",
    # Signature primitives
    "sign_document",
    "verify_document",
    # Codec
    "serialize",
    "deserialize",
    "to_tree",
    "parse_markup",
    # Keys
    "generate_key_pair",
    "load_private_key",
    "load_public_key",
    # Digests and tokens
    "Hashing",
    "HashAlgorithm",
    "HashData",
    "HashingConfig",
    "TokenGenerator",
    "generate_token",
    # Errors
    "XmlSealError",
    "ConfigurationError",
    "MalformedDocumentError",
    "MappingError",
    "ArgumentError",
    "StorageError",
    # Version info
    "__version__",
]
