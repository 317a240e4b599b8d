"""
Signed Document Reader
======================

Verifies signed documents and reads their payload back into typed values.

``read*`` applies the trust policy from ``SignedXmlOptions``: when the
signature is invalid the payload is still returned if
``allow_read_invalid`` is set, and withheld otherwise. A document without
any signature is malformed input and raises instead of reading as invalid.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Optional, Type, TypeVar, Union

from .codec import deserialize, load_document, parse_markup
from .config import SignedXmlOptions
from .error_handling import ArgumentError, operation_context
from .signature import as_tree, require_verification_key, verify_document

logger = logging.getLogger(__name__)

T = TypeVar("T")
PathLike = Union[str, Path]


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a read: the verification result and the payload, if released."""

    is_valid: bool
    value: Optional[T] = None

    def __iter__(self):
        # Allows ``is_valid, value = reader.read(...)``
        yield self.is_valid
        yield self.value

    @property
    def has_value(self) -> bool:
        return self.value is not None


class SignedXmlReader:
    """Verifies document signatures and reads their data."""

    def __init__(self, options: SignedXmlOptions):
        if options is None:
            raise ArgumentError("SignedXmlOptions are required")
        self.options = options

    def _check_key(self) -> None:
        # Raised before any parsing or file access
        require_verification_key(self.options.algo)

    def _read(self, tree, target_type: Type[T], root_tag: Optional[str]) -> ReadResult[T]:
        is_valid = verify_document(tree, self.options.algo)
        if is_valid:
            return ReadResult(True, deserialize(tree, target_type, root_tag))

        if not self.options.allow_read_invalid:
            logger.warning("Signature invalid; payload withheld (allow_read_invalid=False)")
            return ReadResult(False, None)

        logger.warning("Signature invalid; returning payload because allow_read_invalid=True")
        return ReadResult(False, deserialize(tree, target_type, root_tag))

    def verify(self, document) -> bool:
        """Verify the signature of an in-memory document."""
        self._check_key()
        return verify_document(as_tree(document), self.options.algo)

    def verify_xml(self, xml: str) -> bool:
        """Verify the signature of markup text."""
        if xml is None:
            raise ArgumentError("xml is required")
        self._check_key()
        return verify_document(parse_markup(xml), self.options.algo)

    def verify_file(self, source_file_path: PathLike) -> bool:
        """Verify the signature of a markup file."""
        self._check_key()
        with operation_context("verify file", source=str(source_file_path)):
            return verify_document(load_document(source_file_path), self.options.algo)

    def read(self, document, target_type: Type[T], root_tag: Optional[str] = None) -> ReadResult[T]:
        """
        Verify an in-memory document and read it into ``target_type``.

        Args:
            document: ElementTree or root element
            target_type: Type to deserialize into
            root_tag: Expected root element name for dataclass targets

        Returns:
            ReadResult with the verification result and the value (None when withheld)
        """
        self._check_key()
        with operation_context("read document", type=getattr(target_type, "__name__", str(target_type))):
            return self._read(as_tree(document), target_type, root_tag)

    def read_xml(self, xml: str, target_type: Type[T], root_tag: Optional[str] = None) -> ReadResult[T]:
        """Verify markup text and read it into ``target_type``."""
        if xml is None:
            raise ArgumentError("xml is required")
        self._check_key()
        with operation_context("read xml"):
            return self._read(parse_markup(xml), target_type, root_tag)

    def read_file(
        self, source_file_path: PathLike, target_type: Type[T], root_tag: Optional[str] = None
    ) -> ReadResult[T]:
        """Verify a markup file and read it into ``target_type``."""
        self._check_key()
        with operation_context("read file", source=str(source_file_path)):
            return self._read(load_document(source_file_path), target_type, root_tag)
