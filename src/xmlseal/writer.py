"""
Signed Document Writer
======================

Signs values, markup text, markup files and in-memory trees, and persists
signed documents.

Output files are UTF-8 with a byte order mark and an XML declaration. When
``SignedXmlOptions.write_indented`` is set the tree is indented before it is
signed, so the bytes on disk are exactly the bytes that were signed;
otherwise whitespace between elements is dropped. Mixed content and
subtrees under ``xml:space="preserve"`` keep their whitespace in both modes.

Usage:
    from xmlseal import SignedXmlOptions, SignedXmlWriter, generate_key_pair

    writer = SignedXmlWriter(SignedXmlOptions(algo=generate_key_pair()))
    writer.write_object({"id": 1, "name": "a"}, "payload.xml")
"""

import codecs
import logging
from pathlib import Path
from typing import Any, Optional, Union

from lxml import etree

from .codec import detach_prolog, load_document, parse_markup, to_tree
from .config import SignedXmlOptions
from .error_handling import (
    ArgumentError,
    operation_context,
    safe_file_operation,
    validate_file_path,
)
from .formatting import compact
from .signature import as_tree, require_signing_key, sign_document, strip_signature

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class SignedXmlWriter:
    """Signs documents and writes them to files."""

    def __init__(self, options: SignedXmlOptions):
        if options is None:
            raise ArgumentError("SignedXmlOptions are required")
        self.options = options

    def _check_key(self) -> None:
        # Raised before any parsing or file access
        require_signing_key(self.options.algo)

    def _sign(self, tree: etree._ElementTree, for_output: bool = False) -> etree._ElementTree:
        indent = None
        if for_output:
            if self.options.write_indented:
                indent = self.options.indent
            else:
                compact(tree)

        return sign_document(
            tree,
            self.options.algo,
            digest_method=self.options.digest_method,
            canonicalization=self.options.canonicalization,
            indent=indent,
        )

    def _parse_raw(self, xml: str) -> etree._ElementTree:
        if xml is None:
            raise ArgumentError("xml is required")
        # Raw markup loses its declaration and any other prolog nodes
        return detach_prolog(parse_markup(xml))

    def _write_tree(self, tree: etree._ElementTree, target_file_path: PathLike) -> Path:
        path = validate_file_path(target_file_path)
        data = codecs.BOM_UTF8 + etree.tostring(tree, xml_declaration=True, encoding="UTF-8")
        safe_file_operation("write signed document", path, path.write_bytes, data)
        logger.debug(f"Wrote signed document to {path} ({len(data)} bytes)")
        return path

    def sign_object(self, document: Any, root_tag: Optional[str] = None) -> etree._ElementTree:
        """
        Serialize and sign a value.

        Args:
            document: The value to sign
            root_tag: Root element name (defaults to the class name or "Root")

        Returns:
            The signed ElementTree
        """
        self._check_key()
        with operation_context("sign object", type=type(document).__name__):
            return self._sign(to_tree(document, root_tag))

    def sign(self, document) -> None:
        """Sign an in-memory document in place."""
        self._check_key()
        with operation_context("sign document"):
            self._sign(as_tree(document))

    def sign_xml(self, xml: str) -> etree._ElementTree:
        """
        Sign markup text.

        The XML declaration and any other nodes before the root element are
        not carried over into the returned tree.
        """
        self._check_key()
        with operation_context("sign xml"):
            return self._sign(self._parse_raw(xml))

    def sign_file(self, source_file_path: PathLike) -> etree._ElementTree:
        """Load and sign a markup file; the file itself is not modified."""
        self._check_key()
        with operation_context("sign file", source=str(source_file_path)):
            return self._sign(load_document(source_file_path))

    def write_object(
        self, document: Any, target_file_path: PathLike, root_tag: Optional[str] = None
    ) -> Path:
        """Serialize, sign and write a value to a file."""
        self._check_key()
        with operation_context("write object", target=str(target_file_path)):
            tree = self._sign(to_tree(document, root_tag), for_output=True)
            return self._write_tree(tree, target_file_path)

    def write(self, document, target_file_path: PathLike) -> Path:
        """
        Sign an in-memory document, write it, then remove the signature again.

        The file carries the signature; the caller's tree does not, once this
        returns or raises.
        """
        self._check_key()
        tree = as_tree(document)
        with operation_context("write document", target=str(target_file_path)):
            self._sign(tree, for_output=True)
            try:
                return self._write_tree(tree, target_file_path)
            finally:
                strip_signature(tree)

    def write_xml(self, xml: str, target_file_path: PathLike) -> Path:
        """Sign markup text and write it to a file."""
        self._check_key()
        with operation_context("write xml", target=str(target_file_path)):
            tree = self._sign(self._parse_raw(xml), for_output=True)
            return self._write_tree(tree, target_file_path)

    def write_file(self, source_file_path: PathLike, target_file_path: PathLike) -> Path:
        """Sign a markup file and write the result to another (or the same) file."""
        self._check_key()
        with operation_context(
            "write file", source=str(source_file_path), target=str(target_file_path)
        ):
            tree = self._sign(load_document(source_file_path), for_output=True)
            return self._write_tree(tree, target_file_path)

    def to_string(self, document) -> str:
        """Serialize a (signed) document without reformatting it."""
        return etree.tostring(as_tree(document), encoding="unicode")
