"""
Enveloped XML Signatures
========================

This module signs markup trees and verifies the signatures embedded in them.

A signed document carries exactly one ``Signature`` element (XML-DSig
namespace) as the last child of its root element. The signature covers the
root element subtree through a single reference with an empty URI and the
enveloped-signature transform, so the ``Signature`` element itself is
excluded from the digest it carries.

Signing:
1. Remove any ``Signature`` children already present on the root
2. Append a ``Signature`` skeleton as the last child of the root
3. Digest the canonical form of the document with that element excluded
4. Canonicalize ``SignedInfo`` and sign it with the private key

Verification repeats steps 3 and 4 against the first ``Signature`` element
in document order and compares the results with the embedded values.
Neither operation touches the key object beyond reading it.
"""

import base64
import binascii
import copy
import hmac
import itertools
import logging
from typing import Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from lxml import etree

from .error_handling import ArgumentError, ConfigurationError, MalformedDocumentError
from .formatting import indent as indent_tree
from .keys import PRIVATE_KEY_TYPES, PUBLIC_KEY_TYPES

logger = logging.getLogger(__name__)

DSIG_NAMESPACE = "http://www.w3.org/2000/09/xmldsig#"
SIGNATURE_TAG = f"{{{DSIG_NAMESPACE}}}Signature"

C14N = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
C14N_WITH_COMMENTS = C14N + "#WithComments"
EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
EXC_C14N_WITH_COMMENTS = EXC_C14N + "WithComments"
ENVELOPED_SIGNATURE = DSIG_NAMESPACE + "enveloped-signature"

_XMLDSIG_MORE = "http://www.w3.org/2001/04/xmldsig-more#"
_XMLENC = "http://www.w3.org/2001/04/xmlenc#"

# algorithm URI -> (exclusive, with_comments)
CANONICALIZATION_METHODS = {
    C14N: (False, False),
    C14N_WITH_COMMENTS: (False, True),
    EXC_C14N: (True, False),
    EXC_C14N_WITH_COMMENTS: (True, True),
}
CANONICALIZATION_URIS = {"c14n": C14N, "exc-c14n": EXC_C14N}

DIGEST_URIS = {
    "sha1": DSIG_NAMESPACE + "sha1",
    "sha256": _XMLENC + "sha256",
    "sha384": _XMLDSIG_MORE + "sha384",
    "sha512": _XMLENC + "sha512",
}
_HASHES = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}
DIGEST_METHODS = {uri: _HASHES[name] for name, uri in DIGEST_URIS.items()}

# (key family, digest name) -> signature method URI
SIGNATURE_URIS = {
    ("rsa", "sha1"): DSIG_NAMESPACE + "rsa-sha1",
    ("rsa", "sha256"): _XMLDSIG_MORE + "rsa-sha256",
    ("rsa", "sha384"): _XMLDSIG_MORE + "rsa-sha384",
    ("rsa", "sha512"): _XMLDSIG_MORE + "rsa-sha512",
    ("ecdsa", "sha1"): _XMLDSIG_MORE + "ecdsa-sha1",
    ("ecdsa", "sha256"): _XMLDSIG_MORE + "ecdsa-sha256",
    ("ecdsa", "sha384"): _XMLDSIG_MORE + "ecdsa-sha384",
    ("ecdsa", "sha512"): _XMLDSIG_MORE + "ecdsa-sha512",
}
SIGNATURE_METHODS = {
    uri: (family, _HASHES[digest]) for (family, digest), uri in SIGNATURE_URIS.items()
}


def _ds(name: str) -> str:
    return f"{{{DSIG_NAMESPACE}}}{name}"


def as_tree(document) -> etree._ElementTree:
    """Accept an ElementTree or an element and return the owning ElementTree."""
    if document is None:
        raise ArgumentError("A markup document is required")
    if isinstance(document, etree._ElementTree):
        if document.getroot() is None:
            raise MalformedDocumentError("The document has no root element")
        return document
    if isinstance(document, etree._Element):
        return document.getroottree()
    raise ArgumentError(
        f"Expected an lxml ElementTree or Element, got {type(document).__name__}"
    )


def require_signing_key(key) -> Tuple[object, str]:
    """
    Resolve the configured key for signing.

    Returns:
        Tuple of (private key, key family)

    Raises:
        ConfigurationError: If no key, a public key or an unsupported key is configured
    """
    if key is None:
        raise ConfigurationError("A signing key must be set (SignedXmlOptions.algo)")
    if isinstance(key, rsa.RSAPrivateKey):
        return key, "rsa"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key, "ecdsa"
    if isinstance(key, PUBLIC_KEY_TYPES):
        raise ConfigurationError(
            "Signing requires a private key, but only a public key is configured",
            {"key_type": type(key).__name__},
        )
    raise ConfigurationError(
        f"Unsupported key type: {type(key).__name__}", {"key_type": type(key).__name__}
    )


def require_verification_key(key):
    """
    Resolve the configured key for verification.

    Returns:
        The public key (derived from a private key when necessary)
    """
    if key is None:
        raise ConfigurationError("A verification key must be set (SignedXmlOptions.algo)")
    if isinstance(key, PRIVATE_KEY_TYPES):
        return key.public_key()
    if isinstance(key, PUBLIC_KEY_TYPES):
        return key
    raise ConfigurationError(
        f"Unsupported key type: {type(key).__name__}", {"key_type": type(key).__name__}
    )


def canonicalize(node, algorithm: str = C14N, with_comments: Optional[bool] = None) -> bytes:
    """
    Serialize an element or document in canonical form.

    Args:
        node: Element or ElementTree to canonicalize
        algorithm: Canonicalization method URI
        with_comments: Override the comment handling implied by the URI

    Returns:
        Canonical UTF-8 bytes
    """
    try:
        exclusive, comments = CANONICALIZATION_METHODS[algorithm]
    except KeyError:
        raise MalformedDocumentError(
            f"Unsupported canonicalization method: {algorithm}", {"algorithm": algorithm}
        ) from None

    if with_comments is not None:
        comments = with_comments

    return etree.tostring(node, method="c14n", exclusive=exclusive, with_comments=comments)


def _detach(element) -> None:
    """Remove an element from its parent, leaving the text that followed it in place."""
    parent = element.getparent()
    if element.tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + element.tail
        else:
            parent.text = (parent.text or "") + element.tail
    parent.remove(element)


def _without_signature(tree: etree._ElementTree, signature) -> etree._ElementTree:
    """Apply the enveloped-signature transform to a copy of ``tree``."""
    root = tree.getroot()
    position = next(i for i, node in enumerate(root.iter()) if node is signature)

    copied = copy.deepcopy(tree)
    _detach(next(itertools.islice(copied.getroot().iter(), position, None)))
    return copied


def find_signature(document):
    """
    Return the first Signature element in document order.

    Raises:
        MalformedDocumentError: If the document carries no signature
    """
    root = as_tree(document).getroot()
    signature = next(root.iter(SIGNATURE_TAG), None)
    if signature is None:
        raise MalformedDocumentError(
            "The document contains no Signature element", {"root": root.tag}
        )
    if signature.getparent() is None:
        raise MalformedDocumentError("A Signature element cannot be the document root")
    return signature


def strip_signature(document) -> int:
    """
    Remove every Signature element that is a direct child of the root.

    Returns:
        Number of elements removed
    """
    root = as_tree(document).getroot()
    signatures = [child for child in root if child.tag == SIGNATURE_TAG]
    for signature in signatures:
        _detach(signature)
    return len(signatures)


def _child(parent, name: str):
    element = parent.find(_ds(name))
    if element is None:
        raise MalformedDocumentError(
            f"Signature is missing the {name} element", {"parent": etree.QName(parent).localname}
        )
    return element


def _algorithm(parent, name: str) -> str:
    algorithm = _child(parent, name).get("Algorithm")
    if not algorithm:
        raise MalformedDocumentError(f"{name} has no Algorithm attribute")
    return algorithm


def _decode_value(element) -> bytes:
    text = "".join((element.text or "").split())
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedDocumentError(
            f"{etree.QName(element).localname} is not valid base64", {"error": str(e)}
        ) from e


def _digest(data: bytes, hash_type) -> bytes:
    hasher = hashes.Hash(hash_type())
    hasher.update(data)
    return hasher.finalize()


def _reference_digest(tree: etree._ElementTree, signature, reference) -> bytes:
    """Compute the digest of the data a Reference element points at."""
    uri = reference.get("URI")
    if uri != "":
        raise MalformedDocumentError(
            "Only whole-document references (URI=\"\") are supported", {"uri": uri}
        )

    digest_uri = _algorithm(reference, "DigestMethod")
    if digest_uri not in DIGEST_METHODS:
        raise MalformedDocumentError(
            f"Unsupported digest method: {digest_uri}", {"algorithm": digest_uri}
        )

    c14n = C14N
    enveloped = False
    for transform in reference.iterfind(f"{_ds('Transforms')}/{_ds('Transform')}"):
        algorithm = transform.get("Algorithm")
        if algorithm == ENVELOPED_SIGNATURE:
            enveloped = True
        elif algorithm in CANONICALIZATION_METHODS:
            c14n = algorithm
        else:
            raise MalformedDocumentError(
                f"Unsupported transform: {algorithm}", {"algorithm": algorithm}
            )

    document = _without_signature(tree, signature) if enveloped else tree
    # Same-document references never include comments
    data = canonicalize(document.getroot(), c14n, with_comments=False)
    return _digest(data, DIGEST_METHODS[digest_uri])


def _build_signature(signature_method: str, digest_method: str, c14n: str):
    signature = etree.Element(SIGNATURE_TAG, nsmap={None: DSIG_NAMESPACE})
    signed_info = etree.SubElement(signature, _ds("SignedInfo"))
    etree.SubElement(signed_info, _ds("CanonicalizationMethod"), Algorithm=c14n)
    etree.SubElement(signed_info, _ds("SignatureMethod"), Algorithm=signature_method)

    reference = etree.SubElement(signed_info, _ds("Reference"), URI="")
    transforms = etree.SubElement(reference, _ds("Transforms"))
    etree.SubElement(transforms, _ds("Transform"), Algorithm=ENVELOPED_SIGNATURE)
    etree.SubElement(reference, _ds("DigestMethod"), Algorithm=digest_method)
    etree.SubElement(reference, _ds("DigestValue"))

    etree.SubElement(signature, _ds("SignatureValue"))
    return signature


def _sign_bytes(private_key, family: str, hash_type, data: bytes) -> bytes:
    if family == "rsa":
        return private_key.sign(data, padding.PKCS1v15(), hash_type())

    # XML-DSig carries ECDSA signatures as raw r || s, not DER
    r, s = decode_dss_signature(private_key.sign(data, ec.ECDSA(hash_type())))
    size = (private_key.curve.key_size + 7) // 8
    return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def _verify_bytes(public_key, family: str, hash_type, value: bytes, data: bytes) -> bool:
    try:
        if family == "rsa":
            if not isinstance(public_key, rsa.RSAPublicKey):
                logger.warning("Document was signed with RSA but the configured key is not RSA")
                return False
            public_key.verify(value, data, padding.PKCS1v15(), hash_type())
        else:
            if not isinstance(public_key, ec.EllipticCurvePublicKey):
                logger.warning("Document was signed with ECDSA but the configured key is not EC")
                return False
            if not value or len(value) % 2:
                return False
            half = len(value) // 2
            r = int.from_bytes(value[:half], "big")
            s = int.from_bytes(value[half:], "big")
            public_key.verify(encode_dss_signature(r, s), data, ec.ECDSA(hash_type()))
    except InvalidSignature:
        return False
    return True


def sign_document(
    document,
    key,
    digest_method: str = "sha256",
    canonicalization: str = "c14n",
    indent: Optional[str] = None,
) -> etree._ElementTree:
    """
    Embed an enveloped signature into ``document``.

    The document is modified in place: a Signature element is appended as
    the last child of the root. Signature elements already present on the
    root are removed first.

    Args:
        document: ElementTree or root element to sign
        key: RSA or EC private key
        digest_method: Digest name ("sha1", "sha256", "sha384", "sha512")
        canonicalization: "c14n" or "exc-c14n" for SignedInfo
        indent: When set, indent element-only content with this unit before
            digesting, so the signed form is the indented form

    Returns:
        The signed ElementTree
    """
    private_key, family = require_signing_key(key)
    if digest_method not in DIGEST_URIS:
        raise ConfigurationError(f"Unsupported digest method: {digest_method}")
    if canonicalization not in CANONICALIZATION_URIS:
        raise ConfigurationError(f"Unsupported canonicalization: {canonicalization}")

    tree = as_tree(document)
    root = tree.getroot()

    removed = strip_signature(tree)
    if removed:
        logger.warning(f"Removed {removed} existing signature(s) before re-signing")

    c14n = CANONICALIZATION_URIS[canonicalization]
    signature = _build_signature(
        SIGNATURE_URIS[(family, digest_method)], DIGEST_URIS[digest_method], c14n
    )
    root.append(signature)

    if indent is not None:
        indent_tree(tree, indent)

    signed_info = signature.find(_ds("SignedInfo"))
    reference = signed_info.find(_ds("Reference"))
    digest = _reference_digest(tree, signature, reference)
    reference.find(_ds("DigestValue")).text = base64.b64encode(digest).decode("ascii")

    value = _sign_bytes(private_key, family, _HASHES[digest_method], canonicalize(signed_info, c14n))
    signature.find(_ds("SignatureValue")).text = base64.b64encode(value).decode("ascii")

    logger.debug(
        f"Signed document <{etree.QName(root).localname}> with {family}-{digest_method} "
        f"({len(digest)}-byte digest)"
    )
    return tree


def verify_document(document, key) -> bool:
    """
    Verify the enveloped signature embedded in ``document``.

    The input is not modified. A digest or signature mismatch yields False;
    a document without a Signature element, or with one that cannot be
    interpreted, raises MalformedDocumentError.

    Args:
        document: ElementTree or root element to verify
        key: Private key (its public half is used) or public key

    Returns:
        True if the signature is valid; otherwise False
    """
    public_key = require_verification_key(key)
    tree = as_tree(document)
    signature = find_signature(tree)

    signed_info = _child(signature, "SignedInfo")
    c14n = _algorithm(signed_info, "CanonicalizationMethod")
    if c14n not in CANONICALIZATION_METHODS:
        raise MalformedDocumentError(
            f"Unsupported canonicalization method: {c14n}", {"algorithm": c14n}
        )

    signature_method = _algorithm(signed_info, "SignatureMethod")
    if signature_method not in SIGNATURE_METHODS:
        raise MalformedDocumentError(
            f"Unsupported signature method: {signature_method}",
            {"algorithm": signature_method},
        )
    family, hash_type = SIGNATURE_METHODS[signature_method]

    references = signed_info.findall(_ds("Reference"))
    if not references:
        raise MalformedDocumentError("SignedInfo contains no Reference")

    for reference in references:
        expected = _decode_value(_child(reference, "DigestValue"))
        actual = _reference_digest(tree, signature, reference)
        if not hmac.compare_digest(expected, actual):
            logger.warning("Signature verification failed: reference digest mismatch")
            return False

    value = _decode_value(_child(signature, "SignatureValue"))
    is_valid = _verify_bytes(public_key, family, hash_type, value, canonicalize(signed_info, c14n))

    if not is_valid:
        logger.warning("Signature verification failed: signature value mismatch")
    else:
        logger.debug("Signature verified")
    return is_valid
