"""
Document Codec
==============

Converts typed Python values to and from markup trees, and parses markup
text and files into trees.

Value mapping:
- Dataclasses: one child element per field, in declaration order
- Mappings: one child element per key (keys must be valid XML names)
- Lists, tuples and sets: one child element per item
- Scalars (str, int, float, bool, Decimal, bytes, dates, UUID, Enum): element text
- None: the element is omitted

Deserialization is driven by the target type's hints. Child elements that
the target type does not know about are ignored, in particular the embedded
Signature element, so a signed document reads back exactly like the value
that produced it.
"""

import base64
import binascii
import collections.abc
import dataclasses
import enum
import logging
import re
import types
import uuid
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional, Union, get_args, get_origin, get_type_hints

from lxml import etree

from .error_handling import (
    ArgumentError,
    MalformedDocumentError,
    MappingError,
    safe_file_operation,
    validate_file_path,
    with_error_handling,
)
from .signature import DSIG_NAMESPACE

logger = logging.getLogger(__name__)

DEFAULT_ROOT_TAG = "Root"
ITEM_TAG = "item"

_NAME_PATTERN = re.compile(r"^[^\W\d][\w.\-]*$")
_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)
_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
)
_SET_ORIGINS = (set, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parser(encoding: Optional[str] = None) -> etree.XMLParser:
    # External entities and network access stay disabled; whitespace is kept
    # so that a parsed document canonicalizes exactly like the signed one.
    return etree.XMLParser(
        encoding=encoding,
        resolve_entities=False,
        no_network=True,
        remove_blank_text=False,
    )


def parse_markup(markup: Union[str, bytes]) -> etree._ElementTree:
    """
    Parse markup text into an ElementTree.

    Args:
        markup: Markup as text or as encoded bytes

    Raises:
        ArgumentError: If markup is None or not text/bytes
        MalformedDocumentError: If the markup is not well-formed
    """
    if markup is None:
        raise ArgumentError("Markup text is required")

    if isinstance(markup, str):
        data, parser = markup.encode("utf-8"), _parser("utf-8")
    elif isinstance(markup, (bytes, bytearray)):
        data, parser = bytes(markup), _parser()
    else:
        raise ArgumentError(f"Expected markup text or bytes, got {type(markup).__name__}")

    if not data.strip():
        raise MalformedDocumentError("Markup is empty")

    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise MalformedDocumentError(f"Unparsable markup: {e}", {"error": str(e)}) from e

    return root.getroottree()


def load_document(file_path: Union[str, Path]) -> etree._ElementTree:
    """Read and parse a markup file."""
    path = validate_file_path(file_path, must_exist=True)
    data = safe_file_operation("read document", path, path.read_bytes)
    try:
        return parse_markup(data)
    except MalformedDocumentError as e:
        e.context["file_path"] = str(path)
        raise


def detach_prolog(document: etree._ElementTree) -> etree._ElementTree:
    """Return a new tree holding only the root element (no declaration, no prolog nodes)."""
    root = document.getroot()
    return etree.fromstring(etree.tostring(root, with_tail=False), _parser()).getroottree()


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise MappingError(f"Not a valid element name: {name!r}", {"name": repr(name)})
    return name


def root_tag_for(value_or_type: Any) -> str:
    """Resolve the root element name for a value or a type."""
    cls = value_or_type if isinstance(value_or_type, type) else type(value_or_type)
    explicit = getattr(cls, "__xml_root__", None)
    if explicit:
        return explicit
    if dataclasses.is_dataclass(cls):
        return cls.__name__
    if not isinstance(value_or_type, type) and _is_plain_object(value_or_type):
        return cls.__name__
    return DEFAULT_ROOT_TAG


def _is_plain_object(value: Any) -> bool:
    return hasattr(value, "__dict__") and not isinstance(value, (type, types.ModuleType))


def _scalar_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, (int, Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return None


def _item_tag(item: Any) -> str:
    if dataclasses.is_dataclass(item) or getattr(type(item), "__xml_root__", None):
        return root_tag_for(item)
    return ITEM_TAG


def _append(parent, tag: str, value: Any) -> None:
    if value is None:
        return
    _fill(etree.SubElement(parent, _check_name(tag)), value)


def _fill(element, value: Any) -> None:
    text = _scalar_text(value)
    if text is not None:
        element.text = text
    elif dataclasses.is_dataclass(value):
        for field in dataclasses.fields(value):
            _append(element, field.name, getattr(value, field.name))
    elif isinstance(value, collections.abc.Mapping):
        for key, item in value.items():
            _append(element, key, item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            child = etree.SubElement(element, _item_tag(item))
            if item is not None:
                _fill(child, item)
    elif _is_plain_object(value):
        for name, attribute in vars(value).items():
            if not name.startswith("_"):
                _append(element, name, attribute)
    else:
        raise MappingError(
            f"Cannot serialize value of type {type(value).__name__}",
            {"type": type(value).__name__, "element": element.tag},
        )


@with_error_handling(MappingError)
def to_tree(value: Any, root_tag: Optional[str] = None) -> etree._ElementTree:
    """
    Serialize a value into a new ElementTree.

    Args:
        value: Value to serialize
        root_tag: Name of the root element (defaults to the class name or "Root")
    """
    if value is None:
        raise ArgumentError("Cannot serialize None")

    root = etree.Element(_check_name(root_tag or root_tag_for(value)))
    _fill(root, value)
    logger.debug(f"Serialized {type(value).__name__} as <{root.tag}> with {len(root)} children")
    return etree.ElementTree(root)


def serialize(value: Any, root_tag: Optional[str] = None) -> str:
    """Serialize a value into markup text."""
    return etree.tostring(to_tree(value, root_tag), encoding="unicode")


# ---------------------------------------------------------------------------
# Deserialization
# ---------------------------------------------------------------------------


def _localname(element) -> str:
    return etree.QName(element).localname


def _payload_children(element):
    """Child elements, skipping comments, processing instructions and signatures."""
    return [
        child
        for child in element
        if isinstance(child.tag, str) and etree.QName(child).namespace != DSIG_NAMESPACE
    ]


def _is_empty(element) -> bool:
    return not (element.text or "").strip() and not _payload_children(element)


def _allows_none(target: Any) -> bool:
    return get_origin(target) in _UNION_TYPES and type(None) in get_args(target)


def _generic(element) -> Any:
    children = _payload_children(element)
    if not children:
        return element.text or ""

    result = {}
    for child in children:
        name, value = _localname(child), _generic(child)
        if name in result:
            if not isinstance(result[name], list):
                result[name] = [result[name]]
            result[name].append(value)
        else:
            result[name] = value
    return result


def _scalar(element, target: type) -> Any:
    if _payload_children(element):
        raise MappingError(
            f"Element <{_localname(element)}> has child elements but {target.__name__} was expected",
            {"element": _localname(element)},
        )

    text = element.text or ""
    try:
        if target is str:
            return text
        if target is bool:
            normalized = text.strip().lower()
            if normalized in ("true", "1"):
                return True
            if normalized in ("false", "0"):
                return False
            raise ValueError(f"not a boolean: {text!r}")
        if issubclass(target, enum.Enum):
            try:
                return target[text.strip()]
            except KeyError:
                return target(text.strip())
        if target in (int, float, Decimal, uuid.UUID):
            return target(text.strip())
        if target in (datetime, date, time):
            return target.fromisoformat(text.strip())
        if target is bytes:
            return base64.b64decode("".join(text.split()), validate=True)
    except (ValueError, TypeError, InvalidOperation, binascii.Error) as e:
        raise MappingError(
            f"Cannot read <{_localname(element)}> as {target.__name__}: {e}",
            {"element": _localname(element), "text": text[:50]},
        ) from e

    raise MappingError(f"Unsupported target type: {target!r}", {"type": repr(target)})


def _dataclass(element, target: type) -> Any:
    hints = get_type_hints(target)
    children = {}
    for child in _payload_children(element):
        children.setdefault(_localname(child), child)

    kwargs = {}
    for field in dataclasses.fields(target):
        if not field.init:
            continue

        hint = hints.get(field.name, Any)
        child = children.get(field.name)
        if child is not None:
            kwargs[field.name] = _from_element(child, hint)
        elif field.default is not dataclasses.MISSING or field.default_factory is not dataclasses.MISSING:
            continue
        elif _allows_none(hint):
            kwargs[field.name] = None
        else:
            raise MappingError(
                f"Missing element <{field.name}> for {target.__name__}",
                {"type": target.__name__, "field": field.name},
            )

    return target(**kwargs)


def _from_element(element, target: Any) -> Any:
    if target is Any or target is object:
        return _generic(element)

    origin, args = get_origin(target), get_args(target)

    if origin in _UNION_TYPES:
        candidates = [arg for arg in args if arg is not type(None)]
        if len(candidates) < len(args) and _is_empty(element):
            return None
        if len(candidates) != 1:
            raise MappingError(f"Unsupported union type: {target!r}", {"type": repr(target)})
        return _from_element(element, candidates[0])

    container = origin or target
    if container in _MAPPING_ORIGINS:
        value_type = args[1] if len(args) == 2 else Any
        return {_localname(child): _from_element(child, value_type) for child in _payload_children(element)}

    if container in _SEQUENCE_ORIGINS:
        children = _payload_children(element)
        if container is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            if len(children) != len(args):
                raise MappingError(
                    f"Expected {len(args)} items in <{_localname(element)}>, found {len(children)}",
                    {"element": _localname(element)},
                )
            return tuple(_from_element(child, arg) for child, arg in zip(children, args))

        item_type = args[0] if args else Any
        items = [_from_element(child, item_type) for child in children]
        if container is tuple:
            return tuple(items)
        if container is frozenset:
            return frozenset(items)
        if container in _SET_ORIGINS:
            return set(items)
        return items

    if isinstance(target, type):
        if dataclasses.is_dataclass(target):
            return _dataclass(element, target)
        return _scalar(element, target)

    raise MappingError(f"Unsupported target type: {target!r}", {"type": repr(target)})


def _root_element(source: Any):
    if isinstance(source, etree._ElementTree):
        return source.getroot()
    if isinstance(source, etree._Element):
        return source
    return parse_markup(source).getroot()


@with_error_handling(MappingError)
def deserialize(source: Any, target_type: Any, root_tag: Optional[str] = None) -> Any:
    """
    Map a markup document onto ``target_type``.

    Args:
        source: Markup text or bytes, an Element or an ElementTree
        target_type: Type to produce (dataclass, container, scalar or Any)
        root_tag: Expected root element name for dataclass targets

    Returns:
        The deserialized value
    """
    if target_type is None:
        raise ArgumentError("A target type is required")

    element = _root_element(source)
    if isinstance(target_type, type) and dataclasses.is_dataclass(target_type):
        expected = root_tag or root_tag_for(target_type)
        if _localname(element) != expected:
            raise MappingError(
                f"<{_localname(element)}> was not expected, <{expected}> is the root of {target_type.__name__}",
                {"root": _localname(element), "expected": expected},
            )

    return _from_element(element, target_type)
