"""
Output Formatting
=================

Indents or compacts a markup tree before it is signed.

Only whitespace between the elements of element-only content is rewritten.
An element whose text or whose children's tails hold anything but
whitespace has mixed content, and its subtree is left exactly as it is.
The same holds for every subtree where ``xml:space="preserve"`` is in
effect. Leaf text is never touched.
"""

from lxml import etree

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"


def _blank(text) -> bool:
    return text is None or not text.strip()


def _preserves_space(element) -> bool:
    return element.get(XML_SPACE) == "preserve"


def _element_only(element) -> bool:
    return len(element) > 0 and _blank(element.text) and all(_blank(child.tail) for child in element)


def _reformat(element, unit, level: int) -> None:
    # Subtrees below xml:space="preserve" or mixed content are never entered
    if _preserves_space(element) or not _element_only(element):
        return

    if unit is None:
        element.text = None
        for child in element:
            child.tail = None
    else:
        inner = "\n" + unit * (level + 1)
        element.text = inner
        for child in element:
            child.tail = inner
        element[-1].tail = "\n" + unit * level

    for child in element:
        if isinstance(child.tag, str):
            _reformat(child, unit, level + 1)


def indent(document: etree._ElementTree, unit: str = "  ") -> None:
    """Indent element-only content in place with ``unit`` per nesting level."""
    _reformat(document.getroot(), unit, 0)


def compact(document: etree._ElementTree) -> None:
    """Drop whitespace between the elements of element-only content, in place."""
    _reformat(document.getroot(), None, 0)
