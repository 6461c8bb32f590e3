# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Small wrapper for different etree packages.

Parsing always goes through defusedxml. lxml is used if installed, the
standard library ElementTree otherwise (which does not know the `nsmap` and
`pretty_print` options).
"""

__docformat__ = "reStructuredText"

use_lxml = False
try:
    from defusedxml.lxml import _etree as etree

    use_lxml = True
    _ElementType = etree._Element
except ImportError:
    from xml.etree import ElementTree

    from defusedxml import ElementTree as etree

    # defusedxml only wraps the parsing functions
    etree.Element = _ElementType = ElementTree.Element
    etree.SubElement = ElementTree.SubElement
    etree.tostring = ElementTree.tostring
    ElementTree.register_namespace("D", "DAV:")

XML_DECLARATION = b'<?xml version="1.0" encoding="utf-8" ?>\n'


def is_etree_element(obj):
    return isinstance(obj, _ElementType)


def xml_to_bytes(element, *, pretty_print=False):
    """Serialize `element` as UTF-8, always starting with an XML declaration."""
    if use_lxml:
        return etree.tostring(
            element, encoding="UTF-8", xml_declaration=True, pretty_print=pretty_print
        )
    xml = etree.tostring(element, encoding="UTF-8")
    if not xml.startswith(b"<?xml "):
        xml = XML_DECLARATION + xml
    return xml


def _make_dav_el(tag):
    if use_lxml:
        return etree.Element(tag, nsmap={"D": "DAV:"})
    return etree.Element(tag)


def make_multistatus_el():
    """Return an empty <D:multistatus> element."""
    return _make_dav_el("{DAV:}multistatus")


def make_prop_el():
    """Return an empty <D:prop> element (LOCK response body)."""
    return _make_dav_el("{DAV:}prop")


def make_sub_element(parent, tag, nsmap=None):
    """Wrapper for etree.SubElement, that takes care of unsupported nsmap option."""
    if use_lxml:
        return etree.SubElement(parent, tag, nsmap=nsmap)
    return etree.SubElement(parent, tag)


def element_content_as_string(element):
    """Return the character data of a property element ('' if empty).

    PROPPATCH values are plain text, nested markup is flattened.
    """
    return "".join(element.itertext())
