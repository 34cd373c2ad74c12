import re
from xml.etree import ElementTree as ET

from asydav.webdav.metadata import Resource, list_children
from asydav.webdav.pathresolver import quote_href, join_logical, display_name

DAV_NS = 'DAV:'
ET.register_namespace('D', DAV_NS)

DEPTH_INFINITY_CAP = 1

# anything outside the XML 1.0 Char production, lone surrogates included
XML_ILLEGAL_CHARS = re.compile('[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]')


def dav(tag:str):
    return '{%s}%s' % (DAV_NS, tag)

def xml_text(value:str):
    """Replaces characters an XML 1.0 document cannot carry with U+FFFD."""
    return XML_ILLEGAL_CHARS.sub('\ufffd', value)

def parse_depth(value):
    """
    Maps a Depth header value to 0 or 1.
    'infinity' is capped at 1, missing or unparsable values mean 0.
    """
    if value is None:
        return 0
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='replace')
    value = value.strip().lower()
    if value == 'infinity':
        return DEPTH_INFINITY_CAP
    if value == '1':
        return 1
    return 0


class PropfindRenderer:
    """Builds DAV:multistatus documents for PROPFIND."""

    def __init__(self):
        self.multistatus = ET.Element(dav('multistatus'))

    def add_response(self, resource:Resource, logical_path:str):
        response = ET.SubElement(self.multistatus, dav('response'))
        ET.SubElement(response, dav('href')).text = quote_href(logical_path, resource.is_collection)

        propstat = ET.SubElement(response, dav('propstat'))
        prop = ET.SubElement(propstat, dav('prop'))
        ET.SubElement(prop, dav('displayname')).text = xml_text(display_name(resource.name))
        ET.SubElement(prop, dav('creationdate')).text = resource.get_creation_date()
        ET.SubElement(prop, dav('getlastmodified')).text = resource.get_last_modified()
        ET.SubElement(prop, dav('getetag')).text = resource.etag
        ET.SubElement(prop, dav('getcontentlength')).text = str(resource.size)
        ET.SubElement(prop, dav('getcontenttype')).text = resource.get_content_type()
        resourcetype = ET.SubElement(prop, dav('resourcetype'))
        if resource.is_collection is True:
            ET.SubElement(resourcetype, dav('collection'))

        ET.SubElement(propstat, dav('status')).text = 'HTTP/1.1 200 OK'
        return response

    def to_bytes(self):
        return ET.tostring(self.multistatus, encoding='utf-8', xml_declaration=True)

    @staticmethod
    async def render(resource:Resource, fs_path:str, logical_path:str, depth:int = 0, resolver = None):
        """
        Returns the serialized multistatus body for resource and, for depth > 0 collections, its immediate children.
        Raises ServerError if any child cannot be stat'ed, no partial document is produced.
        """
        renderer = PropfindRenderer()
        renderer.add_response(resource, logical_path)
        if depth > 0 and resource.is_collection is True:
            for child in await list_children(fs_path, resolver):
                renderer.add_response(child, join_logical(logical_path, child.name))
        return renderer.to_bytes()
