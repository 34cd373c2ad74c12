import os
import posixpath
import urllib.parse

from asydav.webdav.errors import Forbidden


def quote_href(logical_path:str, is_collection:bool = False):
    """
    Percent-encodes a logical path for use in href attributes and DAV:href elements.
    Names that are not valid UTF-8 (surrogate-escaped by os.listdir) are encoded byte for byte.
    """
    href = urllib.parse.quote(os.fsencode(logical_path), safe='/')
    if is_collection and not href.endswith('/'):
        href += '/'
    return href

def display_name(name:str):
    """Lossy, printable form of a filesystem name. Undecodable bytes become U+FFFD."""
    return os.fsencode(name).decode('utf-8', errors='replace')

def join_logical(parent:str, name:str):
    if parent.endswith('/'):
        return parent + name
    return parent + '/' + name

def parent_logical(logical_path:str):
    if logical_path == '/':
        return '/'
    return posixpath.dirname(logical_path.rstrip('/')) or '/'


class PathResolver:
    """
    Maps request targets onto filesystem paths below a fixed root.

    The root is the only part of the filesystem a request may reach. Every
    resolved path is checked lexically against the root, then once more with
    symlinks resolved, before it is handed to any filesystem call.
    """

    def __init__(self, root:str):
        self.root = os.path.abspath(root)
        self.real_root = os.path.realpath(self.root)

    @staticmethod
    def _is_within(root:str, path:str):
        try:
            return os.path.commonpath([root, path]) == root
        except ValueError:
            # different drives on windows
            return False

    @staticmethod
    def _decode(target):
        """Percent-decoded path part of a request target, with '\\' turned into '/'."""
        if isinstance(target, bytes):
            target = target.decode('utf-8', errors='surrogateescape')

        raw = target.split('?', 1)[0].split('#', 1)[0]
        if raw.startswith(('http://', 'https://')):
            raw = urllib.parse.urlsplit(raw).path

        # bytes that are not UTF-8 map back onto the same filesystem bytes
        decoded = urllib.parse.unquote(raw, errors='surrogateescape')
        if '\x00' in decoded:
            raise Forbidden()
        return decoded.replace('\\', '/')

    @staticmethod
    def to_logical(target):
        """
        Turns a raw request target into a normalized, decoded path relative to the root.
        Returns '.' for the root itself.
        """
        decoded = PathResolver._decode(target).lstrip('/')
        rel = posixpath.normpath(decoded) if decoded else '.'
        while rel == '..' or rel.startswith('../'):
            rel = rel[3:] or '.'
        return rel

    @staticmethod
    def names_collection(target):
        """True if the target ends with a slash, ie. the client addresses it as a collection."""
        return PathResolver._decode(target).endswith('/')

    def is_reachable(self, fs_path:str):
        """True if fs_path, with symlinks resolved, stays below the root."""
        return PathResolver._is_within(self.real_root, os.path.realpath(fs_path))

    def resolve(self, target):
        """
        Returns (fs_path, logical_path) for a request target.
        logical_path always starts with '/' and has no trailing slash (except for the root).
        Raises Forbidden if the target would leave the root.
        """
        rel = PathResolver.to_logical(target)
        if rel == '.':
            return self.root, '/'

        fs_path = os.path.normpath(os.path.join(self.root, *rel.split('/')))
        if not PathResolver._is_within(self.root, fs_path):
            raise Forbidden()

        if not self.is_reachable(fs_path):
            raise Forbidden()

        return fs_path, '/' + rel
