import os
import stat
import asyncio
import hashlib
import datetime
import email.utils

from asydav.webdav.errors import NotFound, ServerError
from asydav.webdav import logger


def compute_etag(mtime_ns:int, size:int):
    """Fingerprint of an entry, derived from its modification time and size only."""
    fingerprint = ('%s-%s' % (mtime_ns, size)).encode('ascii')
    return '"%s"' % hashlib.md5(fingerprint).hexdigest()

def format_http_date(timestamp:float):
    """RFC 1123 date, as used by Last-Modified and DAV:getlastmodified"""
    dt = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)

def format_iso_date(timestamp:float):
    """ISO 8601 date, as used by DAV:creationdate"""
    dt = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%SZ')


class Resource:
    """Protocol-visible facts about one filesystem entry at the time it was stat'ed."""

    def __init__(self, name:str, is_collection:bool, size:int, modified_at:float, created_at:float, etag:str):
        self.name = name
        self.is_collection = is_collection
        self.size = size
        self.modified_at = modified_at
        self.created_at = created_at
        self.etag = etag

    @staticmethod
    def from_stat(name:str, st:os.stat_result):
        is_collection = stat.S_ISDIR(st.st_mode)
        size = 0 if is_collection else st.st_size
        created_at = getattr(st, 'st_birthtime', None)
        if created_at is None:
            created_at = st.st_ctime
        return Resource(
            name,
            is_collection,
            size,
            st.st_mtime,
            created_at,
            compute_etag(st.st_mtime_ns, st.st_size),
        )

    def get_content_type(self):
        if self.is_collection is True:
            return 'httpd/unix-directory'
        return 'application/octet-stream'

    def get_last_modified(self):
        return format_http_date(self.modified_at)

    def get_creation_date(self):
        return format_iso_date(self.created_at)

    def __repr__(self):
        return 'Resource(name=%r, is_collection=%s, size=%s, etag=%s)' % (self.name, self.is_collection, self.size, self.etag)


async def stat_resource(fs_path:str):
    """
    Stats fs_path and returns a Resource. Nothing is cached, every call hits the filesystem.

    Raises NotFound if the entry does not exist, ServerError on any other OS fault.
    """
    try:
        st = await asyncio.to_thread(os.stat, fs_path)
    except (FileNotFoundError, NotADirectoryError):
        raise NotFound()
    except OSError as e:
        logger.error('stat failed on %s: %s' % (fs_path, e))
        raise ServerError()
    return Resource.from_stat(os.path.basename(fs_path), st)

async def list_children(fs_path:str, resolver = None):
    """
    Returns the Resources of the immediate children of a collection, sorted by name.

    With a PathResolver given, symlinks leading out of its root are left out. Dangling symlinks are left out too.
    Children are stat'ed concurrently. A single failing child fails the whole listing with ServerError,
    including a child that disappears between the directory read and its stat.
    """
    try:
        names = await asyncio.to_thread(os.listdir, fs_path)
    except OSError as e:
        logger.error('listdir failed on %s: %s' % (fs_path, e))
        raise ServerError()

    names.sort()
    if resolver is not None:
        reachable = await asyncio.gather(
            *[asyncio.to_thread(resolver.is_reachable, os.path.join(fs_path, name)) for name in names]
        )
        names = [name for name, ok in zip(names, reachable) if ok is True]

    results = await asyncio.gather(
        *[stat_resource(os.path.join(fs_path, name)) for name in names],
        return_exceptions=True,
    )
    children = []
    for name, result in zip(names, results):
        if isinstance(result, NotFound):
            if await asyncio.to_thread(os.path.islink, os.path.join(fs_path, name)):
                continue
            logger.error('child %r of %s vanished during listing' % (name, fs_path))
            raise ServerError()
        if isinstance(result, BaseException):
            raise result
        children.append(result)
    return children
