"""
WebDAV request handler.

Serves a single directory tree over HTTP with the following WebDAV subset:

- OPTIONS, GET, HEAD
- PUT, DELETE, MKCOL
- PROPFIND (Depth 0 and 1, 'infinity' is treated as 1)

Every request is authenticated (when an Authenticator is configured) and its
path is confined to the served root before any method logic runs.
"""

import os
import stat
import shutil
import asyncio
import tempfile
import h11

from asydav.unicomm.protocol.server.http.httpserver import HTTPServerHandler
from asydav.webdav import logger
from asydav.webdav.auth import Authenticator
from asydav.webdav.errors import WebDAVError, Forbidden, NotFound, Conflict, MethodConflict, MethodNotAllowed, ServerError
from asydav.webdav.pathresolver import PathResolver
from asydav.webdav.metadata import Resource, stat_resource
from asydav.webdav.propfind import PropfindRenderer, parse_depth
from asydav.webdav.listing import DirectoryRenderer

ALLOWED_METHODS = ['OPTIONS', 'GET', 'HEAD', 'PUT', 'DELETE', 'MKCOL', 'PROPFIND']


def get_header(request:h11.Request, name:bytes):
    """Returns the first value of header name (lowercase bytes) or None."""
    for hname, value in request.headers:
        if hname == name:
            return value
    return None


class WebDAVHandler(HTTPServerHandler):
    """
    Per-connection WebDAV handler. Holds no state across requests apart from
    its configuration, so one instance can serve any number of requests on its connection.
    """

    def __init__(self, webdav_root:str, authenticator:Authenticator = None, chunk_size:int = 64*1024):
        """
        Args:
            webdav_root (str): Root directory to serve, created if it does not exist
            authenticator (Authenticator): Credential check, None serves anonymously
            chunk_size (int): Read size used when streaming files to the client
        """
        super().__init__()
        self.webdav_root = os.path.abspath(webdav_root)
        self.authenticator = authenticator
        self.chunk_size = chunk_size
        os.makedirs(self.webdav_root, exist_ok=True)
        if not os.path.isdir(self.webdav_root):
            raise ValueError(f"WebDAV root is not a directory: {self.webdav_root}")
        self.resolver = PathResolver(self.webdav_root)
        self.last_status = None

    def allowed_methods(self):
        return list(ALLOWED_METHODS)

    async def send_response(self, status_code, headers=None, body=b'', content_type=None):
        self.last_status = status_code
        await super().send_response(status_code, headers, body, content_type)

    async def send_error(self, error:WebDAVError):
        body = error.message.encode('utf-8')
        await self.send_response(error.status_code, error.get_headers(), body, 'text/plain; charset=utf-8')

    async def handle_request(self, request:h11.Request):
        method = request.method.decode('ascii')
        target = request.target.decode('ascii', errors='replace')
        self.last_status = None
        try:
            await self.dispatch(request)
        except WebDAVError as e:
            await self.send_error(e)
        except (h11.ProtocolError, ConnectionError) as e:
            logger.warning('[WEBDAV] %s %s aborted by transport: %r' % (method, target, e))
            raise
        except Exception:
            if self._wrapper.conn.our_state is not h11.SEND_RESPONSE:
                # headers are already out, all we can do is drop the connection
                logger.exception('[WEBDAV] %s %s failed mid-response' % (method, target))
                raise
            logger.exception('[WEBDAV] %s %s failed' % (method, target))
            await self.send_error(ServerError())
        logger.info('[WEBDAV] %s %s -> %s' % (method, target, self.last_status))

    async def dispatch(self, request:h11.Request):
        if self.authenticator is not None:
            await self.authenticator.authenticate(get_header(request, b'authorization'))

        fs_path, logical_path = self.resolver.resolve(request.target)

        method = request.method.decode('ascii')
        if method not in ALLOWED_METHODS:
            raise MethodNotAllowed(ALLOWED_METHODS)
        if logical_path != '/' and PathResolver.names_collection(request.target):
            await self._check_collection_target(method, fs_path)
        func = getattr(self, f"do_{method}")
        await func(request, fs_path, logical_path)

    async def _check_collection_target(self, method, fs_path):
        """A target with a trailing slash must name a collection."""
        if method in ('OPTIONS', 'MKCOL'):
            return
        if method == 'PUT':
            raise MethodConflict('Cannot PUT to a collection')
        resource = await stat_resource(fs_path)
        if resource.is_collection is not True:
            raise NotFound()

    async def do_OPTIONS(self, request, fs_path, logical_path):
        headers = [
            ("Allow", ', '.join(ALLOWED_METHODS).encode('ascii')),
            ("DAV", b"1,2"),
            ("MS-Author-Via", b"DAV"),
        ]
        await self.send_response(200, headers)

    async def do_GET(self, request, fs_path, logical_path):
        resource = await stat_resource(fs_path)
        if resource.is_collection is True:
            body = await DirectoryRenderer.render(fs_path, logical_path, self.resolver)
            await self.send_response(200, None, body, 'text/html; charset=utf-8')
            return
        await self._serve_file(fs_path)

    async def do_HEAD(self, request, fs_path, logical_path):
        resource = await stat_resource(fs_path)
        if resource.is_collection is True:
            body = await DirectoryRenderer.render(fs_path, logical_path, self.resolver)
            await self._send_headers_only(200, [("Content-Type", b"text/html; charset=utf-8")], len(body))
            return
        await self._send_headers_only(200, self._file_headers(resource), resource.size)

    async def do_PUT(self, request, fs_path, logical_path):
        try:
            existing = await stat_resource(fs_path)
        except NotFound:
            existing = None

        if existing is not None and existing.is_collection is True:
            raise MethodConflict('Cannot PUT to a collection')

        parent = os.path.dirname(fs_path)
        if not await asyncio.to_thread(os.path.isdir, parent):
            raise Conflict('Parent collection does not exist')

        try:
            fd, tmp_path = await asyncio.to_thread(tempfile.mkstemp, prefix='.asydav-', suffix='.part', dir=parent)
        except OSError as e:
            logger.error('Could not create temp file for %s: %s' % (fs_path, e))
            raise ServerError()

        try:
            with os.fdopen(fd, 'wb') as f:
                async for chunk in self.iter_request_body():
                    await asyncio.to_thread(f.write, chunk)
            await asyncio.to_thread(self._commit_upload, tmp_path, fs_path, existing is not None)
        except OSError as e:
            self._discard(tmp_path)
            logger.error('Failed to write %s: %s' % (fs_path, e))
            raise ServerError()
        except BaseException as e:
            self._discard(tmp_path)
            logger.warning('Upload of %s aborted, partial data discarded: %r' % (fs_path, e))
            raise

        if existing is None:
            await self.send_response(201, None, b'Created', 'text/plain; charset=utf-8')
        else:
            await self.send_response(204)

    async def do_DELETE(self, request, fs_path, logical_path):
        if fs_path == self.webdav_root:
            raise Forbidden('The root collection cannot be deleted')

        try:
            st = await asyncio.to_thread(os.lstat, fs_path)
        except (FileNotFoundError, NotADirectoryError):
            raise NotFound()

        try:
            if stat.S_ISDIR(st.st_mode):
                await asyncio.to_thread(shutil.rmtree, fs_path)
            else:
                await asyncio.to_thread(os.unlink, fs_path)
        except FileNotFoundError:
            raise NotFound()
        except OSError as e:
            logger.error('Failed to delete %s: %s' % (fs_path, e))
            raise ServerError()
        await self.send_response(204)

    async def do_MKCOL(self, request, fs_path, logical_path):
        if await asyncio.to_thread(os.path.lexists, fs_path):
            raise MethodConflict('Resource already exists')

        if not await asyncio.to_thread(os.path.isdir, os.path.dirname(fs_path)):
            raise Conflict('Parent collection does not exist')

        try:
            await asyncio.to_thread(os.mkdir, fs_path)
        except FileExistsError:
            raise MethodConflict('Resource already exists')
        except (FileNotFoundError, NotADirectoryError):
            raise Conflict('Parent collection does not exist')
        except OSError as e:
            logger.error('Failed to create collection %s: %s' % (fs_path, e))
            raise ServerError()
        await self.send_response(201, None, b'Created', 'text/plain; charset=utf-8')

    async def do_PROPFIND(self, request, fs_path, logical_path):
        depth = parse_depth(get_header(request, b'depth'))
        resource = await stat_resource(fs_path)
        body = await PropfindRenderer.render(resource, fs_path, logical_path, depth, self.resolver)
        await self.send_response(207, [("DAV", b"1,2")], body, 'application/xml; charset=utf-8')

    def _file_headers(self, resource:Resource):
        return [
            ("Content-Type", resource.get_content_type().encode('ascii')),
            ("ETag", resource.etag.encode('ascii')),
            ("Last-Modified", resource.get_last_modified().encode('ascii')),
        ]

    async def _send_headers_only(self, status_code, headers, content_length):
        """Response to HEAD: Content-Length describes the body GET would send, none is sent."""
        self.last_status = status_code
        all_headers = self.basic_headers()
        all_headers.extend(headers)
        all_headers.append(("Content-Length", str(content_length).encode('ascii')))
        await self._wrapper.send(h11.Response(status_code=status_code, headers=all_headers))
        await self._wrapper.send(h11.EndOfMessage())

    async def _serve_file(self, fs_path:str):
        try:
            f = await asyncio.to_thread(open, fs_path, 'rb')
        except (FileNotFoundError, NotADirectoryError):
            raise NotFound()
        except OSError as e:
            logger.error('Failed to open %s: %s' % (fs_path, e))
            raise ServerError()

        with f:
            st = await asyncio.to_thread(os.fstat, f.fileno())
            resource = Resource.from_stat(os.path.basename(fs_path), st)
            headers = self.basic_headers()
            headers.extend(self._file_headers(resource))
            headers.append(("Content-Length", str(resource.size).encode('ascii')))
            self.last_status = 200
            await self._wrapper.send(h11.Response(status_code=200, headers=headers))

            remaining = resource.size
            while remaining > 0:
                chunk = await asyncio.to_thread(f.read, min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                await self._wrapper.send(h11.Data(data=chunk))
            # raises h11.LocalProtocolError if the file shrank while being sent
            await self._wrapper.send(h11.EndOfMessage())

    @staticmethod
    def _commit_upload(tmp_path:str, fs_path:str, overwrite:bool):
        if overwrite is True:
            try:
                shutil.copymode(fs_path, tmp_path)
            except OSError:
                os.chmod(tmp_path, 0o644)
        else:
            os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, fs_path)

    @staticmethod
    def _discard(tmp_path:str):
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error('Could not remove partial upload %s: %s' % (tmp_path, e))
