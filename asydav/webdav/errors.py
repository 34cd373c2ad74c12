"""
Exceptions raised by the WebDAV request engine.

Every class carries the HTTP status it maps to, and a short client-facing
message. Messages never contain filesystem paths; details go to the log.
"""


class WebDAVError(Exception):
    status_code = 500
    message = 'Internal Server Error'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def get_headers(self):
        return []


class Forbidden(WebDAVError):
    """The request path escapes the served root."""
    status_code = 403
    message = 'Forbidden'


class NotFound(WebDAVError):
    status_code = 404
    message = 'Not Found'


class Conflict(WebDAVError):
    """An intermediate collection is missing."""
    status_code = 409
    message = 'Conflict'


class MethodConflict(WebDAVError):
    """The method cannot be applied to the resource in its current state, eg. MKCOL on an existing path."""
    status_code = 405
    message = 'Method Not Allowed'


class MethodNotAllowed(WebDAVError):
    status_code = 405
    message = 'Method Not Allowed'

    def __init__(self, allowed, message=None):
        self.allowed = allowed
        super().__init__(message)

    def get_headers(self):
        return [("Allow", ', '.join(self.allowed).encode('ascii'))]


class Unauthorized(WebDAVError):
    status_code = 401
    message = 'Unauthorized'

    def __init__(self, realm, message=None):
        self.realm = realm
        super().__init__(message)

    def get_headers(self):
        return [("WWW-Authenticate", ('Basic realm="%s"' % self.realm).encode('latin-1'))]


class ServerError(WebDAVError):
    status_code = 500
    message = 'Internal Server Error'
