import hmac
import base64
import binascii
from typing import Dict

from asydav.webdav.errors import Unauthorized
from asydav.webdav import logger

DEFAULT_REALM = 'WebDAV Server'


class Authenticator:
    """
    Credential check used by the WebDAV handler before any request is dispatched.
    Subclasses decide where credentials come from.
    """
    def __init__(self, realm:str = DEFAULT_REALM):
        self.realm = realm

    async def check(self, username:str, password:str) -> bool:
        raise NotImplementedError()

    async def authenticate(self, authorization) -> str:
        """
        Validates an Authorization header value (bytes or str, None if the header is missing).
        Returns the username on success, raises Unauthorized otherwise.
        """
        username, password = parse_basic_authorization(authorization, self.realm)
        if await self.check(username, password) is not True:
            logger.info('Authentication failed for user %r' % username)
            raise Unauthorized(self.realm)
        return username


class StaticAuthenticator(Authenticator):
    """Checks credentials against an in-memory username -> password map."""
    def __init__(self, credentials:Dict[str, str], realm:str = DEFAULT_REALM):
        Authenticator.__init__(self, realm)
        self.credentials = dict(credentials)

    async def check(self, username:str, password:str) -> bool:
        expected = self.credentials.get(username)
        if expected is None:
            return False
        return hmac.compare_digest(expected.encode('utf-8'), password.encode('utf-8'))

    @staticmethod
    def from_strings(entries, realm:str = DEFAULT_REALM):
        """Builds the map from 'username:password' strings."""
        credentials = {}
        for entry in entries:
            username, sep, password = entry.partition(':')
            if sep == '' or username == '':
                raise ValueError('Credential entry must be in username:password format')
            credentials[username] = password
        return StaticAuthenticator(credentials, realm)

    @staticmethod
    def from_file(filename:str, realm:str = DEFAULT_REALM):
        """Reads one 'username:password' entry per line, empty lines and lines starting with '#' are skipped."""
        entries = []
        with open(filename, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.rstrip('\r\n')
                if line.strip() == '' or line.lstrip().startswith('#'):
                    continue
                entries.append(line)
        return StaticAuthenticator.from_strings(entries, realm)


def parse_basic_authorization(authorization, realm:str = DEFAULT_REALM):
    """Splits a Basic Authorization header value into (username, password). Raises Unauthorized if it is missing or malformed."""
    if authorization is None:
        raise Unauthorized(realm)
    if isinstance(authorization, bytes):
        authorization = authorization.decode('latin-1')

    scheme, _, credentials = authorization.strip().partition(' ')
    if scheme.lower() != 'basic' or credentials.strip() == '':
        raise Unauthorized(realm)

    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        raise Unauthorized(realm)

    username, sep, password = decoded.partition(':')
    if sep == '':
        raise Unauthorized(realm)
    return username, password
