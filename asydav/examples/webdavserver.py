import os
import sys
import asyncio
import logging

from asydav import logger
from asydav._version import __version__, __banner__
from asydav.unicomm.common.target import UniTarget, UniProto
from asydav.unicomm.common.unissl import UniSSL
from asydav.unicomm.protocol.server.http.httpserver import HTTPServer
from asydav.webdav.handler import WebDAVHandler
from asydav.webdav.auth import StaticAuthenticator, DEFAULT_REALM


async def run_webdav_server_from_target(target:UniTarget, webdav_root:str, authenticator=None):
    """
    Starts the WebDAV server on target.

    Returns (server, None) once the listener is bound, (None, exception) otherwise.
    The caller owns the returned HTTPServer and must terminate it.
    """
    try:
        handler_factory = lambda: WebDAVHandler(webdav_root, authenticator=authenticator)
        # validates the root before binding
        handler_factory()
        server = HTTPServer(handler_factory, target)
        await server.start()
        return server, None
    except Exception as e:
        return None, e


async def run_webdav_server(webdav_root='./webdav-data', host='127.0.0.1', port=8080, users=None,
                            credentials_file=None, realm=DEFAULT_REALM, use_ssl=False, certfile=None, keyfile=None,
                            anonymous=False):
    """
    Runs the WebDAV server until it is cancelled.

    Args:
        webdav_root (str): Directory to serve, created if missing
        host (str): Address to bind to
        port (int): Port to bind to
        users (list): 'username:password' entries, enables Basic auth
        credentials_file (str): File with one 'username:password' per line, enables Basic auth
        realm (str): Basic auth realm
        use_ssl (bool): Serve HTTPS instead of HTTP
        certfile (str): PEM certificate, a self-signed one is generated if omitted
        keyfile (str): PEM private key for certfile
        anonymous (bool): Serve without authentication when no credentials are given

    Raises ValueError if no credentials are given and anonymous is False.
    """
    authenticator = None
    entries = list(users) if users is not None else []
    if credentials_file is not None:
        authenticator = StaticAuthenticator.from_file(credentials_file, realm)
        authenticator.credentials.update(StaticAuthenticator.from_strings(entries, realm).credentials)
    elif len(entries) > 0:
        authenticator = StaticAuthenticator.from_strings(entries, realm)

    if authenticator is None and anonymous is not True:
        raise ValueError('No credentials given, use --user or --credentials-file (or --anonymous to allow unauthenticated access)')
    if authenticator is not None and anonymous is True:
        raise ValueError('--anonymous cannot be combined with credentials')

    if use_ssl is True:
        ssl_ctx = None
        if certfile is not None:
            ssl_ctx = UniSSL(certfile, keyfile)
        target = UniTarget(host, port, UniProto.SERVER_SSL_TCP, ssl_ctx=ssl_ctx)
    else:
        target = UniTarget(host, port, UniProto.SERVER_TCP)

    server, err = await run_webdav_server_from_target(target, webdav_root, authenticator)
    if err is not None:
        raise err

    try:
        logger.info('WebDAV root: %s' % os.path.abspath(webdav_root))
        logger.info('Authentication: %s' % ('Basic (realm "%s")' % realm if authenticator is not None else 'disabled'))
        logger.info('Serving on %s' % target.get_url(server.get_listen_port()))
        await asyncio.Event().wait()
    finally:
        await server.terminate()


def main():
    import argparse

    parser = argparse.ArgumentParser(
        description='asydav - WebDAV file server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  %(prog)s --user alice:secret                  # Serve ./webdav-data on 127.0.0.1:8080
  %(prog)s /srv/share --anonymous              # No authentication
  %(prog)s /srv/share -u alice:secret --host 0.0.0.0   # Bind to all interfaces
  %(prog)s /srv/share -u alice:secret --ssl   # HTTPS with a self-signed certificate
  %(prog)s /srv/share -u alice:secret --ssl --cert c.pem --key k.pem
        ''')
    parser.add_argument('directory', nargs='?', default='./webdav-data', help='WebDAV root directory (default: ./webdav-data)')
    parser.add_argument('--host', '-H', default='127.0.0.1', help='Host to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', '-p', type=int, default=8080, help='Port to bind to (default: 8080)')
    parser.add_argument('--user', '-u', action='append', default=[], help='Credential in username:password format. Can be repeated')
    parser.add_argument('--credentials-file', help='File with one username:password entry per line')
    parser.add_argument('--realm', default=DEFAULT_REALM, help='Basic auth realm (default: %s)' % DEFAULT_REALM)
    parser.add_argument('--anonymous', action='store_true', help='Allow unauthenticated read and write access. Required when no credentials are given')
    parser.add_argument('--ssl', action='store_true', help='Serve over HTTPS')
    parser.add_argument('--cert', help='Certificate file (PEM) for --ssl')
    parser.add_argument('--key', help='Private key file (PEM) for --ssl')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbosity, can be stacked')
    parser.add_argument('--version', action='version', version='asydav %s' % __version__)

    args = parser.parse_args()

    if args.verbose >= 1:
        for name in ['asydav', 'asydav.unicomm', 'asydav.webdav']:
            logging.getLogger(name).setLevel(logging.DEBUG)

    if args.port < 0 or args.port > 65535:
        print('Error: Port must be between 0 and 65535, got %s' % args.port)
        sys.exit(1)

    if (args.cert is None) != (args.key is None):
        print('Error: --cert and --key must be given together')
        sys.exit(1)

    if args.cert is not None and args.ssl is False:
        print('Error: --cert/--key require --ssl')
        sys.exit(1)

    print(__banner__)
    try:
        asyncio.run(run_webdav_server(
            args.directory,
            args.host,
            args.port,
            users=args.user,
            credentials_file=args.credentials_file,
            realm=args.realm,
            use_ssl=args.ssl,
            certfile=args.cert,
            keyfile=args.key,
            anonymous=args.anonymous,
        ))
    except KeyboardInterrupt:
        print('\nWebDAV server stopped by user')
    except Exception as e:
        print('Failed to start WebDAV server: %s' % e)
        sys.exit(1)


if __name__ == '__main__':
    main()
