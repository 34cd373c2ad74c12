from asydav.unicomm.common.target import UniTarget
from asydav.unicomm.common.connection import UniConnection
from asydav.unicomm.common.packetizers import Packetizer
from asydav.unicomm.server import UniServer
from asydav.unicomm import logger
from asydav._version import __version__
import asyncio
import datetime
import email.utils
import h11

SERVER_IDENT = " ".join(
    [f"asydav/{__version__}", h11.PRODUCT_ID]
).encode("ascii")


def format_date_time(dt=None):
    """Generate a RFC 7231 / RFC 9110 IMF-fixdate string"""
    if dt is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)


class AsydavHTTPWrapper:
    def __init__(self, client_id, stream:UniConnection):
        self.client_id = client_id
        self.stream = stream
        self.conn = h11.Connection(h11.SERVER)
        self.ident = SERVER_IDENT

    def debug(self, *args):
        logger.debug('[%s] %s' % (self.client_id, ' '.join([str(x) for x in args])))

    async def send(self, event):
        assert type(event) is not h11.ConnectionClosed
        data = self.conn.send(event)
        try:
            await self.stream.write(data)
        except BaseException:
            # peer is gone or we got cancelled
            self.conn.send_failed()
            raise

    async def _read_from_peer(self):
        if self.conn.they_are_waiting_for_100_continue:
            self.debug("Sending 100 Continue")
            go_ahead = h11.InformationalResponse(
                status_code=100, headers=self.basic_headers()
            )
            await self.send(go_ahead)
        try:
            data = await self.stream.read_one()
        except Exception as exc:
            self.debug('Error reading from peer:', exc)
            data = None
        if data is None:
            # EOF
            data = b""
        self.conn.receive_data(data)

    async def next_event(self):
        while True:
            event = self.conn.next_event()
            if event is h11.NEED_DATA:
                await self._read_from_peer()
                continue
            return event

    async def shutdown_and_clean_up(self):
        try:
            await self.stream.close()
        except Exception as exc:
            self.debug('Error closing stream:', exc)

    def basic_headers(self):
        # HTTP requires these headers in all responses
        return [
            ("Date", format_date_time().encode("ascii")),
            ("Server", self.ident),
        ]


class HTTPServerHandler:
    def __init__(self):
        self._wrapper:AsydavHTTPWrapper = None
        self._request:h11.Request = None
        self.ident = SERVER_IDENT

    def basic_headers(self):
        return [
            ("Date", format_date_time().encode("ascii")),
            ("Server", self.ident),
        ]

    def allowed_methods(self):
        return sorted(name[3:] for name in dir(self) if name.startswith('do_'))

    async def send_response(self, status_code, headers=None, body=b'', content_type=None):
        """Sends a complete response with a Content-Length framed body."""
        all_headers = self.basic_headers()
        if content_type is not None:
            all_headers.append(("Content-Type", content_type.encode('ascii')))
        if headers is not None:
            all_headers.extend(headers)
        all_headers.append(("Content-Length", str(len(body)).encode('ascii')))
        await self._wrapper.send(h11.Response(status_code=status_code, headers=all_headers))
        if body and self._request.method != b"HEAD":
            await self._wrapper.send(h11.Data(data=body))
        await self._wrapper.send(h11.EndOfMessage())

    async def iter_request_body(self):
        """Yields the request body chunk by chunk. Raises h11.RemoteProtocolError if the peer hangs up early."""
        while True:
            event = await self._wrapper.next_event()
            if isinstance(event, h11.Data):
                if event.data:
                    yield bytes(event.data)
            elif isinstance(event, h11.EndOfMessage):
                return
            elif isinstance(event, h11.ConnectionClosed):
                raise h11.RemoteProtocolError('Connection closed before the request body was complete')
            else:
                raise h11.RemoteProtocolError('Unexpected event while reading request body: %s' % type(event).__name__)

    async def drain_request_body(self):
        if self._wrapper.conn.their_state is h11.SEND_BODY:
            async for _ in self.iter_request_body():
                pass

    async def handle_request(self, request:h11.Request):
        method = request.method.decode("ascii")
        func = getattr(self, f"do_{method}", None)
        if func is None:
            allow = ', '.join(self.allowed_methods()).encode('ascii')
            return await self.send_response(405, [("Allow", allow)], b"Method Not Allowed", 'text/plain; charset=utf-8')
        await func(request)

    async def _process_request(self, wrapper:AsydavHTTPWrapper, request:h11.Request):
        self._wrapper = wrapper
        self._request = request
        expecting_continue = wrapper.conn.they_are_waiting_for_100_continue
        await self.handle_request(request)
        if expecting_continue and wrapper.conn.our_state is h11.DONE and wrapper.conn.their_state is h11.SEND_BODY:
            # no 100 Continue went out, the body may never arrive
            return
        await self.drain_request_body()


class HTTPServer:
    def __init__(self, client_handler, target:UniTarget):
        self.target = target
        self.client_handler = client_handler
        self.server = UniServer(target, Packetizer())

        self.clients = {}
        self.id_counter = 0
        self.__main_task = None

    def get_listen_port(self):
        return self.server.get_listen_port()

    async def start(self):
        """Binds the listener and returns once it is accepting, raises if binding fails."""
        self.__main_task = asyncio.create_task(self.serve())
        started = asyncio.create_task(self.server.started_evt.wait())
        await asyncio.wait([self.__main_task, started], return_when=asyncio.FIRST_COMPLETED)
        if self.__main_task.done():
            started.cancel()
            # bind failed, surface the error
            self.__main_task.result()

    async def terminate(self):
        for task in list(self.clients.values()):
            task.cancel()
        self.clients = {}
        if self.__main_task is not None:
            self.__main_task.cancel()
            self.__main_task = None

    async def handle_connection(self, connection, client_id = None):
        if client_id is None:
            client_id = self.id_counter
            self.id_counter += 1
        wrapper = AsydavHTTPWrapper(client_id, connection)
        handler = self.client_handler()
        logger.debug('Server: New client %s connected from %s' % (client_id, connection.get_extra_info('peername')))
        try:
            while True:
                if wrapper.conn.our_state is h11.MUST_CLOSE or wrapper.conn.their_state is h11.MUST_CLOSE:
                    break

                if wrapper.conn.states == {h11.CLIENT: h11.DONE, h11.SERVER: h11.DONE}:
                    wrapper.conn.start_next_cycle()
                    continue

                if wrapper.conn.states != {h11.CLIENT: h11.IDLE, h11.SERVER: h11.IDLE}:
                    wrapper.debug('Server: Connection state not idle', wrapper.conn.states)
                    break

                try:
                    event = await wrapper.next_event()
                except h11.RemoteProtocolError as exc:
                    wrapper.debug('Protocol error from peer: %r' % exc)
                    if wrapper.conn.our_state in (h11.IDLE, h11.SEND_RESPONSE):
                        await self.send_bad_request(wrapper, exc)
                    break

                if type(event) is h11.Request:
                    await handler._process_request(wrapper, event)
                    continue
                if type(event) is h11.ConnectionClosed:
                    break
                wrapper.debug('Server: unknown event type %s' % type(event))
                break
        except Exception as exc:
            logger.debug('[%s] Connection aborted: %r' % (client_id, exc))
        finally:
            await wrapper.shutdown_and_clean_up()
            logger.debug('Server: client %s disconnected' % client_id)

    async def send_bad_request(self, wrapper, exc):
        status_code = exc.error_status_hint if 400 <= exc.error_status_hint < 600 else 400
        body = b'Bad Request'
        headers = wrapper.basic_headers()
        headers.extend([
            ("Content-Type", b"text/plain; charset=utf-8"),
            ("Content-Length", str(len(body)).encode('ascii')),
            ("Connection", b"close"),
        ])
        try:
            await wrapper.send(h11.Response(status_code=status_code, headers=headers))
            await wrapper.send(h11.Data(data=body))
            await wrapper.send(h11.EndOfMessage())
        except Exception as e:
            wrapper.debug('Could not send error response: %r' % e)

    async def __run_client(self, connection, client_id):
        try:
            await self.handle_connection(connection, client_id)
        finally:
            self.clients.pop(client_id, None)

    async def serve(self):
        async for connection in self.server.serve():
            client_id = self.id_counter
            self.id_counter += 1
            self.clients[client_id] = asyncio.create_task(self.__run_client(connection, client_id))
