import asyncio
import copy
import ssl

from asydav.unicomm.common.target import UniTarget
from asydav.unicomm.common.packetizers import Packetizer
from asydav.unicomm.common.packetizers.ssl import PacketizerSSL
from asydav.unicomm.common.connection import UniConnection
from asydav.unicomm import logger


class UniServer:
	"""
	Accepts TCP (optionally TLS) clients on target and hands them out as UniConnection objects.
	Every connection gets its own copy of the packetizer.
	"""
	def __init__(self, target:UniTarget, packetizer:Packetizer):
		self.target = target
		self.packetizer = packetizer
		self.connection_queue = asyncio.Queue()
		self.server = None
		self.ssl_ctx:ssl.SSLContext = None
		self.started_evt = asyncio.Event()

	def get_listen_port(self):
		"""Returns the port actually bound, useful when the target port is 0."""
		if self.server is None or len(self.server.sockets) == 0:
			return None
		return self.server.sockets[0].getsockname()[1]

	async def __accept_plain(self, reader, writer):
		connection = UniConnection(reader, writer, copy.deepcopy(self.packetizer))
		await self.connection_queue.put(connection)

	async def __accept_tls(self, reader, writer):
		packetizer = PacketizerSSL(self.ssl_ctx, copy.deepcopy(self.packetizer))
		try:
			await packetizer.do_handshake(reader, writer, server_side=True)
		except (ssl.SSLError, OSError) as e:
			logger.debug('TLS handshake with %s failed: %s' % (writer.get_extra_info('peername'), e))
			writer.close()
			return
		await self.connection_queue.put(UniConnection(reader, writer, packetizer))

	async def serve(self):
		try:
			if self.target.is_ssl() is True:
				# bad certificate material fails here, before binding
				self.ssl_ctx = self.target.get_ssl_context(ssl.PROTOCOL_TLS_SERVER)
				accept_cb = self.__accept_tls
			else:
				accept_cb = self.__accept_plain

			self.server = await asyncio.start_server(accept_cb, self.target.host, self.target.port)
			logger.debug('Listening on %s' % self.target.get_url(self.get_listen_port()))
			self.started_evt.set()
			while self.server.is_serving():
				yield await self.connection_queue.get()
		finally:
			if self.server is not None:
				self.server.close()
