import ssl
from asydav.unicomm.common.packetizers import Packetizer

class PacketizerSSL(Packetizer):
	"""
	Runs TLS in memory (ssl.MemoryBIO) on top of a plain asyncio stream.
	Ciphertext goes through the BIOs, the wrapped packetizer only ever sees plaintext.
	"""
	def __init__(self, ssl_ctx:ssl.SSLContext, packetizer:Packetizer):
		Packetizer.__init__(self, 16384)
		self.ssl_ctx = ssl_ctx
		self.packetizer = packetizer
		self.incoming:ssl.MemoryBIO = None
		self.outgoing:ssl.MemoryBIO = None
		self.tls_obj:ssl.SSLObject = None
		self.__pending = []

	def _pop_outgoing(self):
		data = b''
		while True:
			chunk = self.outgoing.read()
			if chunk == b'':
				return data
			data += chunk

	async def do_handshake(self, reader, writer, server_side=False):
		self.incoming = ssl.MemoryBIO()
		self.outgoing = ssl.MemoryBIO()
		self.tls_obj = self.ssl_ctx.wrap_bio(self.incoming, self.outgoing, server_side=server_side)

		while True:
			try:
				self.tls_obj.do_handshake()
				break
			except ssl.SSLWantReadError:
				pass

			to_peer = self._pop_outgoing()
			if to_peer != b'':
				writer.write(to_peer)
				await writer.drain()

			from_peer = await reader.read(self.buffer_size)
			if from_peer == b'':
				raise ConnectionResetError('Peer closed the connection during TLS handshake')
			self.incoming.write(from_peer)

		# last flight (Finished, session tickets)
		to_peer = self._pop_outgoing()
		if to_peer != b'':
			writer.write(to_peer)
			await writer.drain()

	def _decrypt(self):
		plaintext = b''
		while True:
			try:
				plaintext += self.tls_obj.read()
			except (ssl.SSLWantReadError, ssl.SSLZeroReturnError):
				return plaintext

	async def data_out(self, data:bytes):
		plaintext = b''
		async for packet in self.packetizer.data_out(data):
			plaintext += packet
		self.tls_obj.write(plaintext)
		ciphertext = self._pop_outgoing()
		if ciphertext != b'':
			yield ciphertext

	async def data_in(self, encdata:bytes):
		while len(self.__pending) > 0:
			yield self.__pending.pop(0)

		# None still drains records that arrived together with the handshake
		if encdata is not None:
			self.incoming.write(encdata)
		plaintext = self._decrypt()
		if plaintext != b'':
			async for packet in self.packetizer.data_in(plaintext):
				self.__pending.append(packet)
			while len(self.__pending) > 0:
				yield self.__pending.pop(0)

		if encdata is None:
			yield None
