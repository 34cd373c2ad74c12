import asyncio
from asydav.unicomm.common.packetizers import Packetizer


class UniConnection:
	def __init__(self, reader:asyncio.StreamReader, writer:asyncio.StreamWriter, packetizer:Packetizer):
		self.reader = reader
		self.writer = writer
		self.packetizer = packetizer
		self.closing = False

	def get_extra_info(self, name, default=None):
		return self.writer.get_extra_info(name, default)

	async def close(self):
		self.closing = True
		if self.writer is not None:
			self.writer.close()

	async def write(self, data:bytes):
		async for packet in self.packetizer.data_out(data):
			self.writer.write(packet)
			await self.writer.drain()

	async def read_one(self):
		"""Returns the next packet from the peer, None once the stream is over."""
		# leftovers from an earlier read come first
		async for packet in self.packetizer.data_in(None):
			if packet is None:
				break
			return packet

		while self.closing is False:
			data = await self.reader.read(self.packetizer.buffer_size)
			if data == b'':
				return None
			async for packet in self.packetizer.data_in(data):
				if packet is not None:
					return packet
		return None
