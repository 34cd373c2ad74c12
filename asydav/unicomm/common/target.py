import enum
import ipaddress

from asydav.unicomm.common.unissl import UniSSL

class UniProto(enum.Enum):
	SERVER_TCP = 6
	SERVER_SSL_TCP = 7

class UniTarget:
	"""Listening endpoint of a server: bind address, port, and TLS material for SERVER_SSL_TCP."""
	def __init__(self, host:str, port:int, protocol:UniProto, ssl_ctx:UniSSL = None):
		if host is None:
			raise Exception('Bind address can\'t be none!')
		self.host = host
		self.port = port
		self.protocol = protocol
		self.ssl_ctx = ssl_ctx

		try:
			self.ip = ipaddress.ip_address(host)
		except ValueError:
			self.ip = None

	def is_ssl(self):
		return self.protocol == UniProto.SERVER_SSL_TCP

	def get_ssl_context(self, protocol = None):
		if self.ssl_ctx is None:
			self.ssl_ctx = UniSSL.get_noverify_context(True, self.get_certificate_hostname())
		return self.ssl_ctx.get_ssl_context(protocol)

	def get_certificate_hostname(self):
		# wildcard binds get a certificate for localhost
		if self.ip is not None and self.ip.is_unspecified:
			return 'localhost'
		return self.host

	def get_url(self, port:int = None):
		if port is None:
			port = self.port
		host = self.host
		if self.ip is not None and self.ip.version == 6:
			host = '[%s]' % host
		return '%s://%s:%s/' % ('https' if self.is_ssl() else 'http', host, port)

	def __str__(self):
		return 'UniTarget(%s, %s, %s)' % (self.host, self.port, self.protocol.name)
