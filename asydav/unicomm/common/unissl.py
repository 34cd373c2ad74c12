import ssl

class UniSSL:
	"""Certificate material of a TLS server endpoint. Builds a fresh ssl context on every call."""
	def __init__(self, certfile:str, keyfile:str = None, password:str = None):
		self.certfile:str = certfile
		self.keyfile:str = keyfile
		self.password:str = password

	@staticmethod
	def get_noverify_context(is_server=True, hostname = 'localhost'):
		"""Returns a UniSSL backed by a freshly generated self-signed certificate for hostname."""
		if is_server is not True:
			raise Exception('Only server side contexts are supported')
		from asydav.unicomm.utils.genselfsigned import generate_selfsigned_cert
		certfile, keyfile = generate_selfsigned_cert(hostname)
		return UniSSL(certfile, keyfile)

	def get_ssl_context(self, protocol = None):
		if protocol is None:
			protocol = ssl.PROTOCOL_TLS_SERVER
		ssl_ctx = ssl.SSLContext(protocol)
		ssl_ctx.load_cert_chain(certfile=self.certfile, keyfile=self.keyfile, password=self.password)
		# clients are not asked for certificates
		ssl_ctx.verify_mode = ssl.CERT_NONE
		return ssl_ctx

	def __str__(self):
		return 'UniSSL(certfile=%s, keyfile=%s)' % (self.certfile, self.keyfile)
