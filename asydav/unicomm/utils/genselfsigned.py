import os
import uuid
import datetime
import tempfile

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from asydav.unicomm import logger

def generate_selfsigned_cert(hostname = 'localhost', cache_dir = None, key_exp = 65537, key_size = 2048):
	"""
	Creates a self-signed server certificate for hostname and writes it to cache_dir.
	Returns the (certfile, keyfile) paths.
	"""
	logger.debug('Generating self-signed certificate for %s' % hostname)
	if cache_dir is None:
		cache_dir = os.path.join(tempfile.gettempdir(), 'asydav-certstore')
	os.makedirs(cache_dir, exist_ok=True)

	one_day = datetime.timedelta(1, 0, 0)
	one_year = datetime.timedelta(365, 0, 0)
	now = datetime.datetime.now(datetime.timezone.utc)
	private_key = rsa.generate_private_key(
		public_exponent=key_exp,
		key_size=key_size,
	)
	name = x509.Name([
		x509.NameAttribute(NameOID.COMMON_NAME, hostname),
		x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'asydav'),
	])
	builder = x509.CertificateBuilder()
	builder = builder.subject_name(name)
	builder = builder.issuer_name(name)
	builder = builder.not_valid_before(now - one_day)
	builder = builder.not_valid_after(now + one_year)
	builder = builder.serial_number(int(uuid.uuid4()))
	builder = builder.public_key(private_key.public_key())
	builder = builder.add_extension(
		x509.SubjectAlternativeName([x509.DNSName(hostname)]), critical=False,
	)
	builder = builder.add_extension(
		x509.BasicConstraints(ca=False, path_length=None), critical=True,
	)
	certificate = builder.sign(private_key=private_key, algorithm=hashes.SHA256())

	certfile = os.path.join(cache_dir, 'cert_%s.pem' % hostname)
	keyfile = os.path.join(cache_dir, 'key_%s.pem' % hostname)
	with open(certfile, 'wb') as f:
		f.write(certificate.public_bytes(encoding=serialization.Encoding.PEM))
	
	with open(keyfile, 'wb') as f:
		f.write(private_key.private_bytes(
			encoding=serialization.Encoding.PEM,
			format=serialization.PrivateFormat.TraditionalOpenSSL,
			encryption_algorithm=serialization.NoEncryption()
		))
	os.chmod(keyfile, 0o600)
	return certfile, keyfile
