import atexit
import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientIdentity:
    """PEM file holding the client certificate chain and its private key"""
    pem_path: str
    subject: str

    @property
    def requests_cert(self):
        return self.pem_path

    def discard(self):
        remove_pem(self.pem_path)


def remove_pem(path):
    """Delete a decrypted key file; already gone is fine"""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def pfx_to_pem(pfx_bytes, passphrase):
    """Convert a PKCS#12 bundle into one PEM blob (key + certificate chain)"""
    password = passphrase.encode('utf-8') if passphrase else None
    key, cert, extra_certs = pkcs12.load_key_and_certificates(pfx_bytes, password)
    if key is None or cert is None:
        raise ValueError('PKCS#12 bundle has no private key or certificate')

    parts = [
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ),
        cert.public_bytes(serialization.Encoding.PEM),
    ]
    for extra in extra_certs or []:
        parts.append(extra.public_bytes(serialization.Encoding.PEM))
    return b''.join(parts), cert.subject.rfc4514_string()


def load_client_identity(config):
    """
    Decode the configured client certificate bundle for mutual TLS.

    Returns None when no bundle is configured, or when it cannot be decoded;
    the gateway then talks to FBR without a client certificate.
    """
    if not config.client_cert_b64:
        return None

    try:
        pfx_bytes = base64.b64decode(config.client_cert_b64, validate=False)
        pem, subject = pfx_to_pem(pfx_bytes, config.client_cert_passphrase)
    except (binascii.Error, ValueError, TypeError) as e:
        logger.error("Could not load client certificate, continuing without mTLS: %s", e)
        return None

    # requests only takes certificates from files
    fd, path = tempfile.mkstemp(prefix='fbr-client-', suffix='.pem')
    with os.fdopen(fd, 'wb') as fh:
        fh.write(pem)
    os.chmod(path, 0o600)
    atexit.register(remove_pem, path)

    logger.info("Client certificate loaded for mutual TLS: %s", subject)
    return ClientIdentity(pem_path=path, subject=subject)
