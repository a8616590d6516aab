"""TLS setup and message transport for the licensing protocol."""

from __future__ import annotations

import datetime
import os
import socket
import ssl
import tempfile
from enum import IntEnum
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

CIPHER_LIST = "HIGH:!DSS:!aNULL@STRENGTH"
"""OpenSSL cipher selection used by both ends."""

CERTIFICATE_LIFETIME = datetime.timedelta(seconds=31536000)
"""Validity period of a generated certificate: one year."""

READ_CHUNK_SIZE = 16384
"""Bytes asked for by each read from the transport (one TLS record)."""

_ERROR_NAMES = {
    ssl.SSL_ERROR_WANT_READ: "SSL_ERROR_WANT_READ",
    ssl.SSL_ERROR_WANT_WRITE: "SSL_ERROR_WANT_WRITE",
    ssl.SSL_ERROR_SYSCALL: "SSL_ERROR_SYSCALL",
    ssl.SSL_ERROR_SSL: "SSL_ERROR_SSL",
}

KeyData = Union[str, bytes, bytearray]


class Role(IntEnum):
    """Which end of the connection a context is made for."""

    SERVER = 0
    CLIENT = 1


def load_rsa_key(private_key: KeyData) -> rsa.RSAPrivateKey:
    """Load an unencrypted PEM RSA private key.

    Raises :class:`ValueError` if the data is not such a key.
    """
    data = private_key.encode("ascii") if isinstance(private_key, str) else bytes(private_key)
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"cannot read RSA private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("private key is not an RSA key")
    return key


def public_key_pem(key: Union[rsa.RSAPrivateKey, rsa.RSAPublicKey, None]) -> str:
    """Return the public half of ``key`` as a ``-----BEGIN PUBLIC KEY-----`` PEM block."""
    if key is None:
        raise ValueError("no key given")
    public = key.public_key() if isinstance(key, rsa.RSAPrivateKey) else key
    if not isinstance(public, rsa.RSAPublicKey):
        raise ValueError("key is not an RSA key")
    pem = public.public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return pem.decode("ascii")


def _build_certificate(
    key: rsa.RSAPrivateKey, algorithm: hashes.HashAlgorithm
) -> x509.Certificate:
    if key is None:
        raise ValueError("no key given")
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "SE"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Modelon"),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(1)
        .not_valid_before(now)
        .not_valid_after(now + CERTIFICATE_LIFETIME)
        .sign(key, algorithm)
    )


def generate_certificate(key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Create a self-signed certificate for ``key``, valid for one year, signed with SHA-1."""
    return _build_certificate(key, hashes.SHA1())


def _load_identity(context: ssl.SSLContext, key: rsa.RSAPrivateKey) -> None:
    certificate = _build_certificate(key, hashes.SHA256())
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    with tempfile.TemporaryDirectory() as directory:
        cert_path = os.path.join(directory, "cert.pem")
        key_path = os.path.join(directory, "key.pem")
        with open(cert_path, "wb") as handle:
            handle.write(certificate.public_bytes(serialization.Encoding.PEM))
        with open(key_path, "wb") as handle:
            handle.write(key_pem)
        context.load_cert_chain(cert_path, key_path)


def create_context(private_key: KeyData, role: Union[Role, int]) -> ssl.SSLContext:
    """Create a TLS context for ``role`` using ``private_key``.

    A client does not verify the server. A server asks the client for a
    certificate but accepts a client that sends none.
    """
    key = load_rsa_key(private_key)
    if role == Role.CLIENT:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.verify_mode = ssl.CERT_OPTIONAL
        _load_identity(context, key)
    context.set_ciphers(CIPHER_LIST)
    return context


def ssl_error_string(error: Union[BaseException, int]) -> str:
    """Describe a TLS error: its kind, followed by ``. reason: ...`` when one is known."""
    reason: Optional[str] = None
    if isinstance(error, ssl.SSLError):
        code = error.errno
        reason = getattr(error, "reason", None)
    elif isinstance(error, OSError):
        code = ssl.SSL_ERROR_SYSCALL
        reason = error.strerror
    elif isinstance(error, BaseException):
        code = None
        reason = str(error) or None
    else:
        code = int(error)
    name = _ERROR_NAMES.get(code, "")
    return f"{name}. reason: {reason}" if reason else name


class SecureChannel:
    """Writes and reads whole protocol messages over a (TLS) socket."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock

    def __enter__(self) -> "SecureChannel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying socket."""
        self.sock.close()

    def write_message(self, data: Union[bytes, bytearray, str]) -> int:
        """Send ``data`` and return the number of bytes written."""
        payload = data.encode("latin-1") if isinstance(data, str) else bytes(data)
        if not payload:
            raise ValueError("nothing to write")
        while True:
            try:
                self.sock.sendall(payload)
            except ssl.SSLWantWriteError:
                continue
            return len(payload)

    def _pending(self) -> int:
        pending = getattr(self.sock, "pending", None)
        return pending() if pending is not None else 0

    def read_message(self) -> bytes:
        """Read what the peer has sent: one read, then whatever is still buffered.

        Raises :class:`ConnectionError` if the peer has closed the connection.
        """
        chunks: list[bytes] = []
        while True:
            try:
                chunk = self.sock.recv(READ_CHUNK_SIZE)
            except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
                continue
            if not chunk:
                raise ConnectionError("connection closed by peer")
            chunks.append(chunk)
            if not self._pending():
                return b"".join(chunks)