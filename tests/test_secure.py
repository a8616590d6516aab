import datetime
import socket
import ssl
from concurrent.futures import ThreadPoolExecutor

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID

from semlakit.secure import (
    Role,
    SecureChannel,
    create_context,
    generate_certificate,
    load_rsa_key,
    public_key_pem,
    ssl_error_string,
)


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def rsa_pem(rsa_key):
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )


def _validity(cert):
    before = getattr(cert, "not_valid_before_utc", None) or cert.not_valid_before
    after = getattr(cert, "not_valid_after_utc", None) or cert.not_valid_after
    return before, after


def test_load_rsa_key_bytes_and_text(rsa_key, rsa_pem):
    expected = rsa_key.private_numbers()
    assert load_rsa_key(rsa_pem).private_numbers() == expected
    assert load_rsa_key(rsa_pem.decode("ascii")).private_numbers() == expected


def test_load_rsa_key_rejects_garbage():
    with pytest.raises(ValueError):
        load_rsa_key(b"not a key at all")


def test_load_rsa_key_rejects_non_rsa():
    ec_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    with pytest.raises(ValueError):
        load_rsa_key(ec_pem)


def test_public_key_pem_round_trip(rsa_key):
    pem = public_key_pem(rsa_key)
    assert pem.startswith("-----BEGIN PUBLIC KEY-----")
    loaded = serialization.load_pem_public_key(pem.encode("ascii"))
    assert loaded.public_numbers() == rsa_key.public_key().public_numbers()
    assert public_key_pem(rsa_key.public_key()) == pem


def test_public_key_pem_without_key():
    with pytest.raises(ValueError):
        public_key_pem(None)


def test_generate_certificate_fields(rsa_key):
    cert = generate_certificate(rsa_key)
    assert cert.serial_number == 1
    assert cert.subject == cert.issuer
    assert cert.subject.get_attributes_for_oid(NameOID.COUNTRY_NAME)[0].value == "SE"
    assert cert.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value == "Modelon"
    assert isinstance(cert.signature_hash_algorithm, hashes.SHA1)
    assert cert.public_key().public_numbers() == rsa_key.public_key().public_numbers()


def test_generate_certificate_validity_is_one_year(rsa_key):
    cert = generate_certificate(rsa_key)
    before, after = _validity(cert)
    assert after - before == datetime.timedelta(seconds=31536000)


def test_generate_certificate_is_self_signed(rsa_key):
    cert = generate_certificate(rsa_key)
    rsa_key.public_key().verify(
        cert.signature, cert.tbs_certificate_bytes, padding.PKCS1v15(), hashes.SHA1()
    )
    assert cert.issuer == cert.subject


def test_create_context_client(rsa_pem):
    ctx = create_context(rsa_pem, Role.CLIENT)
    assert ctx.verify_mode == ssl.CERT_NONE
    assert ctx.check_hostname is False


def test_create_context_server(rsa_pem):
    ctx = create_context(rsa_pem, Role.SERVER)
    assert ctx.verify_mode == ssl.CERT_OPTIONAL


def test_create_context_bad_key():
    with pytest.raises(ValueError):
        create_context(b"garbage", Role.SERVER)


def test_tls_round_trip(rsa_key, rsa_pem):
    server_ctx = create_context(rsa_pem, Role.SERVER)
    client_ctx = create_context(rsa_pem, Role.CLIENT)
    server_sock, client_sock = socket.socketpair()
    server_sock.settimeout(10)
    client_sock.settimeout(10)

    def serve():
        with server_ctx.wrap_socket(server_sock, server_side=True) as tls:
            channel = SecureChannel(tls)
            received = channel.read_message()
            channel.write_message(b"YES\n")
            return received

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(serve)
        with client_ctx.wrap_socket(client_sock) as tls:
            channel = SecureChannel(tls)
            written = channel.write_message(b"VERSION 2\n")
            reply = channel.read_message()
            peer_der = tls.getpeercert(binary_form=True)
        received = future.result(timeout=10)

    assert written == len(b"VERSION 2\n")
    assert received == b"VERSION 2\n"
    assert reply == b"YES\n"
    peer = x509.load_der_x509_certificate(peer_der)
    assert peer.public_key().public_numbers() == rsa_key.public_key().public_numbers()


def test_channel_over_plain_socket():
    left, right = socket.socketpair()
    with SecureChannel(left) as writer, SecureChannel(right) as reader:
        assert writer.write_message("TOOLS\n") == 6
        assert reader.read_message() == b"TOOLS\n"


def test_channel_write_empty_fails():
    left, right = socket.socketpair()
    with SecureChannel(left) as writer, SecureChannel(right):
        with pytest.raises(ValueError):
            writer.write_message(b"")


def test_channel_read_after_close_fails():
    left, right = socket.socketpair()
    right.close()
    with SecureChannel(left) as reader:
        with pytest.raises(ConnectionError):
            reader.read_message()


def test_ssl_error_string_codes():
    assert ssl_error_string(ssl.SSL_ERROR_WANT_READ) == "SSL_ERROR_WANT_READ"
    assert ssl_error_string(ssl.SSL_ERROR_WANT_WRITE) == "SSL_ERROR_WANT_WRITE"
    assert ssl_error_string(ssl.SSL_ERROR_SYSCALL) == "SSL_ERROR_SYSCALL"
    assert ssl_error_string(ssl.SSL_ERROR_SSL) == "SSL_ERROR_SSL"
    assert ssl_error_string(ssl.SSL_ERROR_NONE) == ""


def test_ssl_error_string_exceptions():
    assert (
        ssl_error_string(ssl.SSLWantWriteError(ssl.SSL_ERROR_WANT_WRITE, "retry"))
        == "SSL_ERROR_WANT_WRITE"
    )
    err = ssl.SSLError(ssl.SSL_ERROR_SSL, "handshake failed")
    err.reason = "WRONG_VERSION_NUMBER"
    assert ssl_error_string(err) == "SSL_ERROR_SSL. reason: WRONG_VERSION_NUMBER"


def test_ssl_error_string_os_error():
    result = ssl_error_string(OSError(32, "Broken pipe"))
    assert result == "SSL_ERROR_SYSCALL. reason: Broken pipe"