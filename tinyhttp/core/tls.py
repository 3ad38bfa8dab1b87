from __future__ import annotations

import ipaddress
import logging
import os
from typing import TYPE_CHECKING, Any

import certifi
from OpenSSL import SSL
from service_identity import CertificateError, VerificationError
from service_identity.pyopenssl import verify_hostname, verify_ip_address

from tinyhttp.exceptions import NotConfigured, TLSError

if TYPE_CHECKING:
    import socket

    from OpenSSL.crypto import X509Name

    # typing.Self requires Python 3.11
    from typing_extensions import Self

    from tinyhttp.settings import BaseSettings


logger = logging.getLogger(__name__)


METHOD_TLS = "TLS"
METHOD_TLSv10 = "TLSv1.0"
METHOD_TLSv11 = "TLSv1.1"
METHOD_TLSv12 = "TLSv1.2"


openssl_methods = {
    METHOD_TLS: SSL.SSLv23_METHOD,  # protocol negotiation (recommended)
    METHOD_TLSv10: SSL.TLSv1_METHOD,  # TLS 1.0 only
    METHOD_TLSv11: getattr(SSL, "TLSv1_1_METHOD", 5),  # TLS 1.1 only
    METHOD_TLSv12: getattr(SSL, "TLSv1_2_METHOD", 6),  # TLS 1.2 only
}

tls_versions = {
    "TLSv1.0": SSL.TLS1_VERSION,
    "TLSv1.1": SSL.TLS1_1_VERSION,
    "TLSv1.2": SSL.TLS1_2_VERSION,
    "TLSv1.3": SSL.TLS1_3_VERSION,
}

# checked in order when neither the options nor SSL_CERT_FILE name a bundle
# and certifi is unusable
SYSTEM_CA_FILES = (
    "/etc/ssl/certs/ca-certificates.crt",  # Debian, Ubuntu, Gentoo, Arch
    "/etc/pki/tls/certs/ca-bundle.crt",  # Fedora, RHEL
    "/etc/ssl/ca-bundle.pem",  # OpenSUSE
    "/etc/openssl/certs/ca-certificates.crt",  # NetBSD
    "/etc/ssl/cert.pem",  # OpenBSD, FreeBSD, macOS
    "/usr/local/share/certs/ca-root-nss.crt",  # FreeBSD
    "/etc/pki/tls/cacert.pem",  # OpenELEC
    "/etc/certs/ca-certificates.crt",  # Solaris 11.2+
)

DEFAULT_CIPHERS = "DEFAULT"


def find_ca_file(options: dict[str, Any] | None = None) -> str | None:
    """Return the path of the CA bundle to verify servers against, or
    ``None`` when no bundle can be found."""
    options = options or {}
    ca_file = options.get("ca_file")
    if ca_file:
        return ca_file if os.path.isfile(ca_file) else None
    env_file = os.environ.get("SSL_CERT_FILE")
    if env_file:
        return env_file if os.path.isfile(env_file) else None
    bundle = certifi.where()
    if bundle and os.path.isfile(bundle):
        return bundle
    for path in SYSTEM_CA_FILES:
        if os.path.isfile(path):
            return path
    return None


def x509name_to_string(x509name: X509Name) -> str:
    return "".join(
        f"/{key.decode('ascii', 'replace')}={value.decode('utf-8', 'replace')}"
        for key, value in x509name.get_components()
    )


def _verify_callback(
    connection: SSL.Connection, x509: Any, errnum: int, errdepth: int, ok: int
) -> bool:
    return bool(ok)


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class ClientContextFactory:
    """
    Builds pyOpenSSL client connections for https origins.

    With ``verify`` enabled the peer chain is checked against the CA bundle
    (``ca_file``/``ca_path`` or the discovered default) during the
    handshake, and :meth:`verify` matches the certificate identity against
    the requested host name or IP address.

    Default OpenSSL method is TLS_METHOD (also called SSLv23_METHOD)
    which allows TLS protocol negotiation.
    """

    def __init__(
        self,
        verify: bool = True,
        ca_file: str | None = None,
        ca_path: str | None = None,
        ciphers: str | None = None,
        method: int = SSL.SSLv23_METHOD,
        min_version: int | None = None,
        max_version: int | None = None,
        verbose_logging: bool = False,
    ):
        self.verify_peer: bool = verify
        self.ca_file: str | None = ca_file
        self.ca_path: str | None = ca_path
        self.ciphers: str = ciphers or DEFAULT_CIPHERS
        self._ssl_method: int = method
        self.min_version: int | None = min_version
        self.max_version: int | None = max_version
        self.verbose_logging: bool = verbose_logging
        self._context: SSL.Context | None = None

    @classmethod
    def from_settings(cls, settings: BaseSettings) -> Self:
        options = settings.getdict("TLS_OPTIONS")
        unknown = set(options) - {
            "ca_file",
            "ca_path",
            "ciphers",
            "method",
            "min_version",
            "max_version",
            "verbose_logging",
        }
        if unknown:
            raise NotConfigured(f"Unknown TLS_OPTIONS keys: {sorted(unknown)}")
        method_name = options.get("method") or METHOD_TLS
        if method_name not in openssl_methods:
            raise NotConfigured(f"Unknown TLS method: {method_name}")
        kwargs: dict[str, Any] = {}
        for key in ("min_version", "max_version"):
            name = options.get(key)
            if name is None:
                continue
            if name not in tls_versions:
                raise NotConfigured(f"Unknown TLS {key} value: {name}")
            kwargs[key] = tls_versions[name]
        return cls(
            verify=settings.getbool("TLS_VERIFY"),
            ca_file=options.get("ca_file"),
            ca_path=options.get("ca_path"),
            ciphers=options.get("ciphers"),
            method=openssl_methods[method_name],
            verbose_logging=bool(options.get("verbose_logging", False)),
            **kwargs,
        )

    def get_context(self) -> SSL.Context:
        if self._context is None:
            self._context = self._build_context()
        return self._context

    def _build_context(self) -> SSL.Context:
        ctx = SSL.Context(self._ssl_method)
        ctx.set_options(0x4)  # OP_LEGACY_SERVER_CONNECT
        ctx.set_options(getattr(SSL, "OP_IGNORE_UNEXPECTED_EOF", 0))
        if self.min_version is not None:
            ctx.set_min_proto_version(self.min_version)
        if self.max_version is not None:
            ctx.set_max_proto_version(self.max_version)
        try:
            ctx.set_cipher_list(self.ciphers.encode("ascii"))
        except SSL.Error as e:
            raise TLSError(f"Invalid cipher list '{self.ciphers}': {e}") from e
        if self.verify_peer:
            ca_file = self.ca_file
            if ca_file is None and self.ca_path is None:
                ca_file = find_ca_file()
                if ca_file is None:
                    raise TLSError(
                        "No CA file found; set TLS_OPTIONS['ca_file'] "
                        "or disable TLS_VERIFY"
                    )
            elif ca_file is not None and not os.path.isfile(ca_file):
                raise TLSError(f"CA file '{ca_file}' not found")
            try:
                ctx.load_verify_locations(ca_file, self.ca_path)
            except SSL.Error as e:
                raise TLSError(f"Could not load CA certificates: {e}") from e
            ctx.set_verify(SSL.VERIFY_PEER, _verify_callback)
        return ctx

    def wrap(self, sock: socket.socket, hostname: str) -> SSL.Connection:
        """Return a client-side TLS connection over ``sock`` with the Server
        Name Indication set for ``hostname``."""
        connection = SSL.Connection(self.get_context(), sock)
        if not _is_ip_address(hostname):
            connection.set_tlsext_host_name(hostname.encode("idna"))
        connection.set_connect_state()
        return connection

    def verify(self, connection: SSL.Connection, hostname: str) -> None:
        """Check the peer certificate identity after the handshake."""
        if self.verbose_logging:
            self._log_connection(connection, hostname)
        if not self.verify_peer:
            return
        try:
            if _is_ip_address(hostname):
                verify_ip_address(connection, hostname)
            else:
                verify_hostname(connection, hostname)
        except (CertificateError, VerificationError) as e:
            raise TLSError(
                f'Remote certificate is not valid for hostname "{hostname}"; {e}'
            ) from e

    def _log_connection(self, connection: SSL.Connection, hostname: str) -> None:
        logger.debug(
            "SSL connection to %s using protocol %s, cipher %s",
            hostname,
            connection.get_protocol_version_name(),
            connection.get_cipher_name(),
        )
        server_cert = connection.get_peer_certificate()
        if server_cert is not None:
            logger.debug(
                'SSL connection certificate: issuer "%s", subject "%s"',
                x509name_to_string(server_cert.get_issuer()),
                x509name_to_string(server_cert.get_subject()),
            )
