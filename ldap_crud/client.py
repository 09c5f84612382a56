from __future__ import annotations

import hashlib
import logging
import os
import ssl
import tempfile
from contextlib import contextmanager
from typing import Any, Iterator

from ldap3 import ALL, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.core.results import RESULT_INVALID_CREDENTIALS

from .errors import AuthError, ConfigurationError, DirectoryError, InvalidCredentialsError
from .models import LDAPConfig

log = logging.getLogger(__name__)


def _normalize_pem(pem: str) -> str:
    data = (pem or "").strip()
    return data.replace("\r\n", "\n").replace("\r", "\n")


def _ensure_ca_file(pem: str) -> str:
    """Materialize CA PEM into a stable file path.

    ldap3.Tls takes ``ca_certs_file``; the file name carries a content hash so
    several processes reuse the same file.
    """
    data = _normalize_pem(pem)
    if not data:
        return ""
    if "-----BEGIN CERTIFICATE-----" not in data or "-----END CERTIFICATE-----" not in data:
        raise ConfigurationError("CA PEM does not contain a BEGIN/END CERTIFICATE block")

    h = hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]
    path = os.path.join(tempfile.gettempdir(), f"ldap_crud_ca_{h}.pem")
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            if f.read().strip() == data:
                return path

    with open(path, "w", encoding="utf-8") as f:
        f.write(data + "\n")
    os.chmod(path, 0o600)
    return path


class ConnectionProvisioner:
    """Opens bound ldap3 connections, one per operation."""

    def __init__(self, config: LDAPConfig) -> None:
        self.config = config

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_REQUIRED if config.tls_validate else ssl.CERT_NONE,
        }
        # Custom CA only matters when the certificate is verified.
        if config.tls_validate and config.ca_pem:
            tls_kwargs["ca_certs_file"] = _ensure_ca_file(config.ca_pem)

        server_kwargs: dict[str, Any] = {}
        if config.connect_timeout:
            server_kwargs["connect_timeout"] = float(config.connect_timeout)

        self.server = Server(
            host=config.host,
            port=config.port,
            use_ssl=config.use_ssl,
            get_info=ALL,
            tls=Tls(**tls_kwargs),
            **server_kwargs,
        )

    def bind(self, user: str, password: str) -> Connection:
        """Open a connection and bind as ``user``.

        Raises InvalidCredentialsError when the server rejects the credentials,
        AuthError for any other bind failure, and DirectoryError when the
        server cannot be reached. The connection is released on failure.
        """
        conn = Connection(self.server, user=user, password=password, auto_bind=False)
        try:
            conn.open()
            if self.config.starttls:
                conn.start_tls()
            ok = bool(conn.bind())
        except LDAPException as e:
            release(conn)
            raise DirectoryError(f"LDAP connection to {self.config.host} failed: {e}", dn=user) from e

        if not ok:
            res = dict(conn.result or {})
            release(conn)
            desc = res.get("description") or "unknown error"
            if res.get("result") == RESULT_INVALID_CREDENTIALS:
                raise InvalidCredentialsError(f"Bind as {user} rejected: {desc}", result=res, dn=user)
            raise AuthError(f"Bind as {user} failed: {desc}", result=res, dn=user)

        log.debug("Bound to %s as %s", self.config.host, user)
        return conn

    def connect(self) -> Connection:
        """Bind with the configured service identity."""
        return self.bind(self.config.user_dn, self.config.password)

    @contextmanager
    def session(self) -> Iterator[Connection]:
        """Service-identity connection released when the block exits."""
        conn = self.connect()
        try:
            yield conn
        finally:
            release(conn)

    @contextmanager
    def session_as(self, user: str, password: str) -> Iterator[Connection]:
        conn = self.bind(user, password)
        try:
            yield conn
        finally:
            release(conn)


def release(conn: Connection) -> None:
    try:
        conn.unbind()
    except LDAPException as e:
        log.debug("Unbind failed: %s", e)


def check_result(conn: Connection, ok: bool, action: str, dn: str = "") -> None:
    """Raise DirectoryError when an ldap3 operation returned False."""
    if ok:
        return
    res = dict(conn.result or {})
    desc = res.get("description") or res.get("message") or "unknown error"
    raise DirectoryError(f"{action} failed ({dn or '-'}): {desc}", result=res, dn=dn)


@contextmanager
def translate_errors(action: str, dn: str = "") -> Iterator[None]:
    try:
        yield
    except LDAPException as e:
        raise DirectoryError(f"{action} failed ({dn or '-'}): {e}", dn=dn) from e
