from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ldap3.utils.dn import escape_rdn

from .builder import EntryBuilder
from .client import ConnectionProvisioner, check_result, translate_errors
from .env_settings import get_env, load_config
from .errors import BatchError, DirectoryError, InvalidCredentialsError, NotFoundError, ValidationError
from .log_config import setup_logging
from .mapper import FieldMapper
from .models import BatchResult, Change, Entry, LDAPConfig
from .planner import MutationPlanner
from .resolver import EntryResolver
from .utils import escape_ldap_filter_value, get_attribute, same_dn, split_dn

log = logging.getLogger(__name__)


def _require_filter(filter_: str) -> str:
    filter_ = (filter_ or "").strip()
    if not filter_:
        raise ValidationError("Filter is required")
    return filter_


class LDAPCrud:
    """Create, read, update, delete and move user entries.

    Every call binds a fresh connection with the service identity and
    releases it before returning, whatever the outcome.

    Example::

        crud = LDAPCrud(config)
        crud.create({"sn": "User", "givenName": "Test", "sAMAccountName": "tuser"})
        crud.update("(sAMAccountName=tuser)", [
            {"type": "replace", "attr": "unicodePwd", "value": encode_password("secret")},
            {"type": "replace", "attr": "userAccountControl", "value": "66048"},
        ])
    """

    def __init__(self, config: LDAPConfig) -> None:
        self.config = config
        self.mapper = FieldMapper(config)
        self.provisioner = ConnectionProvisioner(config)
        self.resolver = EntryResolver(config)
        self.builder = EntryBuilder(config)
        self.planner = MutationPlanner(config, self.resolver)

    @classmethod
    def from_env(cls, configure_logging: bool = False) -> LDAPCrud:
        """Build from ``LDAP_*`` settings; optionally set up logging from them too."""
        if configure_logging:
            env = get_env()
            setup_logging(env.log_level, env.log_dir or None)
        return cls(load_config())

    def convert_model(self, record: Mapping[str, Any], to_directory: bool = False) -> dict[str, Any]:
        """Map a record to directory attribute names (``to_directory``) or back."""
        return self.mapper.convert(record, to_directory)

    def authenticate(self, principal: str, credential: str) -> bool:
        """Check credentials with a bind.

        Returns False when the server rejects them; any other failure raises.
        Empty input raises InvalidCredentialsError without contacting the server.
        """
        if not principal or not credential:
            raise InvalidCredentialsError(
                "The supplied credential is invalid",
                result={"result": 49, "description": "invalidCredentials"},
                dn=principal or "",
            )
        try:
            with self.provisioner.session_as(principal, credential):
                return True
        except InvalidCredentialsError:
            log.info("Authentication failed for %s", principal)
            return False

    def create(self, entry: Mapping[str, Any]) -> Entry:
        full = self.builder.build(entry)
        dn = full["dn"]
        attrs = self.builder.add_attributes(full)
        with self.provisioner.session() as conn:
            with translate_errors("Add", dn):
                ok = conn.add(dn, attributes=attrs)
            check_result(conn, ok, "Add", dn)
        log.info("Created %s", dn)
        return full

    def read(self, filter_: str = "", attributes: Optional[Sequence[str]] = None) -> list[Entry]:
        with self.provisioner.session() as conn:
            return self.resolver.find(conn, filter_, attributes)

    find_users = read

    def find_user(self, login: str, attributes: Optional[Sequence[str]] = None) -> Optional[Entry]:
        """Single entry by sAMAccountName, or userPrincipalName when ``login`` has an "@"."""
        login = (login or "").strip()
        if not login:
            return None
        attr = "userPrincipalName" if "@" in login else "sAMAccountName"
        entries = self.read(f"({attr}={escape_ldap_filter_value(login)})", attributes)
        if len(entries) != 1:
            return None
        return entries[0]

    def update(self, filter_: str, changes: Sequence[Union[Change, Mapping[str, Any]]]) -> bool:
        filter_ = _require_filter(filter_)
        if not changes:
            raise ValidationError("Changes are empty")
        requested = [Change.coerce(c) for c in changes]
        with self.provisioner.session() as conn:
            return self.planner.update(conn, filter_, requested)

    def delete(self, filter_: str) -> list[str]:
        """Delete every entry matching the filter; returns the deleted DNs.

        Each entry is deleted independently. If any delete fails the others
        are still attempted and BatchError reports which DNs failed.
        """
        filter_ = _require_filter(filter_)
        deleted: list[str] = []
        failures: dict[str, DirectoryError] = {}
        with self.provisioner.session() as conn:
            entries = self.resolver.find(conn, filter_, ["cn"])
            if not entries:
                raise NotFoundError(filter_)
            for e in entries:
                dn = e["dn"]
                try:
                    with translate_errors("Delete", dn):
                        ok = conn.delete(dn)
                    check_result(conn, ok, "Delete", dn)
                except DirectoryError as err:
                    log.warning("Delete of %s failed: %s", dn, err)
                    failures[dn] = err
                    continue
                log.info("Deleted %s", dn)
                deleted.append(dn)
        if failures:
            raise BatchError("Delete", failures, deleted)
        return deleted

    def move(self, filter_: str, new_base_dn: Optional[str] = None) -> BatchResult:
        """Move matching entries under ``new_base_dn``.

        Without a new base every entry keeps its container, so the call only
        succeeds. Entries already at their target are skipped.
        """
        filter_ = _require_filter(filter_)
        new_base_dn = (new_base_dn or "").strip() or None
        result = BatchResult()
        failures: dict[str, DirectoryError] = {}
        with self.provisioner.session() as conn:
            entries = self.resolver.find(conn, filter_, ["cn"])
            if not entries:
                raise NotFoundError(filter_)
            for e in entries:
                dn = e["dn"]
                cn = get_attribute(e, "cn")
                if isinstance(cn, list):
                    cn = cn[0] if cn else None
                rdn = f"cn={escape_rdn(cn)}" if cn else split_dn(dn)[0]
                parent = new_base_dn or split_dn(dn)[1]
                target = f"{rdn},{parent}"
                if same_dn(dn, target):
                    log.debug("%s is already at %s", dn, target)
                    result.skipped.append(dn)
                    continue
                try:
                    with translate_errors("Move", dn):
                        ok = conn.modify_dn(dn, rdn, new_superior=parent)
                    check_result(conn, ok, "Move", dn)
                except DirectoryError as err:
                    log.warning("Move of %s to %s failed: %s", dn, target, err)
                    failures[dn] = err
                    continue
                log.info("Moved %s to %s", dn, target)
                result.succeeded.append(dn)
        if failures:
            raise BatchError("Move", failures, result.succeeded)
        return result
