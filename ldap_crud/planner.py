from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from ldap3 import MODIFY_ADD, MODIFY_DELETE, MODIFY_REPLACE, Connection
from ldap3.utils.dn import escape_rdn

from .client import check_result, translate_errors
from .errors import DirectoryError, NotFoundError
from .models import Change, Entry, LDAPConfig
from .resolver import EntryResolver
from .utils import get_attribute, same_dn, split_dn

log = logging.getLogger(__name__)

MODIFY_OPERATIONS = {
    "replace": MODIFY_REPLACE,
    "add": MODIFY_ADD,
    "delete": MODIFY_DELETE,
}

# Attributes the RDN is derived from; changing one of them renames the entry.
NAME_ATTRIBUTES = ("givenName", "sn")


def _as_values(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class MutationPlan:
    dn: str
    changes: list[Change]
    new_dn: Optional[str] = None

    @property
    def renames(self) -> bool:
        return bool(self.new_dn) and not same_dn(self.dn, self.new_dn)

    def modifications(self) -> dict[str, list[tuple[str, list]]]:
        """ldap3 ``modify`` payload; per-attribute order follows the request."""
        mods: dict[str, list[tuple[str, list]]] = {}
        for ch in self.changes:
            mods.setdefault(ch.attr, []).append((MODIFY_OPERATIONS[ch.operation], _as_values(ch.value)))
        return mods


class MutationPlanner:
    """Resolve the target of an update, plan its changes and apply them.

    Modify is always issued before the rename; a failed rename leaves the
    modified attributes in place and is raised as the update's error.
    """

    def __init__(self, config: LDAPConfig, resolver: EntryResolver) -> None:
        self.config = config
        self.resolver = resolver

    @staticmethod
    def implies_rename(changes: Iterable[Change]) -> bool:
        return any(ch.attr in NAME_ATTRIBUTES for ch in changes)

    def resolve(self, conn: Connection, filter_: str, changes: list[Change]) -> Entry:
        attrs: list[str] = []
        for ch in changes:
            if ch.attr not in attrs:
                attrs.append(ch.attr)
        if self.implies_rename(changes):
            attrs.extend(a for a in NAME_ATTRIBUTES if a not in attrs)

        entries = self.resolver.find(conn, filter_, attrs)
        if not entries:
            raise NotFoundError(filter_)
        if len(entries) > 1:
            log.warning("Filter %s matches %d entries, updating %s only", filter_, len(entries), entries[0]["dn"])
        return entries[0]

    def plan(self, entry: Entry, changes: list[Change]) -> MutationPlan:
        planned: list[Change] = []
        for ch in changes:
            # A delete removes the values the entry currently holds.
            value = get_attribute(entry, ch.attr) if ch.operation == "delete" else ch.value
            if value is None:
                continue
            planned.append(Change(ch.operation, ch.attr, value))
        if not planned:
            return MutationPlan(dn=entry["dn"], changes=[])

        new_dn = None
        # Only name changes that survived the drop above rename the entry.
        if self.implies_rename(planned):
            full_name = self.full_name(entry, planned)
            planned.append(Change("replace", "displayName", full_name))
            new_dn = f"CN={escape_rdn(full_name)},{self.config.base_dn}"

        return MutationPlan(dn=entry["dn"], changes=planned, new_dn=new_dn)

    @staticmethod
    def full_name(entry: Entry, changes: list[Change]) -> str:
        """Return "<givenName> <sn>", each part taken from the request when it sets one."""
        names: dict[str, Any] = {a: get_attribute(entry, a) for a in NAME_ATTRIBUTES}
        for ch in changes:
            if ch.attr in NAME_ATTRIBUTES and ch.operation != "delete" and ch.value is not None:
                names[ch.attr] = ch.value
        parts = []
        for a in ("givenName", "sn"):
            v = names[a]
            if isinstance(v, (list, tuple)):
                v = v[0] if v else ""
            parts.append(str(v or ""))
        return " ".join(parts).strip()

    def apply(self, conn: Connection, plan: MutationPlan) -> None:
        with translate_errors("Modify", plan.dn):
            ok = conn.modify(plan.dn, plan.modifications())
        check_result(conn, ok, "Modify", plan.dn)
        log.info("Modified %s: %s", plan.dn, ", ".join(f"{c.operation} {c.attr}" for c in plan.changes))

        if not plan.new_dn:
            return
        if not plan.renames:
            log.debug("%s already has the target name, rename skipped", plan.dn)
            return

        rdn, parent = split_dn(plan.new_dn)
        current_parent = split_dn(plan.dn)[1]
        new_superior = None if same_dn(parent, current_parent) else parent
        try:
            with translate_errors("Rename", plan.dn):
                ok = conn.modify_dn(plan.dn, rdn, new_superior=new_superior)
            check_result(conn, ok, "Rename", plan.dn)
        except DirectoryError:
            log.warning("Attributes of %s were updated but the rename to %s failed", plan.dn, plan.new_dn)
            raise
        log.info("Renamed %s to %s", plan.dn, plan.new_dn)

    def update(self, conn: Connection, filter_: str, changes: list[Union[Change, Mapping[str, Any]]]) -> bool:
        requested = [Change.coerce(c) for c in changes]
        entry = self.resolve(conn, filter_, requested)
        plan = self.plan(entry, requested)
        if not plan.changes:
            log.debug("Nothing to change for %s", plan.dn)
            return True
        self.apply(conn, plan)
        return True
