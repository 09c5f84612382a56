from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ldap3.utils.dn import escape_rdn

from .errors import ValidationError
from .models import Entry, LDAPConfig

log = logging.getLogger(__name__)


class EntryBuilder:
    """Derive the computed attributes of a new user entry.

    * ``displayName`` defaults to "<givenName> <sn>".
    * ``cn`` and ``name`` equal ``displayName``.
    * ``distinguishedName`` is ``CN=<cn>,[<dn>,]<base DN>`` where the optional
      ``dn`` input is a path relative to the base DN (e.g. ``OU=Staff``).
    * ``userPrincipalName`` is ``sAMAccountName`` followed by the configured
      suffix. Without ``sAMAccountName`` it is the bare suffix.
    """

    def __init__(self, config: LDAPConfig) -> None:
        self.config = config

    def build(
        self,
        partial: Mapping[str, Any],
        base_dn: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> Entry:
        if not partial:
            raise ValidationError("Entry is empty")
        sn = partial.get("sn")
        given_name = partial.get("givenName")
        if not sn or not given_name:
            raise ValidationError("sn and givenName attributes required")

        base_dn = self.config.base_dn if base_dn is None else base_dn
        suffix = self.config.suffix if suffix is None else suffix

        entry: Entry = dict(partial)
        if not entry.get("displayName"):
            entry["displayName"] = f"{given_name} {sn}"
        entry["cn"] = entry["name"] = entry["displayName"]

        relative = (entry.pop("dn", None) or "").strip().strip(",")
        parent = f"{relative},{base_dn}" if relative else base_dn
        dn = f"CN={escape_rdn(entry['cn'])},{parent}"
        entry["distinguishedName"] = dn

        sam = entry.get("sAMAccountName")
        if not sam:
            log.warning("Entry %s has no sAMAccountName, userPrincipalName will be %r", dn, suffix)
        entry["userPrincipalName"] = f"{sam or ''}{suffix}"

        entry["dn"] = dn
        return entry

    def add_attributes(self, entry: Mapping[str, Any]) -> dict[str, Any]:
        """Attributes sent with the add request: everything but ``dn``, objectClass defaulted."""
        attrs = {k: v for k, v in entry.items() if k != "dn" and v is not None}
        if not attrs.get("objectClass") and self.config.object_classes:
            attrs["objectClass"] = list(self.config.object_classes)
        return attrs
