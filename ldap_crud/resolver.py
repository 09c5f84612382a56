from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Optional, Sequence

from ldap3 import SUBTREE, Connection
from ldap3.core.results import RESULT_SIZE_LIMIT_EXCEEDED, RESULT_SUCCESS

from .client import translate_errors
from .errors import DirectoryError
from .models import Entry, LDAPConfig
from .utils import combine_filters

log = logging.getLogger(__name__)


def to_record(item: dict[str, Any]) -> Entry:
    """Plain record from an ldap3 ``searchResEntry``: attributes plus ``dn``.

    Single values are unwrapped from their list and empty attributes dropped.
    Controls and raw values are left behind.
    """
    record: Entry = {}
    for name, value in (item.get("attributes") or {}).items():
        if isinstance(value, list):
            if not value:
                continue
            if len(value) == 1:
                value = value[0]
        record[name] = value
    record["dn"] = item.get("dn", "")
    return record


def iter_entries(response: Iterable[dict[str, Any]]) -> Iterator[Entry]:
    for item in response:
        kind = item.get("type")
        if kind == "searchResRef":
            log.debug("Skipping referral: %s", ", ".join(item.get("uri") or []))
            continue
        if kind == "searchResEntry":
            yield to_record(item)


class EntryResolver:
    def __init__(self, config: LDAPConfig) -> None:
        self.config = config

    def effective_filter(self, filter_fragment: str) -> str:
        return combine_filters(self.config.default_filter, filter_fragment)

    def find(
        self,
        conn: Connection,
        filter_fragment: str = "",
        attributes: Optional[Sequence[str]] = None,
    ) -> list[Entry]:
        """Subtree search under the base DN, ANDed with the default filter.

        Returns entries in server order; no match is an empty list.
        """
        flt = self.effective_filter(filter_fragment)
        attrs = list(attributes) if attributes else self.config.search_attributes
        base = self.config.base_dn
        log.debug("Search base=%s filter=%s attributes=%s", base, flt, attrs)

        with translate_errors("Search", base):
            conn.search(
                search_base=base,
                search_filter=flt,
                search_scope=SUBTREE,
                attributes=attrs,
            )

        res = dict(conn.result or {})
        code = res.get("result", RESULT_SUCCESS)
        if code == RESULT_SIZE_LIMIT_EXCEEDED:
            log.warning("Search %s hit the server size limit, results are truncated", flt)
        elif code != RESULT_SUCCESS:
            desc = res.get("description") or res.get("message") or "unknown error"
            raise DirectoryError(f"Search {flt} under {base} failed: {desc}", result=res, dn=base)

        entries = list(iter_entries(conn.response or []))
        log.debug("Search %s returned %d entries", flt, len(entries))
        return entries
