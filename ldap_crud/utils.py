from __future__ import annotations

from typing import Any, Mapping


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def wrap_filter(fragment: str) -> str:
    """Wrap a bare ``attr=value`` fragment into parentheses."""
    s = (fragment or "").strip()
    if not s:
        return ""
    if s.startswith("(") and s.endswith(")"):
        return s
    return f"({s})"


def combine_filters(default_filter: str, fragment: str) -> str:
    """AND the mandatory default filter with a caller fragment."""
    return f"(&{wrap_filter(default_filter)}{wrap_filter(fragment)})"


def encode_password(password: str) -> bytes:
    """Encode a clear password as an Active Directory ``unicodePwd`` value."""
    return f'"{password}"'.encode("utf-16-le")


def split_dn(dn: str) -> tuple[str, str]:
    """Split a DN into its first RDN and the parent DN (escaped commas are kept)."""
    s = (dn or "").strip()
    esc = False
    for i, ch in enumerate(s):
        if esc:
            esc = False
            continue
        if ch == "\\":
            esc = True
            continue
        if ch == ",":
            return s[:i].strip(), s[i + 1:].strip()
    return s, ""


def normalize_dn(dn: str) -> str:
    """Comparison key for DNs: case-folded, no spaces around separators."""
    parts: list[str] = []
    rest = (dn or "").strip()
    while rest:
        rdn, rest = split_dn(rest)
        if "=" in rdn:
            attr, val = rdn.split("=", 1)
            rdn = f"{attr.strip()}={val.strip()}"
        parts.append(rdn)
    return ",".join(parts).lower()


def same_dn(a: str, b: str) -> bool:
    return normalize_dn(a) == normalize_dn(b)


def get_attribute(entry: Mapping[str, Any], attr: str) -> Any:
    """Case-insensitive attribute lookup, as attribute names are in LDAP."""
    if attr in entry:
        return entry[attr]
    low = attr.lower()
    for k, v in entry.items():
        if k.lower() == low:
            return v
    return None
