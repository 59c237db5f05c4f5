from __future__ import annotations

from typing import Any

# userAccountControl: ACCOUNTDISABLE
UAC_ACCOUNTDISABLE = 0x0002


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


def escape_ldap_filter_pattern(pattern: str) -> str:
    """Like escape_ldap_filter_value, but keeps `*` as a wildcard."""
    return "*".join(escape_ldap_filter_value(part) for part in (pattern or "").split("*"))


def parse_account_control(v: Any) -> int | None:
    if v is None or v == "" or v == []:
        return None
    if isinstance(v, (list, tuple)):
        v = v[0]
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def is_account_disabled(flags: int | None) -> bool:
    """True when the ACCOUNTDISABLE bit is set in userAccountControl."""
    if flags is None:
        return False
    return bool(int(flags) & UAC_ACCOUNTDISABLE)
