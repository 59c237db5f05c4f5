from __future__ import annotations


def dn_first_rdn(dn: str) -> str:
    """Return the first (leaf) RDN of a DN, honouring escaped commas."""
    s = (dn or "").strip()
    first: list[str] = []
    esc = False
    for ch in s:
        if esc:
            first.append("\\" + ch)
            esc = False
            continue
        if ch == "\\":
            esc = True
            continue
        if ch == ",":
            break
        first.append(ch)
    return "".join(first).strip()


def dn_first_component_value(dn: str) -> str:
    """Return first RDN value from a DN (e.g. OU=Sales,DC=corp,DC=test -> Sales).

    Empty string when the RDN has no `=` separator or no value after it.
    """
    rdn = dn_first_rdn(dn)
    if "=" not in rdn:
        return ""
    _, val = rdn.split("=", 1)

    # Unescape common DN escapes
    val = val.replace("\\,", ",").replace("\\+", "+").replace("\\=", "=").replace('\\"', '"')
    return val.strip()
