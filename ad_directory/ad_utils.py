from __future__ import annotations

LDAP_SCHEME = "LDAP://"


def domain_to_base_dn(domain: str) -> str:
    domain = (domain or "").strip().strip(".")
    if not domain or "." not in domain:
        return ""
    parts = [p for p in domain.split(".") if p]
    return ",".join([f"DC={p}" for p in parts])


def build_dc_fqdn(dc_short: str, domain: str) -> str:
    dc_short = (dc_short or "").strip()
    domain = (domain or "").strip().strip(".")
    if not dc_short:
        return domain

    # IP-адрес контроллера используем как есть
    import ipaddress
    try:
        ipaddress.ip_address(dc_short)
        return dc_short
    except ValueError:
        if "." in dc_short:
            return dc_short
        return f"{dc_short}.{domain}" if domain else dc_short


def build_base_path(domain: str) -> str:
    """LDAP://corp.example.com"""
    return f"{LDAP_SCHEME}{(domain or '').strip().strip('.')}"


def resolve_ou_path(path: str | None, base_path: str) -> str:
    """Turn a caller supplied OU path into an absolute LDAP path.

    Blank input resolves to `base_path`. Otherwise leading/trailing slashes are
    trimmed and the base path is prepended unless the input already contains it
    (case-insensitive).
    """
    if path is None or not path.strip():
        return base_path
    path = path.strip().strip("/")
    if not path:
        return base_path
    if base_path.lower() not in path.lower():
        path = f"{base_path}/{path}"
    return path


def split_ldap_path(path: str) -> tuple[str, str]:
    """Split `LDAP://host/relative` into (host, relative)."""
    s = (path or "").strip()
    if s[:len(LDAP_SCHEME)].upper() == LDAP_SCHEME:
        s = s[len(LDAP_SCHEME):]
    host, _, rest = s.partition("/")
    return host.strip(), rest.strip().strip("/")


def path_to_dn(path: str, base_dn: str) -> str:
    """Map an LDAP path to the DN used as search base.

    LDAP://corp.test                       -> DC=corp,DC=test
    LDAP://corp.test/OU=Sales,DC=corp,DC=test -> OU=Sales,DC=corp,DC=test
    LDAP://corp.test/OU=Sales              -> OU=Sales,DC=corp,DC=test
    LDAP://corp.test/Sales/East            -> OU=East,OU=Sales,DC=corp,DC=test
    """
    _, rest = split_ldap_path(path)
    if not rest:
        return base_dn

    if "=" in rest:
        dn = rest
    else:
        names = [p.strip() for p in rest.split("/") if p.strip()]
        dn = ",".join(f"OU={n}" for n in reversed(names))

    if base_dn and not dn.lower().endswith(base_dn.lower()):
        dn = f"{dn},{base_dn}"
    return dn


def dn_to_path(host: str, dn: str) -> str:
    return f"{LDAP_SCHEME}{host}/{dn}" if dn else f"{LDAP_SCHEME}{host}"
