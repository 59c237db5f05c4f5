from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..ad_utils import build_base_path, build_dc_fqdn, domain_to_base_dn
from .utils import is_account_disabled

USER_SCHEMA_CLASSES = frozenset({"user", "inetorgperson"})
OU_SCHEMA_CLASS = "organizationalunit"


@dataclass
class ADConfig:
    dc_short: str
    domain: str
    port: int
    use_ssl: bool
    starttls: bool
    bind_username: str
    bind_password: str
    tls_validate: bool = False
    ca_pem: str = ""
    connect_timeout_s: float | None = 5.0
    receive_timeout_s: float | None = 30.0
    traversal_timeout_s: float | None = None

    @property
    def host(self) -> str:
        return build_dc_fqdn(self.dc_short, self.domain)

    @property
    def base_dn(self) -> str:
        return domain_to_base_dn(self.domain)

    @property
    def base_path(self) -> str:
        return build_base_path(self.domain)

    @property
    def bind_principal(self) -> str:
        return self.principal_for(self.bind_username)

    def principal_for(self, username: str) -> str:
        u = (username or "").strip()
        d = (self.domain or "").strip().strip(".")
        if not u:
            return ""
        # DN, UPN и DOMAIN\user передаём как есть
        if "@" in u or "\\" in u or "=" in u:
            return u
        return f"{u}@{d}" if d else u


@dataclass
class ADUser:
    dn: str
    sam: str
    display_name: str
    mail: str
    member_of: List[str]
    object_guid: str = ""
    user_principal_name: str = ""
    user_account_control: Optional[int] = None

    @property
    def is_disabled(self) -> bool:
        return is_account_disabled(self.user_account_control)


@dataclass
class ADGroup:
    dn: str
    name: str
    account_name: str
    description: str = ""


@dataclass
class DirectoryNode:
    """One immediate child entry returned by a level-scoped enumeration."""

    dn: str
    path: str
    object_classes: List[str] = field(default_factory=list)
    object_guid: str = ""
    user_account_control: Optional[int] = None
    sam: str = ""
    display_name: str = ""
    mail: str = ""
    user_principal_name: str = ""
    member_of: List[str] = field(default_factory=list)

    @property
    def schema_class(self) -> str:
        # AD returns objectClass ordered from `top` down to the most specific class
        return self.object_classes[-1].lower() if self.object_classes else ""

    @property
    def is_user(self) -> bool:
        return self.schema_class in USER_SCHEMA_CLASSES

    @property
    def is_organizational_unit(self) -> bool:
        return self.schema_class == OU_SCHEMA_CLASS

    def to_user(self) -> ADUser:
        return ADUser(
            dn=self.dn,
            sam=self.sam,
            display_name=self.display_name or self.sam,
            mail=self.mail,
            member_of=list(self.member_of),
            object_guid=self.object_guid,
            user_principal_name=self.user_principal_name,
            user_account_control=self.user_account_control,
        )
