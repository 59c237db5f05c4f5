from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional
import logging

from ..ad import ADClient, ADConfig, ADGroup, ADUser, OrganizationalUnit
from ..ad.errors import DirectoryError, InvalidConfigurationError
from ..ad.ou import Deadline, build_organizational_unit
from ..ad_utils import build_base_path, domain_to_base_dn, resolve_ou_path
from ..env_settings import EnvSettings, get_env

log = logging.getLogger(__name__)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class UserLookup:
    status: LookupStatus
    user: Optional[ADUser] = None
    error: Optional[DirectoryError] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


def ad_cfg_from_env(env: EnvSettings | None = None) -> ADConfig:
    env = env or get_env()
    return ADConfig(
        dc_short=env.ad_dc_short,
        domain=env.ad_domain,
        port=env.ad_port,
        use_ssl=env.ad_use_ssl,
        starttls=env.ad_starttls,
        bind_username=env.ad_bind_username,
        bind_password=env.ad_bind_password,
        tls_validate=env.ad_tls_validate,
        ca_pem=env.ad_ca_pem or "",
        connect_timeout_s=env.ad_connect_timeout,
        receive_timeout_s=env.ad_receive_timeout,
        traversal_timeout_s=env.ad_traversal_timeout,
    )


class ActiveDirectory:
    """Entry point for authentication, user/group lookups and OU trees.

    Holds the domain and the service account only; nothing fetched from the
    directory is cached, every call goes back to the server.
    """

    def __init__(
        self,
        domain_name: str,
        service_username: str,
        service_password: str,
        cfg: ADConfig | None = None,
        client_factory: Callable[[ADConfig], ADClient] = ADClient,
    ) -> None:
        domain_name = (domain_name or "").strip().strip(".")
        if not domain_name:
            raise InvalidConfigurationError("AD domain is not configured")
        if not domain_to_base_dn(domain_name):
            raise InvalidConfigurationError(
                f"AD domain {domain_name!r} must be a DNS name (e.g. corp.example.com)"
            )
        if not (service_username or "").strip() or not service_password:
            raise InvalidConfigurationError("AD service account username and password are required")

        self.domain_name = domain_name
        self.service_username = service_username.strip()
        self.service_password = service_password

        if cfg is None:
            cfg = ADConfig(
                dc_short="",
                domain=domain_name,
                port=636,
                use_ssl=True,
                starttls=False,
                bind_username=self.service_username,
                bind_password=self.service_password,
            )
        else:
            # Validated arguments win over whatever the passed config carries
            cfg = replace(
                cfg,
                domain=domain_name,
                bind_username=self.service_username,
                bind_password=self.service_password,
            )
        self.cfg = cfg
        self.client = client_factory(cfg)

    @classmethod
    def from_config(cls, cfg: ADConfig, **kwargs) -> "ActiveDirectory":
        return cls(cfg.domain, cfg.bind_username, cfg.bind_password, cfg=cfg, **kwargs)

    @classmethod
    def from_env(cls, env: EnvSettings | None = None, **kwargs) -> "ActiveDirectory":
        return cls.from_config(ad_cfg_from_env(env), **kwargs)

    @property
    def base_path(self) -> str:
        return build_base_path(self.domain_name)

    def authenticate_user(self, user_name: str, password: str) -> bool:
        """True only for a valid user/password pair.

        Unknown users and wrong passwords are indistinguishable. Connection
        problems raise DirectoryUnreachableError.
        """
        ok = self.client.validate_credentials(user_name, password)
        if not ok:
            log.info("Authentication failed for %r", user_name)
        return ok

    def lookup_user(self, user_name: str) -> UserLookup:
        try:
            user = self.client.find_user_by_identity(user_name)
        except DirectoryError as e:
            log.warning("User lookup for %r failed: %s", user_name, e)
            return UserLookup(LookupStatus.ERROR, error=e)
        if user is None:
            return UserLookup(LookupStatus.NOT_FOUND)
        return UserLookup(LookupStatus.FOUND, user=user)

    def get_user_by_user_name(self, user_name: str) -> Optional[ADUser]:
        """Same as lookup_user, but errors and misses both give None."""
        return self.lookup_user(user_name).user

    def get_groups_by_name(self, filter: str = "*") -> list[ADGroup]:
        groups = self.client.search_groups(filter, limit=None)
        return sorted(groups, key=lambda g: g.account_name)

    def get_group_by_name(self, group_name: str) -> Optional[ADGroup]:
        """First group (by account name) matching `group_name`; wildcards allowed."""
        groups = self.get_groups_by_name(group_name)
        return groups[0] if groups else None

    def get_group_names(self, filter: str = "*") -> list[str]:
        return [g.account_name for g in self.get_groups_by_name(filter)]

    def resolve_path(self, path: str | None) -> str:
        return resolve_ou_path(path, self.base_path)

    def get_organizational_unit(
        self,
        path: str | None = None,
        recurse: bool = False,
        depth: int | None = None,
    ) -> OrganizationalUnit:
        """Build the OU tree rooted at `path` (domain root when blank).

        Any enumeration failure aborts the whole traversal.
        """
        resolved = self.resolve_path(path)
        deadline = Deadline(self.cfg.traversal_timeout_s)
        try:
            with self.client.open_session() as session:
                ou = build_organizational_unit(session, resolved, recurse=recurse, depth=depth, deadline=deadline)
        except DirectoryError as e:
            log.error("OU traversal of %s aborted: %s", resolved, e)
            raise
        log.info(
            "Loaded OU %s: %d units, %d users",
            resolved, sum(1 for _ in ou.iter_units()), sum(1 for _ in ou.iter_users()),
        )
        return ou
