from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional
import hashlib
import logging
import os
import ssl
import uuid

from ldap3 import (
    Server,
    Connection,
    ALL,
    SUBTREE,
    LEVEL,
    Tls,
)
from ldap3.core.exceptions import LDAPException

from ..ad_utils import dn_to_path, path_to_dn, split_ldap_path
from .errors import DirectoryOperationError, DirectoryUnreachableError, InvalidConfigurationError
from .models import ADConfig, ADGroup, ADUser, DirectoryNode
from .utils import escape_ldap_filter_pattern, escape_ldap_filter_value, parse_account_control

log = logging.getLogger(__name__)

# CA PEM files materialized for ldap3.Tls
CA_DIR = "/tmp"

# sizeLimitExceeded is expected for uniqueness checks with size_limit=2
_OK_RESULTS = (0, 4)

NODE_ATTRIBUTES = [
    "distinguishedName",
    "objectClass",
    "objectGUID",
    "userAccountControl",
    "sAMAccountName",
    "displayName",
    "mail",
    "userPrincipalName",
    "memberOf",
]


def _first(v: Any) -> Any:
    if isinstance(v, (list, tuple)):
        return v[0] if v else None
    return v


def _str(v: Any) -> str:
    v = _first(v)
    return str(v) if v is not None else ""


def _str_list(v: Any) -> list[str]:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [str(x) for x in v if x]
    return [str(v)] if v else []


def _guid_str(v: Any) -> str:
    v = _first(v)
    if not v:
        return ""
    if isinstance(v, (bytes, bytearray)):
        # Без схемы ldap3 отдаёт objectGUID сырыми байтами (little-endian)
        try:
            return "{" + str(uuid.UUID(bytes_le=bytes(v))) + "}"
        except ValueError:
            return ""
    return str(v)


def _result_description(res: dict) -> str:
    return str(res.get("description") or res.get("message") or "unknown error")


class DirectorySession:
    """A bound service connection used for a single traversal.

    Never outlives the `ADClient.open_session()` block that created it.
    """

    def __init__(self, conn: Connection, cfg: ADConfig) -> None:
        self._conn = conn
        self.cfg = cfg

    def distinguished_name(self, path: str) -> str:
        return path_to_dn(path, self.cfg.base_dn)

    def enumerate_children(self, path: str) -> list[DirectoryNode]:
        """Return the immediate children of the entry at `path`, in directory order."""
        host, _ = split_ldap_path(path)
        base = self.distinguished_name(path)
        if not base:
            raise DirectoryOperationError(f"Cannot resolve search base for {path!r}", path=path)

        nodes: list[DirectoryNode] = []
        try:
            for entry in self._conn.extend.standard.paged_search(
                search_base=base,
                search_filter="(objectClass=*)",
                search_scope=LEVEL,
                attributes=NODE_ATTRIBUTES,
                paged_size=1000,
                generator=True,
            ):
                if entry.get("type") != "searchResEntry":
                    continue
                nodes.append(self._entry_to_node(host, entry))
        except LDAPException as e:
            raise DirectoryOperationError(f"LDAP error while enumerating {base}: {e}", path=path) from e

        res = dict(self._conn.result or {})
        if res.get("result", 0) != 0:
            raise DirectoryOperationError(
                f"Enumeration of {base} failed: {_result_description(res)}", path=path, result=res
            )
        log.debug("Enumerated %d children of %s", len(nodes), base)
        return nodes

    @staticmethod
    def _entry_to_node(host: str, entry: dict) -> DirectoryNode:
        a = entry.get("attributes", {}) or {}
        dn = _str(a.get("distinguishedName")) or str(entry.get("dn", "") or "")
        return DirectoryNode(
            dn=dn,
            path=dn_to_path(host, dn),
            object_classes=_str_list(a.get("objectClass")),
            object_guid=_guid_str(a.get("objectGUID")),
            user_account_control=parse_account_control(a.get("userAccountControl")),
            sam=_str(a.get("sAMAccountName")),
            display_name=_str(a.get("displayName")),
            mail=_str(a.get("mail")),
            user_principal_name=_str(a.get("userPrincipalName")),
            member_of=_str_list(a.get("memberOf")),
        )


class ADClient:
    @staticmethod
    def _normalize_pem(pem: str) -> str:
        """Normalize PEM text (strip outer whitespace and normalize line endings)."""
        data = (pem or "").strip()
        data = data.replace("\r\n", "\n").replace("\r", "\n")
        return data

    @staticmethod
    def _ensure_ca_file(pem: str) -> str:
        """Materialize CA PEM into a stable file path.

        ldap3.Tls historically supports ca_certs_file (works across versions).
        The PEM is stored under CA_DIR with a content hash so several processes can reuse it.
        """
        data = ADClient._normalize_pem(pem)
        if not data:
            return ""

        if "-----BEGIN CERTIFICATE-----" not in data or "-----END CERTIFICATE-----" not in data:
            raise ValueError("CA PEM does not look like a certificate (expected BEGIN/END CERTIFICATE block)")

        h = hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]
        path = os.path.join(CA_DIR, f"ad_directory_ca_{h}.pem")

        try:
            if os.path.exists(path):
                with open(path, "r", encoding="utf-8") as f:
                    if f.read().strip() == data:
                        return path

            with open(path, "w", encoding="utf-8") as f:
                f.write(data)
                if not data.endswith("\n"):
                    f.write("\n")
            os.chmod(path, 0o600)
        except OSError:
            # Read-only CA_DIR: fall back to the system trust store.
            log.warning("Could not write CA file %s, using system trust store", path)
            return ""

        return path

    def __init__(self, cfg: ADConfig) -> None:
        self.cfg = cfg

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_REQUIRED if cfg.tls_validate else ssl.CERT_NONE,
        }
        ca_pem = self._normalize_pem(cfg.ca_pem or "")
        if cfg.tls_validate and ca_pem:
            ca_file = self._ensure_ca_file(ca_pem)
            if ca_file:
                tls_kwargs["ca_certs_file"] = ca_file

        tls = Tls(**tls_kwargs)

        self.server = Server(
            host=cfg.host,
            port=cfg.port,
            use_ssl=cfg.use_ssl,
            get_info=ALL,
            tls=tls,
            connect_timeout=cfg.connect_timeout_s,
        )

    def _conn(self, user: str, password: str) -> Connection:
        conn = Connection(
            self.server,
            user=user,
            password=password,
            auto_bind=False,
            receive_timeout=self.cfg.receive_timeout_s,
        )
        conn.open()
        if self.cfg.starttls:
            conn.start_tls()
        return conn

    def _service_conn(self) -> Connection:
        """Open and bind a connection with the service account.

        Raises DirectoryUnreachableError when the server cannot be reached or
        the service account is rejected.
        """
        conn: Connection | None = None
        bound = False
        try:
            conn = self._conn(self.cfg.bind_principal, self.cfg.bind_password)
            if not conn.bind():
                res = dict(conn.result or {})
                raise DirectoryUnreachableError(f"Service bind failed: {_result_description(res)}")
            bound = True
            return conn
        except LDAPException as e:
            raise DirectoryUnreachableError(f"LDAP error ({self.cfg.host}:{self.cfg.port}): {e}") from e
        finally:
            if conn is not None and not bound:
                try:
                    conn.unbind()
                except Exception:
                    pass

    @contextmanager
    def open_session(self) -> Iterator[DirectorySession]:
        conn = self._service_conn()
        try:
            yield DirectorySession(conn, self.cfg)
        finally:
            try:
                conn.unbind()
            except Exception:
                pass

    def service_bind(self) -> tuple[bool, dict]:
        conn: Connection | None = None
        try:
            conn = self._conn(self.cfg.bind_principal, self.cfg.bind_password)
            ok = bool(conn.bind())
            res = dict(conn.result or {})
            return ok, res
        except LDAPException as e:
            return False, {"error": str(e), "description": str(e), "message": str(e)}
        finally:
            try:
                if conn:
                    conn.unbind()
            except Exception:
                pass

    def test_connection(self) -> bool:
        """Lightweight connectivity check: open, optional StartTLS, service bind."""
        ok, res = self.service_bind()
        if not ok:
            log.warning("AD connection test failed: %s", _result_description(res))
        return ok

    def validate_credentials(self, username: str, password: str) -> bool:
        """Check a user/password pair against the domain.

        Unknown user and wrong password both return False. Blank passwords are
        rejected locally: a simple bind with an empty password is an
        unauthenticated bind and would succeed.
        """
        username = (username or "").strip()
        if not username or not password:
            return False

        # Service account first: an unreachable directory must not look like bad credentials
        svc = self._service_conn()
        try:
            svc.unbind()
        except Exception:
            pass

        conn: Connection | None = None
        try:
            conn = self._conn(self.cfg.principal_for(username), password)
            return bool(conn.bind())
        except LDAPException as e:
            log.warning("Credential validation error: %s", e)
            return False
        finally:
            try:
                if conn:
                    conn.unbind()
            except Exception:
                pass

    def find_user_by_identity(self, identity: str) -> Optional[ADUser]:
        """Find exactly one user by sAMAccountName, UPN, DOMAIN\\user or DN.

        Returns None when nothing (or more than one entry) matches; raises
        DirectoryError subclasses on connection or search failures.
        """
        identity = (identity or "").strip()
        if not identity:
            return None
        base = self.cfg.base_dn
        if not base:
            raise InvalidConfigurationError(f"Cannot derive base DN from domain {self.cfg.domain!r}")

        if "=" in identity:
            flt = f"(distinguishedName={escape_ldap_filter_value(identity)})"
        elif "@" in identity:
            flt = f"(userPrincipalName={escape_ldap_filter_value(identity)})"
        else:
            sam = identity.rsplit("\\", 1)[-1]
            flt = f"(sAMAccountName={escape_ldap_filter_value(sam)})"

        conn = self._service_conn()
        try:
            try:
                conn.search(
                    search_base=base,
                    search_filter=f"(&(objectClass=user)(!(objectClass=computer)){flt})",
                    search_scope=SUBTREE,
                    attributes=NODE_ATTRIBUTES,
                    size_limit=2,
                )
            except LDAPException as e:
                raise DirectoryOperationError(f"LDAP error while looking up {identity!r}: {e}") from e

            res = dict(conn.result or {})
            if res.get("result", 0) not in _OK_RESULTS:
                raise DirectoryOperationError(
                    f"User lookup failed: {_result_description(res)}", result=res
                )
            entries = [e for e in (conn.response or []) if e.get("type") == "searchResEntry"]
            if len(entries) != 1:
                return None
            host, _ = split_ldap_path(self.cfg.base_path)
            return DirectorySession._entry_to_node(host, entries[0]).to_user()
        finally:
            try:
                conn.unbind()
            except Exception:
                pass

    def search_groups(self, pattern: str = "*", limit: int | None = None) -> list[ADGroup]:
        """Search groups by `name`; `*` in `pattern` is a wildcard.

        Results come back in directory order. `limit=None` returns every
        match; a reached limit is logged, the list is then incomplete.
        """
        base = self.cfg.base_dn
        if not base:
            raise InvalidConfigurationError(f"Cannot derive base DN from domain {self.cfg.domain!r}")
        pattern = (pattern or "").strip() or "*"
        flt = f"(&(objectClass=group)(name={escape_ldap_filter_pattern(pattern)}))"
        attrs = ["distinguishedName", "cn", "name", "sAMAccountName", "description"]

        conn = self._service_conn()
        try:
            groups: list[ADGroup] = []
            truncated = False
            try:
                for entry in conn.extend.standard.paged_search(
                    search_base=base,
                    search_filter=flt,
                    search_scope=SUBTREE,
                    attributes=attrs,
                    paged_size=1000,
                    generator=True,
                ):
                    if entry.get("type") != "searchResEntry":
                        continue
                    a = entry.get("attributes", {}) or {}
                    dn = _str(a.get("distinguishedName")) or str(entry.get("dn", "") or "")
                    if not dn:
                        continue
                    name = _str(a.get("name")) or _str(a.get("cn"))
                    groups.append(ADGroup(
                        dn=dn,
                        name=name,
                        account_name=_str(a.get("sAMAccountName")) or name,
                        description=_str(a.get("description")),
                    ))
                    if limit is not None and len(groups) >= limit:
                        truncated = True
                        break
            except LDAPException as e:
                raise DirectoryOperationError(f"LDAP error while searching groups {pattern!r}: {e}") from e

            if truncated:
                log.warning("Group search %r stopped at limit=%d, results are incomplete", pattern, limit)
                return groups

            res = dict(conn.result or {})
            if res.get("result", 0) != 0:
                raise DirectoryOperationError(
                    f"Group search {pattern!r} failed: {_result_description(res)}", result=res
                )
            return groups
        finally:
            try:
                conn.unbind()
            except Exception:
                pass
