from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import pytest

from ad_directory.ad import ADConfig, ADGroup, ADUser, DirectoryNode
from ad_directory.ad.errors import DirectoryOperationError
from ad_directory.ad_utils import dn_to_path, path_to_dn

HOST = "corp.test"
BASE_DN = "DC=corp,DC=test"
ROOT = f"LDAP://{HOST}"


def user_node(cn: str, parent_dn: str = BASE_DN, uac: int | None = 512, guid: str | None = None) -> DirectoryNode:
    dn = f"CN={cn},{parent_dn}"
    return DirectoryNode(
        dn=dn,
        path=dn_to_path(HOST, dn),
        object_classes=["top", "person", "organizationalPerson", "user"],
        object_guid=f"{{guid-{cn}}}" if guid is None else guid,
        user_account_control=uac,
        sam=cn.lower(),
        display_name=cn,
    )


def ou_node(name: str, parent_dn: str = BASE_DN) -> DirectoryNode:
    dn = f"OU={name},{parent_dn}"
    return DirectoryNode(
        dn=dn,
        path=dn_to_path(HOST, dn),
        object_classes=["top", "organizationalUnit"],
        object_guid=f"{{guid-ou-{name}}}",
    )


def other_node(cn: str, cls: str, parent_dn: str = BASE_DN) -> DirectoryNode:
    dn = f"CN={cn},{parent_dn}"
    return DirectoryNode(dn=dn, path=dn_to_path(HOST, dn), object_classes=["top", cls], object_guid="{x}")


class FakeSession:
    """In-memory directory keyed by DN (lower-case)."""

    def __init__(self, children: dict[str, list[DirectoryNode]] | None = None) -> None:
        self.children = {k.lower(): v for k, v in (children or {}).items()}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def distinguished_name(self, path: str) -> str:
        return path_to_dn(path, BASE_DN)

    def enumerate_children(self, path: str) -> list[DirectoryNode]:
        dn = self.distinguished_name(path)
        self.calls.append(dn)
        if dn.lower() in self.failing:
            raise DirectoryOperationError(f"Enumeration of {dn} failed: operationsError", path=path)
        return list(self.children.get(dn.lower(), []))


class FakeClient:
    def __init__(self, session: FakeSession | None = None) -> None:
        self.session = session or FakeSession()
        self.users: dict[str, ADUser] = {}
        self.passwords: dict[str, str] = {}
        self.groups: list[ADGroup] = []
        self.search_limits: list[int | None] = []
        self.lookup_error: Exception | None = None
        self.sessions_opened = 0
        self.sessions_closed = 0

    @contextmanager
    def open_session(self) -> Iterator[FakeSession]:
        self.sessions_opened += 1
        try:
            yield self.session
        finally:
            self.sessions_closed += 1

    def validate_credentials(self, username: str, password: str) -> bool:
        if not username or not password:
            return False
        return self.passwords.get(username) == password

    def find_user_by_identity(self, identity: str):
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.users.get(identity)

    def search_groups(self, pattern: str = "*", limit: int | None = None) -> list[ADGroup]:
        import fnmatch

        self.search_limits.append(limit)
        return [g for g in self.groups if fnmatch.fnmatchcase(g.name, pattern)]


@pytest.fixture
def ad_cfg() -> ADConfig:
    return ADConfig(
        dc_short="dc01",
        domain=HOST,
        port=636,
        use_ssl=True,
        starttls=False,
        bind_username="svc_ad",
        bind_password="S3rvice!",
    )


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
