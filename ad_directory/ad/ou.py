"""Organizational unit tree materialization.

The tree is built depth-first from level-scoped enumerations of a remote
directory. Nodes are plain values: once built they hold no reference to the
session that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Protocol
import logging
import time

from ..utils.dn import dn_first_component_value
from .errors import DirectoryTimeoutError, MalformedEntryError
from .models import ADUser, DirectoryNode
from .utils import is_account_disabled

log = logging.getLogger(__name__)


class DirectorySessionProtocol(Protocol):
    def enumerate_children(self, path: str) -> list[DirectoryNode]: ...

    def distinguished_name(self, path: str) -> str: ...


@dataclass(frozen=True)
class DepthBudget:
    """Remaining recursion budget: unlimited, N more levels, or exhausted."""

    remaining: Optional[int] = None
    exhausted: bool = False

    @classmethod
    def unlimited(cls) -> "DepthBudget":
        return cls()

    @classmethod
    def from_depth(cls, depth: Optional[int]) -> "DepthBudget":
        if depth is None:
            return cls()
        if depth < 0:
            return cls(exhausted=True)
        return cls(remaining=int(depth))

    @property
    def is_unlimited(self) -> bool:
        return self.remaining is None and not self.exhausted

    def allows_descent(self) -> bool:
        return not self.exhausted

    def decrement(self) -> "DepthBudget":
        if self.exhausted or self.remaining is None:
            return self
        if self.remaining == 0:
            return DepthBudget(exhausted=True)
        return DepthBudget(remaining=self.remaining - 1)


class Deadline:
    """Monotonic deadline shared by every level of one traversal."""

    def __init__(self, timeout_s: Optional[float] = None) -> None:
        self.timeout_s = timeout_s
        self._expires = time.monotonic() + timeout_s if timeout_s is not None else None

    def expired(self) -> bool:
        return self._expires is not None and time.monotonic() >= self._expires

    def check(self, path: str = "") -> None:
        if self.expired():
            raise DirectoryTimeoutError(f"Traversal exceeded {self.timeout_s}s at {path or '<root>'}")


@dataclass
class OrganizationalUnit:
    name: str = ""
    path: str = ""
    users: List[ADUser] = field(default_factory=list)
    organizational_units: List["OrganizationalUnit"] = field(default_factory=list)

    def populate(
        self,
        session: DirectorySessionProtocol,
        path: str,
        recurse: bool = False,
        depth: Optional[int] | DepthBudget = None,
        deadline: Optional[Deadline] = None,
    ) -> "OrganizationalUnit":
        """Read the entry at `path` and fill this node from scratch.

        Users are listed whatever `recurse` is; sub-units are only visited
        when `recurse` is true and the depth budget allows it. `depth=None`
        means unlimited, `depth=0` allows one more level of sub-units.
        Remote errors propagate and abort the call.
        """
        budget = depth if isinstance(depth, DepthBudget) else DepthBudget.from_depth(depth)
        deadline = deadline or Deadline()

        self.users = []
        self.organizational_units = []

        deadline.check(path)
        children = session.enumerate_children(path)

        for child in children:
            if child.is_user:
                if not child.object_guid:
                    log.warning("Skipping user entry without objectGUID: %s", child.dn or "<no dn>")
                    continue
                if is_account_disabled(child.user_account_control):
                    continue
                self.users.append(child.to_user())
            elif child.is_organizational_unit:
                if not (recurse and budget.allows_descent()):
                    continue
                sub = OrganizationalUnit().populate(
                    session, child.path, recurse=True, depth=budget.decrement(), deadline=deadline
                )
                self.organizational_units.append(sub)

        dn = session.distinguished_name(path)
        name = dn_first_component_value(dn)
        if not name:
            raise MalformedEntryError(f"Entry {path!r} has no naming component (dn={dn!r})")
        self.name = name
        self.path = path

        log.debug(
            "Populated %s: %d users, %d units", path, len(self.users), len(self.organizational_units)
        )
        return self

    def iter_units(self) -> Iterator["OrganizationalUnit"]:
        """This unit and every descendant, depth-first pre-order."""
        yield self
        for ou in self.organizational_units:
            yield from ou.iter_units()

    def iter_users(self) -> Iterator[ADUser]:
        for ou in self.iter_units():
            yield from ou.users

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "users": [
                {"dn": u.dn, "sam": u.sam, "display": u.display_name, "mail": u.mail}
                for u in self.users
            ],
            "organizational_units": [ou.to_dict() for ou in self.organizational_units],
        }


def build_organizational_unit(
    session: DirectorySessionProtocol,
    path: str,
    recurse: bool = False,
    depth: Optional[int] = None,
    deadline: Optional[Deadline] = None,
) -> OrganizationalUnit:
    return OrganizationalUnit().populate(session, path, recurse=recurse, depth=depth, deadline=deadline)
