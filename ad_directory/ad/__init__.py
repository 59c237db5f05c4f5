"""Active Directory (LDAP) client package.

Public API:
    - ADConfig, ADUser, ADGroup, DirectoryNode
    - ADClient, DirectorySession
    - OrganizationalUnit, DepthBudget, Deadline, build_organizational_unit
"""

from .models import ADConfig, ADGroup, ADUser, DirectoryNode
from .client import ADClient, DirectorySession
from .ou import Deadline, DepthBudget, OrganizationalUnit, build_organizational_unit

__all__ = [
    "ADConfig",
    "ADUser",
    "ADGroup",
    "DirectoryNode",
    "ADClient",
    "DirectorySession",
    "OrganizationalUnit",
    "DepthBudget",
    "Deadline",
    "build_organizational_unit",
]
