"""Client-side façade over Active Directory: authentication, user and group
lookups and organizational unit trees."""

from .ad import ADClient, ADConfig, ADGroup, ADUser, DepthBudget, OrganizationalUnit
from .ad.errors import (
    DirectoryError,
    DirectoryOperationError,
    DirectoryTimeoutError,
    DirectoryUnreachableError,
    InvalidConfigurationError,
    MalformedEntryError,
)
from .services import ActiveDirectory, LookupStatus, UserLookup

__all__ = [
    "ActiveDirectory",
    "ADClient",
    "ADConfig",
    "ADGroup",
    "ADUser",
    "DepthBudget",
    "OrganizationalUnit",
    "LookupStatus",
    "UserLookup",
    "DirectoryError",
    "DirectoryOperationError",
    "DirectoryTimeoutError",
    "DirectoryUnreachableError",
    "InvalidConfigurationError",
    "MalformedEntryError",
]
