"""
Policy decision point clients and the pure helpers around them.

Construct one PolicyClient at startup (LocalPolicyClient or
PermitPolicyClient) and pass it to the components that need it.
"""

from .access import can_view_history
from .audit import AuditLogger
from .client import PolicyClient
from .filters import derive_permission_filters
from .local import LocalPolicyClient, PolicyConfigError, load_policy_config
from .permit import PermitPolicyClient
from .types import PermissionFilters, UserAttributes

__all__ = [
    "AuditLogger",
    "LocalPolicyClient",
    "PermissionFilters",
    "PermitPolicyClient",
    "PolicyClient",
    "PolicyConfigError",
    "UserAttributes",
    "can_view_history",
    "derive_permission_filters",
    "load_policy_config",
]
