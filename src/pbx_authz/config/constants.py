"""Static authorization tables for pbx-authz.

Role inheritance, the permission-to-role mapping table, rate limit tiers and
the lookup tables used to infer policy context from an HTTP request.
"""

from enum import Enum
from typing import Dict, List, Tuple


class RoleName(str, Enum):
    """Built-in PBX administration roles."""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


class RoleLevel(int, Enum):
    """Role ordinal rank (lower is more privileged)."""
    SUPERADMIN = 0
    ADMIN = 10
    MANAGER = 20
    USER = 30
    GUEST = 40


class OperationClass(str, Enum):
    """Operation classes with dedicated rate limits."""
    SYNC = "sync"
    BACKUP = "backup"
    SENSITIVE = "sensitive"
    UPLOAD = "upload"
    LOGIN = "login"


class DataClassification(str, Enum):
    """Data classification of a protected resource."""
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"
    CONFIDENTIAL = "CONFIDENTIAL"
    RESTRICTED = "RESTRICTED"


class Sensitivity(str, Enum):
    """Sensitivity level of a protected resource."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DeviceType(str, Enum):
    """Client device type inferred from the user agent."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    IP_PHONE = "ip_phone"


# Role -> roles it implicitly includes
ROLE_HIERARCHY: Dict[str, List[str]] = {
    RoleName.SUPERADMIN.value: [RoleName.ADMIN.value, RoleName.OPERATOR.value, RoleName.VIEWER.value],
    RoleName.ADMIN.value: [RoleName.OPERATOR.value, RoleName.VIEWER.value],
    RoleName.OPERATOR.value: [RoleName.VIEWER.value],
    RoleName.VIEWER.value: [],
}

_ALL = ["viewer", "operator", "admin", "superadmin"]
_OPERATOR_UP = ["operator", "admin", "superadmin"]
_ADMIN_UP = ["admin", "superadmin"]
_SUPERADMIN = ["superadmin"]

# Permission -> roles allowed to exercise it, independent of role definitions
PERMISSION_MAPPINGS: Dict[str, List[str]] = {
    # Basic CRUD operations
    "read": _ALL,
    "create": _OPERATOR_UP,
    "update": _OPERATOR_UP,
    "delete": _ADMIN_UP,

    # Configuration operations
    "config:read": _ALL,
    "config:create": _OPERATOR_UP,
    "config:update": _OPERATOR_UP,
    "config:delete": _ADMIN_UP,
    "config:sync": _OPERATOR_UP,
    "config:sync:force": _ADMIN_UP,

    # Backup operations
    "config:backup:create": _OPERATOR_UP,
    "config:backup:restore": _ADMIN_UP,
    "config:backup:delete": _ADMIN_UP,

    # System operations
    "system:health": _ALL,
    "system:metrics": _OPERATOR_UP,
    "system:audit": _ADMIN_UP,
    "system:logs": _ADMIN_UP,

    # Security operations
    "security:read": _ADMIN_UP,
    "security:manage": _SUPERADMIN,
    "security:encryption": _SUPERADMIN,
    "security:compliance": _ADMIN_UP,

    # User management
    "user:read": _OPERATOR_UP,
    "user:create": _ADMIN_UP,
    "user:update": _ADMIN_UP,
    "user:delete": _SUPERADMIN,
    "user:roles": _ADMIN_UP,

    # Notifications
    "notifications:read": _ALL,
    "notifications:manage": _ADMIN_UP,

    # Scheduler
    "scheduler:view": _OPERATOR_UP,
    "scheduler:manage": _ADMIN_UP,
}

# (window_ms, max_requests)
ROLE_RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    RoleName.SUPERADMIN.value: (60_000, 200),
    RoleName.ADMIN.value: (60_000, 120),
    RoleName.OPERATOR.value: (60_000, 80),
    RoleName.VIEWER.value: (60_000, 40),
}
DEFAULT_RATE_LIMIT: Tuple[int, int] = (60_000, 20)

OPERATION_RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    OperationClass.SYNC.value: (300_000, 5),
    OperationClass.BACKUP.value: (600_000, 3),
    OperationClass.SENSITIVE.value: (300_000, 10),
    OperationClass.UPLOAD.value: (60_000, 10),
    OperationClass.LOGIN.value: (900_000, 5),
}

SENSITIVE_PATH_MARKERS: Tuple[str, ...] = ("/security", "/encryption", "/audit")

# Path segment -> resource type
RESOURCE_PATH_MARKERS: Dict[str, str] = {
    "users": "users",
    "calls": "calls",
    "live-calls": "calls",
    "cdr": "cdr",
    "recordings": "recordings",
    "extensions": "extensions",
    "reports": "reports",
    "analytics": "analytics",
    "billing": "billing",
    "config": "config",
    "system": "system",
    "security": "security",
    "monitoring": "monitoring",
    "domains": "domains",
    "sip-profiles": "sip_profiles",
    "gateways": "gateways",
}

RESOURCE_CLASSIFICATION: Dict[str, DataClassification] = {
    "recordings": DataClassification.CONFIDENTIAL,
    "cdr": DataClassification.CONFIDENTIAL,
    "billing": DataClassification.RESTRICTED,
    "security": DataClassification.RESTRICTED,
    "users": DataClassification.INTERNAL,
    "calls": DataClassification.INTERNAL,
}

RESOURCE_SENSITIVITY: Dict[str, Sensitivity] = {
    "recordings": Sensitivity.HIGH,
    "billing": Sensitivity.HIGH,
    "security": Sensitivity.HIGH,
    "cdr": Sensitivity.MEDIUM,
    "users": Sensitivity.MEDIUM,
}

METHOD_ACTIONS: Dict[str, str] = {
    "GET": "read",
    "HEAD": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}

# Risk score contributions
RISK_OUTSIDE_BUSINESS_HOURS = 20
RISK_MOBILE_DEVICE = 10
RISK_EXTERNAL_IP = 15
RISK_DENY_DECISION = 20
RISK_HIGH_SENSITIVITY = 15
RISK_POLICY_OUTSIDE_HOURS = 10
RISK_INDETERMINATE = 50
RISK_MAX = 100
