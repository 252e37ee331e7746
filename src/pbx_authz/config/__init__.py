"""Configuration for pbx-authz: settings, logging and static tables."""

from .settings import AuthzSettings, AuditOverflowPolicy, get_settings
from .logging_config import LoggingConfig, setup_logging, get_logger
from .constants import (
    RoleName,
    RoleLevel,
    OperationClass,
    DataClassification,
    Sensitivity,
    DeviceType,
    ROLE_HIERARCHY,
    PERMISSION_MAPPINGS,
    ROLE_RATE_LIMITS,
    OPERATION_RATE_LIMITS,
    DEFAULT_RATE_LIMIT,
)

__all__ = [
    "AuthzSettings",
    "AuditOverflowPolicy",
    "get_settings",
    "LoggingConfig",
    "setup_logging",
    "get_logger",
    "RoleName",
    "RoleLevel",
    "OperationClass",
    "DataClassification",
    "Sensitivity",
    "DeviceType",
    "ROLE_HIERARCHY",
    "PERMISSION_MAPPINGS",
    "ROLE_RATE_LIMITS",
    "OPERATION_RATE_LIMITS",
    "DEFAULT_RATE_LIMIT",
]
