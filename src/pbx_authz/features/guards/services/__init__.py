"""Guard services."""

from .context_builder import (
    ContextBuilder,
    infer_resource_type,
    infer_action,
    infer_device_type,
    is_private_address,
)
from .guard_pipeline import GuardPipeline, ALLOWED_IP_RANGES_ATTRIBUTE

__all__ = [
    "ContextBuilder",
    "infer_resource_type",
    "infer_action",
    "infer_device_type",
    "is_private_address",
    "GuardPipeline",
    "ALLOWED_IP_RANGES_ATTRIBUTE",
]
