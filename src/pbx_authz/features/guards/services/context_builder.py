"""Builds the policy evaluation context for a request.

Resource type, action, classification and sensitivity are inferred from the
request unless the route declares them. The environment carries a baseline
risk score that the policy engine builds on.
"""

import asyncio
import ipaddress
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ....config.constants import (
    METHOD_ACTIONS,
    RESOURCE_CLASSIFICATION,
    RESOURCE_PATH_MARKERS,
    RESOURCE_SENSITIVITY,
    RISK_EXTERNAL_IP,
    RISK_MAX,
    RISK_MOBILE_DEVICE,
    RISK_OUTSIDE_BUSINESS_HOURS,
    DataClassification,
    DeviceType,
    Sensitivity,
)
from ....core.exceptions import ConfigurationError
from ...identity.entities import Principal
from ...policies.entities import (
    AttributeStore,
    EnvironmentAttributes,
    PolicyEvaluationContext,
    ResourceAttributes,
    UserAttributes,
)
from ...roles.entities import EffectiveAccess
from ..entities import GuardRequest, RouteRequirements

logger = logging.getLogger(__name__)

UNKNOWN_RESOURCE = "unknown"


def infer_resource_type(path: str) -> str:
    """Map the first known path segment to a resource type."""
    segments = [segment.lower() for segment in path.split("?", 1)[0].split("/") if segment]
    for marker, resource_type in RESOURCE_PATH_MARKERS.items():
        if marker in segments:
            return resource_type
    return UNKNOWN_RESOURCE


def infer_action(method: str) -> str:
    return METHOD_ACTIONS.get(method.upper(), "execute")


def infer_device_type(user_agent: Optional[str]) -> DeviceType:
    if not user_agent:
        return DeviceType.DESKTOP
    ua = user_agent.lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return DeviceType.MOBILE
    if "tablet" in ua or "ipad" in ua:
        return DeviceType.TABLET
    if "sip" in ua or "phone" in ua:
        return DeviceType.IP_PHONE
    return DeviceType.DESKTOP


def is_private_address(ip: Optional[str]) -> bool:
    """Private, loopback and link-local addresses count as internal.

    Unknown or unparseable addresses are treated as external.
    """
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


class ContextBuilder:
    """Assembles user, resource and environment attributes for one request."""

    def __init__(
        self,
        attribute_store: Optional[AttributeStore] = None,
        business_hours_start: int = 9,
        business_hours_end: int = 18,
        timezone_name: str = "UTC",
        store_timeout: float = 2.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        try:
            self._zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone: {timezone_name}") from e
        self._timezone_name = timezone_name
        self._attribute_store = attribute_store
        self._hours_start = business_hours_start
        self._hours_end = business_hours_end
        self._store_timeout = store_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_business_hours(self, moment: datetime) -> bool:
        """Monday to Friday, within the configured hours, in local time."""
        local = moment.astimezone(self._zone) if moment.tzinfo else moment
        return local.weekday() < 5 and self._hours_start <= local.hour < self._hours_end

    def baseline_risk(
        self,
        is_business_hours: bool,
        device_type: DeviceType,
        client_ip: Optional[str],
    ) -> int:
        score = 0
        if not is_business_hours:
            score += RISK_OUTSIDE_BUSINESS_HOURS
        if device_type == DeviceType.MOBILE:
            score += RISK_MOBILE_DEVICE
        if not is_private_address(client_ip):
            score += RISK_EXTERNAL_IP
        return min(score, RISK_MAX)

    async def _load_attributes(self, user_id: str) -> dict:
        # The context is still usable without the free-form attributes
        if self._attribute_store is None:
            return {}
        try:
            attributes = await asyncio.wait_for(
                self._attribute_store.get_user_attributes(user_id), timeout=self._store_timeout
            )
            return dict(attributes or {})
        except asyncio.TimeoutError:
            logger.warning(f"Attribute store timed out for user {user_id}")
        except Exception as e:
            logger.warning(f"Failed to load attributes for user {user_id}: {e}")
        return {}

    async def build(
        self,
        request: GuardRequest,
        principal: Principal,
        access: EffectiveAccess,
        requirements: RouteRequirements,
    ) -> PolicyEvaluationContext:
        now = self._clock()
        attributes = await self._load_attributes(principal.id)

        user = UserAttributes(
            id=principal.id,
            username=principal.username,
            domain_id=principal.domain_id,
            roles=access.roles,
            permissions=access.permissions,
            primary_role=principal.primary_role,
            attributes=attributes,
        )

        resource_type = requirements.resource_type or infer_resource_type(request.endpoint)
        resource = ResourceAttributes(
            type=resource_type,
            id=request.resource_id,
            domain_id=request.domain_id or principal.domain_id,
            data_classification=RESOURCE_CLASSIFICATION.get(resource_type, DataClassification.PUBLIC),
            sensitivity=RESOURCE_SENSITIVITY.get(resource_type, Sensitivity.LOW),
            attributes={"method": request.method.upper(), "path": request.endpoint},
        )

        device_type = infer_device_type(request.user_agent)
        business_hours = self.is_business_hours(now)
        environment = EnvironmentAttributes(
            current_time=now.astimezone(self._zone) if now.tzinfo else now,
            client_ip=request.client_ip,
            user_agent=request.user_agent,
            device_type=device_type,
            timezone=self._timezone_name,
            is_business_hours=business_hours,
            auth_method=principal.auth_method.value,
            session_age_seconds=principal.session_age_seconds(now),
            risk_score=self.baseline_risk(business_hours, device_type, request.client_ip),
        )

        return PolicyEvaluationContext(
            user=user,
            resource=resource,
            environment=environment,
            action=requirements.action or infer_action(request.method),
        )
