"""In-memory policy and attribute stores."""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..entities import Policy, PolicyStatus


class InMemoryPolicyStore:
    """Policy store backed by a dictionary keyed by policy id."""

    def __init__(self, policies: Optional[Iterable[Policy]] = None):
        self._policies: Dict[str, Policy] = {policy.id: policy for policy in policies or ()}
        self.persisted_counters: Dict[str, Dict[str, Any]] = {}

    def add(self, policy: Policy) -> None:
        self._policies[policy.id] = policy

    def remove(self, policy_id: str) -> None:
        self._policies.pop(policy_id, None)

    def get_by_name(self, name: str) -> Optional[Policy]:
        return next((policy for policy in self._policies.values() if policy.name == name), None)

    async def list_active_policies(self) -> List[Policy]:
        return [policy for policy in self._policies.values() if policy.status == PolicyStatus.ACTIVE]

    async def record_evaluations(self, policies: Sequence[Policy]) -> None:
        for policy in policies:
            self.persisted_counters[policy.id] = dict(policy.counters)


class InMemoryAttributeStore:
    """User attribute store backed by a dictionary."""

    def __init__(self, attributes: Optional[Dict[str, Dict[str, Any]]] = None):
        self._attributes: Dict[str, Dict[str, Any]] = dict(attributes or {})

    def set(self, user_id: str, key: str, value: Any) -> None:
        self._attributes.setdefault(user_id, {})[key] = value

    async def get_user_attributes(self, user_id: str) -> Dict[str, Any]:
        return dict(self._attributes.get(user_id, {}))
