from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..types import TargetId
from ..variables import DynamicVariableProvider

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node
    from ..executors import Executor


class Role(ABC):
    """Factory for the actions implementing one capability on a node."""

    type_name: ClassVar[str] = ""

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        self.spec = dict(spec or {})
        self.name = name or self.type_name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @abstractmethod
    def create_actions(self, node_name: str) -> list[Action]:
        """Return the actions this role contributes to ``node_name``."""

    def variable_providers(self) -> dict[str, DynamicVariableProvider]:
        return {}

    def hostname(self, cluster: "Cluster", node: "Node") -> Optional[str]:
        return None

    def create_executor(self, cluster: "Cluster", node: "Node") -> Optional["Executor"]:
        return None

    # Spec parsing -------------------------------------------------------
    def _str(self, key: str, default: str = "") -> str:
        value = self.spec.get(key)
        if value is None:
            return default
        return str(value)

    def _int(self, key: str, default: int) -> int:
        value = self.spec.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{self.type_name} role '{self.name}': {key} must be an integer") from exc

    def _float(self, key: str, default: float) -> float:
        value = self.spec.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{self.type_name} role '{self.name}': {key} must be numeric") from exc
        if number < 0:
            raise ValueError(f"{self.type_name} role '{self.name}': {key} must not be negative")
        return number

    def _bool(self, key: str, default: bool = False) -> bool:
        value = self.spec.get(key, default)
        if isinstance(value, bool):
            return value
        raise ValueError(f"{self.type_name} role '{self.name}': {key} must be true or false")

    def _str_list(self, key: str) -> list[str]:
        value = self.spec.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        raise ValueError(f"{self.type_name} role '{self.name}': {key} must be a string or list")

    def _str_map(self, key: str) -> dict[str, str]:
        value = self.spec.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"{self.type_name} role '{self.name}': {key} must be a table")
        return {str(k): str(v) for k, v in value.items()}


class BaseNodeRole(Role):
    """Carried implicitly by every node; gates daemons on basic node init."""

    type_name = "base"

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            make_action(
                kinds.INIT,
                node_name,
                [
                    TargetId(kinds.AWS_INIT),
                    TargetId(kinds.UPLINK_CHECK),
                    TargetId(kinds.UBUNTU_SETUP),
                ],
                payload=self,
            )
        ]
