from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..actions.trogdor import AGENT, COORDINATOR
from ..types import TargetId
from ..variables import CallableProvider, DynamicVariableProvider
from .base import Role

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node


class _TrogdorRole(Role):
    daemon: ClassVar[str] = ""
    default_port: ClassVar[int] = 0

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.initial_delay = self._float("initial_delay", 0.0)
        self.port = self._int("port", self.default_port)
        self.log4j = self._str_list("log4j") or ["log4j.logger.org.apache.kafka=DEBUG"]

    @property
    def agent_role_type(self) -> type:
        return TrogdorAgentRole

    @property
    def coordinator_role_type(self) -> type:
        return TrogdorCoordinatorRole


class TrogdorAgentRole(_TrogdorRole):
    type_name = "trogdorAgent"
    daemon = AGENT
    default_port = 8888

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            make_action(
                kinds.TROGDOR_AGENT_START,
                node_name,
                [TargetId(kinds.INIT)],
                initial_delay=self.initial_delay,
                payload=self,
            ),
            make_action(kinds.TROGDOR_AGENT_STATUS, node_name, [TargetId(kinds.TROGDOR_AGENT_START)], payload=self),
            make_action(kinds.TROGDOR_AGENT_STOP, node_name, [TargetId(kinds.TROGDOR_COORDINATOR_STOP)], payload=self),
        ]


class TrogdorCoordinatorRole(_TrogdorRole):
    type_name = "trogdorCoordinator"
    daemon = COORDINATOR
    default_port = 8889

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            make_action(
                kinds.TROGDOR_COORDINATOR_START,
                node_name,
                [TargetId(kinds.INIT), TargetId(kinds.TROGDOR_AGENT_START)],
                initial_delay=self.initial_delay,
                payload=self,
            ),
            make_action(
                kinds.TROGDOR_COORDINATOR_STATUS,
                node_name,
                [TargetId(kinds.TROGDOR_COORDINATOR_START)],
                payload=self,
            ),
            make_action(kinds.TROGDOR_COORDINATOR_STOP, node_name, payload=self),
        ]

    def variable_providers(self) -> dict[str, DynamicVariableProvider]:
        return {"trogdorCoordinatorHost": CallableProvider(self._coordinator_host)}

    def _coordinator_host(self, cluster: "Cluster", node: Optional["Node"]) -> str:
        names = cluster.nodes_with_role(type(self))
        if not names:
            return ""
        return f"{cluster.nodes[names[0]].dns}:{self.port}"
