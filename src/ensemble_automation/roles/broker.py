from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..types import TargetId
from ..variables import CallableProvider, DynamicVariableProvider
from .base import Role

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node


class BrokerRole(Role):
    """Kafka broker.

    ``conf`` entries are appended to server.properties and may reference
    cluster variables such as ``%{zkConnect}``.
    """

    type_name = "broker"

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.initial_delay = self._float("initial_delay", 0.0)
        self.jvm_options = self._str("jvm_options") or "-Xmx3g -Xms3g"
        self.port = self._int("port", 9092)
        self.jmx_port = self._int("jmx_port", 9192)
        self.conf = self._str_map("conf")
        self.log4j = self._str_list("log4j")

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            make_action(
                kinds.BROKER_START,
                node_name,
                [TargetId(kinds.INIT), TargetId(kinds.ZOOKEEPER_START)],
                initial_delay=self.initial_delay,
                payload=self,
            ),
            make_action(kinds.BROKER_STATUS, node_name, [TargetId(kinds.BROKER_START)], payload=self),
            make_action(kinds.BROKER_STOP, node_name, payload=self),
        ]

    def variable_providers(self) -> dict[str, DynamicVariableProvider]:
        return {"bootstrapServers": CallableProvider(self._bootstrap_servers)}

    def _bootstrap_servers(self, cluster: "Cluster", node: Optional["Node"]) -> str:
        return ",".join(
            f"{cluster.nodes[name].dns}:{self.port}"
            for name in cluster.nodes_with_role(type(self))
        )
